from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, CheckConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class Inventory(BaseModel, Base):
    __tablename__ = "inventory"

    # 1:1 with Sweet; removed together with it
    sweet_id = Column(String(36), ForeignKey("sweets.id", ondelete="CASCADE"), nullable=False, unique=True)
    # Changed only through relative updates in services.inventory_service.apply_delta
    quantity = Column(Integer, nullable=False, default=0)
    min_stock_level = Column(Integer, nullable=False, default=0)
    max_stock_level = Column(Integer, nullable=False, default=1000)
    reorder_point = Column(Integer, nullable=False, default=10)
    last_restocked_at = Column(DateTime(timezone=True), nullable=True)

    sweet = relationship("Sweet", back_populates="inventory")
    stock_movements = relationship(
        "StockMovement",
        back_populates="inventory",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StockMovement.created_at.desc()",
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_nonnegative"),
    )
