from enum import Enum

from sqlalchemy import Column, String, Integer, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base


class StockMovementType(str, Enum):
    RESTOCK = "RESTOCK"
    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT_IN = "ADJUSTMENT_IN"
    ADJUSTMENT_OUT = "ADJUSTMENT_OUT"

    @property
    def sign(self) -> int:
        return -1 if self in OUTBOUND_TYPES else 1


OUTBOUND_TYPES = frozenset({StockMovementType.SALE, StockMovementType.ADJUSTMENT_OUT})


class StockMovement(BaseModel, Base):
    """
    Append-only audit row for one inventory change.
    quantity is always a positive magnitude; the type carries the direction.
    """
    __tablename__ = "stock_movements"

    inventory_id = Column(String(36), ForeignKey("inventory.id", ondelete="CASCADE"), nullable=False)
    type = Column(SAEnum(StockMovementType, name="stock_movement_type", native_enum=False), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=True)
    # Correlation id: purchase id or a synthetic RESTOCK-/ADJUST- tag
    reference = Column(String(100), nullable=True, index=True)

    inventory = relationship("Inventory", back_populates="stock_movements")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        Index("ix_stock_movements_inventory_created", "inventory_id", "created_at"),
    )

    @property
    def delta(self) -> int:
        return StockMovementType(self.type).sign * self.quantity
