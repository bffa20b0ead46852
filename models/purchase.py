from enum import Enum

from sqlalchemy import Column, String, Integer, ForeignKey, Numeric, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base

MAX_PURCHASE_QUANTITY = 100
MAX_STATS_DAYS = 365


class PurchaseStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


TERMINAL_STATUSES = frozenset({PurchaseStatus.CANCELLED, PurchaseStatus.RETURNED})


class Purchase(BaseModel, Base):
    __tablename__ = "purchases"

    # Uniqueness is enforced here, not by generator entropy
    order_number = Column(String(20), nullable=False, unique=True)
    quantity = Column(Integer, nullable=False, default=1)
    # Snapshot of Sweet.price at purchase time; never recomputed
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        SAEnum(PurchaseStatus, name="purchase_status", native_enum=False),
        nullable=False,
        default=PurchaseStatus.PENDING,
    )

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # RESTRICT: a sweet with purchase history cannot be hard-deleted
    sweet_id = Column(String(36), ForeignKey("sweets.id", ondelete="RESTRICT"), nullable=False)

    user = relationship("User", back_populates="purchases")
    sweet = relationship("Sweet", back_populates="purchases")

    __table_args__ = (
        CheckConstraint(
            f"quantity >= 1 AND quantity <= {MAX_PURCHASE_QUANTITY}",
            name="ck_purchases_quantity_range",
        ),
        Index("ix_purchases_user_created", "user_id", "created_at"),
        Index("ix_purchases_status", "status"),
    )
