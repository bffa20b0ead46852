from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Numeric,
    String,
    Text,
    func,
    true,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base


class SweetCategory(str, Enum):
    CHOCOLATES = "CHOCOLATES"
    CANDIES = "CANDIES"
    CAKES = "CAKES"
    COOKIES = "COOKIES"
    PASTRIES = "PASTRIES"
    ICE_CREAM = "ICE_CREAM"
    GUMMIES = "GUMMIES"
    HARD_CANDIES = "HARD_CANDIES"
    LOLLIPOPS = "LOLLIPOPS"
    TRUFFLES = "TRUFFLES"


class Sweet(BaseModel, Base):
    __tablename__ = "sweets"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(SAEnum(SweetCategory, name="sweet_category", native_enum=False), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    # Deactivated rather than deleted once purchase history exists
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    inventory = relationship(
        "Inventory",
        back_populates="sweet",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    purchases = relationship("Purchase", back_populates="sweet", passive_deletes="all")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_sweets_price_nonnegative"),
        # Case-insensitive name uniqueness among active sweets only
        Index(
            "uq_sweets_active_name",
            func.lower(name),
            unique=True,
            sqlite_where=is_active == true(),
            postgresql_where=is_active == true(),
        ),
        Index("ix_sweets_category", "category"),
    )
