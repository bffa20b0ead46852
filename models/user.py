from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, String, JSON, true
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=False, default=lambda: ["user"])
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    purchases = relationship(
        "Purchase",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @property
    def is_admin(self) -> bool:
        return "admin" in (self.roles or [])
