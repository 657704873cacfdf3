import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import UUID, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class UserRole(enum.Enum):
    buyer = "buyer"
    farmer = "farmer"
    partner = "partner"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole, name="userrole"), default=UserRole.buyer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    orders: Mapped[List["Order"]] = relationship(back_populates="buyer")
    partner: Mapped[Optional["Partner"]] = relationship(back_populates="user")
