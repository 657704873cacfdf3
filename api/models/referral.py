import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import UUID, DateTime, Enum, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class ReferralStatus(enum.Enum):
    pending = "pending"
    completed = "completed"
    cancelled = "cancelled"


class Referral(Base):
    """A farmer onboarded by a partner. One onboarding partner per farmer."""
    __tablename__ = "referrals"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    farmer_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, unique=True)
    partner_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("partners.id"), nullable=False, index=True)
    status: Mapped[ReferralStatus] = mapped_column(Enum(ReferralStatus), default=ReferralStatus.pending, nullable=False)
    transaction_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    farmer: Mapped["User"] = relationship(foreign_keys=[farmer_id])
    partner: Mapped["Partner"] = relationship()
