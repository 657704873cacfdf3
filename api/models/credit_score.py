import uuid
from datetime import datetime
from typing import List

from sqlalchemy import UUID, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class CreditScore(Base):
    __tablename__ = "credit_scores"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False, unique=True)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    entries: Mapped[List["CreditScoreEntry"]] = relationship(
        back_populates="credit_score", lazy="selectin", order_by="CreditScoreEntry.recorded_at"
    )


class CreditScoreEntry(Base):
    __tablename__ = "credit_score_entries"
    __table_args__ = (
        UniqueConstraint("credit_score_id", "transaction_reference", name="uq_credit_entry_reference"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    credit_score_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("credit_scores.id"), nullable=False)
    transaction_reference: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    credit_score: Mapped["CreditScore"] = relationship(back_populates="entries")
