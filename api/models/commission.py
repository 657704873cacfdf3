import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import UUID, DateTime, Enum, ForeignKey, Index, Integer, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class CommissionStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    paid = "paid"
    rejected = "rejected"
    cancelled = "cancelled"


class CommissionSource(enum.Enum):
    harvest = "harvest"
    marketplace = "marketplace"
    fintech = "fintech"
    subscription = "subscription"
    other = "other"


class PaymentMethod(enum.Enum):
    bank_transfer = "bank_transfer"
    mobile_money = "mobile_money"
    wallet = "wallet"
    check = "check"
    other = "other"


class WithdrawalStatus(enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class TierStatus(enum.Enum):
    active = "active"
    inactive = "inactive"
    archived = "archived"


class Commission(Base):
    __tablename__ = "commissions"
    __table_args__ = (
        Index("ix_commissions_partner_status", "partner_id", "status"),
        Index("ix_commissions_due_status", "due_date", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    commission_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    partner_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    referral_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("referrals.id"), nullable=True)
    # The commission ledger transaction; one Commission per commission transaction
    transaction_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("transactions.id"), nullable=False, unique=True)
    source_reference: Mapped[str] = mapped_column(String, nullable=False, index=True)
    transaction_type: Mapped[CommissionSource] = mapped_column(Enum(CommissionSource), nullable=False)
    transaction_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    commission_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="NGN")
    status: Mapped[CommissionStatus] = mapped_column(Enum(CommissionStatus), default=CommissionStatus.pending, nullable=False)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(Enum(PaymentMethod), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    partner: Mapped["Partner"] = relationship()


class CommissionTier(Base):
    __tablename__ = "commission_tiers"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tier_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    min_transactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_transactions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    bonus_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 4), nullable=True)
    status: Mapped[TierStatus] = mapped_column(Enum(TierStatus), default=TierStatus.active, nullable=False, index=True)
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class CommissionWithdrawal(Base):
    __tablename__ = "commission_withdrawals"
    __table_args__ = (
        Index("ix_withdrawals_partner_status", "partner_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    withdrawal_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    partner_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="NGN")
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), nullable=False)
    destination: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    processing_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[WithdrawalStatus] = mapped_column(Enum(WithdrawalStatus), default=WithdrawalStatus.pending, nullable=False)
    transaction_reference: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    partner: Mapped["Partner"] = relationship()
