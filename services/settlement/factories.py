"""Pure builders for derived record fields.

Nothing here touches the database; the callers decide when the built
objects are persisted.
"""
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict

from api.models import (
    Commission,
    CommissionSource,
    CommissionStatus,
    CommissionTier,
    CommissionWithdrawal,
    PaymentMethod,
    WithdrawalStatus,
)
from api.models.base import utcnow
from utils.money import apply_rate
from utils.reference import Reference

_codes = Reference()


def commission_amount(base_amount: int, rate: Decimal) -> int:
    return apply_rate(base_amount, rate)


def build_commission(
    *,
    partner_id: uuid.UUID,
    transaction_id: uuid.UUID,
    source_reference: str,
    transaction_amount: int,
    commission_rate: Decimal,
    due_days: int,
    referral_id: uuid.UUID | None = None,
    source: CommissionSource = CommissionSource.marketplace,
    currency: str = "NGN",
    status: CommissionStatus = CommissionStatus.approved,
    now: datetime | None = None,
) -> Commission:
    now = now or utcnow()
    return Commission(
        id=uuid.uuid4(),
        commission_code=_codes.code("COM", source.value),
        partner_id=partner_id,
        referral_id=referral_id,
        transaction_id=transaction_id,
        source_reference=source_reference,
        transaction_type=source,
        transaction_amount=transaction_amount,
        commission_rate=commission_rate,
        commission_amount=commission_amount(transaction_amount, commission_rate),
        currency=currency,
        status=status,
        due_date=now + timedelta(days=due_days),
        description=f"Commission on {source.value} payment {source_reference}",
        created_at=now,
    )


def build_withdrawal(
    *,
    partner_id: uuid.UUID,
    amount: int,
    payment_method: PaymentMethod,
    fee_rate: Decimal,
    transaction_reference: str,
    destination: Dict[str, Any] | None = None,
    currency: str = "NGN",
) -> CommissionWithdrawal:
    fee = apply_rate(amount, fee_rate)
    return CommissionWithdrawal(
        id=uuid.uuid4(),
        withdrawal_code=_codes.code("WD"),
        partner_id=partner_id,
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        destination=dict(destination or {}),
        processing_fee=fee,
        net_amount=amount - fee,
        status=WithdrawalStatus.pending,
        transaction_reference=transaction_reference,
        requested_at=utcnow(),
    )


def build_tier(
    *,
    name: str,
    min_transactions: int,
    commission_rate: Decimal,
    max_transactions: int | None = None,
    bonus_rate: Decimal | None = None,
    description: str = "",
    effective_date: datetime | None = None,
    expiry_date: datetime | None = None,
    **extra,
) -> CommissionTier:
    return CommissionTier(
        id=uuid.uuid4(),
        tier_code=_codes.code("TIER", name, size=4),
        name=name,
        description=description,
        min_transactions=min_transactions,
        max_transactions=max_transactions,
        commission_rate=commission_rate,
        bonus_rate=bonus_rate,
        effective_date=effective_date or utcnow(),
        expiry_date=expiry_date,
        **extra,
    )
