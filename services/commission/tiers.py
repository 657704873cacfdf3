import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.commission import CommissionCRUD
from api.crud.transaction import TransactionCRUD
from api.models import CommissionTier, TierStatus, TransactionType
from api.models.base import utcnow


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def tier_matches(tier: CommissionTier, count: int, now: datetime) -> bool:
    if tier.status != TierStatus.active:
        return False
    if count < tier.min_transactions:
        return False
    if tier.max_transactions is not None and count >= tier.max_transactions:
        return False
    if _aware(tier.effective_date) > now:
        return False
    expiry = _aware(tier.expiry_date)
    if expiry is not None and now >= expiry:
        return False
    return True


def select_tier(tiers: Iterable[CommissionTier], count: int, now: datetime | None = None) -> CommissionTier | None:
    """
    Picks the tier for a partner with ``count`` completed commissions.
    Overlapping tiers resolve to the one with the highest min_transactions.
    """
    now = _aware(now or utcnow())
    matching = [tier for tier in tiers if tier_matches(tier, count, now)]
    if not matching:
        return None
    return max(matching, key=lambda tier: tier.min_transactions)


class CommissionRateResolver:
    def __init__(
        self,
        default_rate: Decimal,
        commissions: CommissionCRUD | None = None,
        ledger: TransactionCRUD | None = None,
    ):
        self.default_rate = default_rate
        self.commissions = commissions or CommissionCRUD()
        self.ledger = ledger or TransactionCRUD()

    async def resolve(self, partner_id: uuid.UUID, session: AsyncSession, now: datetime | None = None) -> Decimal:
        count = await self.ledger.count_completed(partner_id, TransactionType.commission, session)
        tiers = await self.commissions.active_tiers(session)
        tier = select_tier(tiers, count, now)
        if tier is None:
            return self.default_rate
        logging.info(f"Partner {partner_id} falls into tier {tier.tier_code} after {count} commissions")
        return Decimal(tier.commission_rate)
