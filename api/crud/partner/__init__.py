import uuid
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.errors import PartnerNotFound
from api.models import Partner, Referral, ReferralStatus
from api.models.base import utcnow
from .interface import PartnerInterface


class PartnerService(PartnerInterface):
    async def get_partner(self, partner_id: uuid.UUID, session: AsyncSession) -> Partner:
        partner = await session.get(Partner, partner_id)
        if not partner:
            raise PartnerNotFound(f"Partner {partner_id} not found")
        return partner

    async def get_partner_by_user(self, user_id: uuid.UUID, session: AsyncSession) -> Partner:
        res = await session.execute(select(Partner).where(Partner.user_id == user_id))
        partner = res.scalar_one_or_none()
        if not partner:
            raise PartnerNotFound("No partner organisation is linked to this user")
        return partner

    async def get_balance(self, partner_id: uuid.UUID, session: AsyncSession) -> int:
        balance = await session.scalar(select(Partner.commission_balance).where(Partner.id == partner_id))
        if balance is None:
            raise PartnerNotFound(f"Partner {partner_id} not found")
        return balance

    async def credit_balance(self, partner_id: uuid.UUID, amount: int, session: AsyncSession) -> int:
        # relative increment evaluated by the database, never read-modify-write
        stmt = (
            update(Partner)
            .where(Partner.id == partner_id)
            .values(commission_balance=Partner.commission_balance + amount)
            .returning(Partner.commission_balance)
        )
        res = await session.execute(stmt)
        new_value = res.scalar_one_or_none()
        if new_value is None:
            raise PartnerNotFound(f"Partner {partner_id} not found")
        return new_value

    async def reserve_balance(self, partner_id: uuid.UUID, amount: int, session: AsyncSession) -> int | None:
        """
        Decrements the balance only if it covers the amount.
        Returns the new balance, or None when funds are insufficient.
        """
        stmt = (
            update(Partner)
            .where(Partner.id == partner_id, Partner.commission_balance >= amount)
            .values(commission_balance=Partner.commission_balance - amount)
            .returning(Partner.commission_balance)
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def referrals_for_farmers(self, farmer_ids: Iterable[uuid.UUID], session: AsyncSession) -> dict[uuid.UUID, Referral]:
        """Maps each farmer to the partner referral that onboarded them."""
        res = await session.execute(
            select(Referral).where(
                Referral.farmer_id.in_(list(farmer_ids)),
                Referral.status != ReferralStatus.cancelled,
            )
        )
        return {referral.farmer_id: referral for referral in res.scalars().all()}

    async def complete_referral(self, referral_id: uuid.UUID, amount: int, session: AsyncSession) -> None:
        stmt = (
            update(Referral)
            .where(Referral.id == referral_id)
            .values(
                status=ReferralStatus.completed,
                transaction_amount=Referral.transaction_amount + amount,
                completed_at=func.coalesce(Referral.completed_at, utcnow()),
            )
        )
        await session.execute(stmt)
