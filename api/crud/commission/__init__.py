import uuid
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.errors import CommissionNotFound, WithdrawalNotFound
from api.models import (
    Commission,
    CommissionStatus,
    CommissionTier,
    CommissionWithdrawal,
    TierStatus,
    WithdrawalStatus,
)
from api.models.base import utcnow


class CommissionCRUD:
    async def add_commission(self, commission: Commission, session: AsyncSession) -> Commission:
        session.add(commission)
        await session.flush()
        return commission

    async def get_commission(self, commission_id: uuid.UUID, session: AsyncSession) -> Commission:
        commission = await session.get(Commission, commission_id)
        if not commission:
            raise CommissionNotFound(f"Commission {commission_id} not found")
        return commission

    async def set_commission_status(
        self,
        commission_id: uuid.UUID,
        from_status: CommissionStatus,
        values: dict,
        session: AsyncSession,
    ) -> bool:
        stmt = (
            update(Commission)
            .where(Commission.id == commission_id, Commission.status == from_status)
            .values(**values)
            .returning(Commission.id)
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none() is not None

    async def active_tiers(self, session: AsyncSession) -> list[CommissionTier]:
        res = await session.execute(
            select(CommissionTier)
            .where(CommissionTier.status == TierStatus.active)
            .order_by(CommissionTier.min_transactions.asc())
        )
        return list(res.scalars().all())

    async def list_tiers(self, session: AsyncSession) -> list[CommissionTier]:
        res = await session.execute(select(CommissionTier).order_by(CommissionTier.min_transactions.asc()))
        return list(res.scalars().all())

    async def add_tier(self, tier: CommissionTier, session: AsyncSession) -> CommissionTier:
        session.add(tier)
        await session.commit()
        await session.refresh(tier)
        return tier

    async def add_withdrawal(self, withdrawal: CommissionWithdrawal, session: AsyncSession) -> CommissionWithdrawal:
        session.add(withdrawal)
        await session.flush()
        return withdrawal

    async def get_withdrawal(self, withdrawal_id: uuid.UUID, session: AsyncSession) -> CommissionWithdrawal:
        withdrawal = await session.get(CommissionWithdrawal, withdrawal_id)
        if not withdrawal:
            raise WithdrawalNotFound(f"Withdrawal {withdrawal_id} not found")
        return withdrawal

    async def transition_withdrawal(
        self,
        withdrawal_id: uuid.UUID,
        from_statuses: Iterable[WithdrawalStatus],
        to_status: WithdrawalStatus,
        session: AsyncSession,
        **values,
    ) -> bool:
        """Compare-and-set on the withdrawal status. Does not commit."""
        if to_status == WithdrawalStatus.processing:
            values.setdefault("processed_at", utcnow())
        if to_status == WithdrawalStatus.completed:
            values.setdefault("completed_at", utcnow())
        stmt = (
            update(CommissionWithdrawal)
            .where(
                CommissionWithdrawal.id == withdrawal_id,
                CommissionWithdrawal.status.in_(list(from_statuses)),
            )
            .values(status=to_status, **values)
            .returning(CommissionWithdrawal.id)
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none() is not None

    async def withdrawals_by_status(self, status: WithdrawalStatus, session: AsyncSession) -> list[CommissionWithdrawal]:
        res = await session.execute(
            select(CommissionWithdrawal)
            .where(CommissionWithdrawal.status == status)
            .order_by(CommissionWithdrawal.requested_at.asc())
        )
        return list(res.scalars().all())

    async def withdrawals_for_partner(self, partner_id: uuid.UUID, session: AsyncSession) -> list[CommissionWithdrawal]:
        res = await session.execute(
            select(CommissionWithdrawal)
            .where(CommissionWithdrawal.partner_id == partner_id)
            .order_by(CommissionWithdrawal.requested_at.desc())
        )
        return list(res.scalars().all())
