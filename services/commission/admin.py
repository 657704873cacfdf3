import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.commission import CommissionCRUD
from api.crud.commission.schema import CommissionPaymentUpdate, TierCreate
from api.crud.errors import InvalidTransition
from api.models import Commission, CommissionStatus, CommissionTier
from api.models.base import utcnow
from services.settlement.factories import build_tier


class CommissionAdminService:
    def __init__(self, session: AsyncSession, commissions: CommissionCRUD | None = None):
        self.session = session
        self.commissions = commissions or CommissionCRUD()

    async def mark_paid(self, commission_id: uuid.UUID, dto: CommissionPaymentUpdate) -> Commission:
        """approved -> paid, recording how the partner was paid out."""
        commission = await self.commissions.get_commission(commission_id, self.session)
        moved = await self.commissions.set_commission_status(
            commission.id,
            CommissionStatus.approved,
            {
                "status": CommissionStatus.paid,
                "payment_method": dto.payment_method,
                "payment_reference": dto.reference,
                "payment_date": utcnow(),
            },
            self.session,
        )
        if not moved:
            message = f"Commission {commission.commission_code} is {commission.status.value}, only approved commissions can be paid"
            await self.session.rollback()
            raise InvalidTransition(message)
        await self.session.commit()
        await self.session.refresh(commission)
        logging.info(f"Commission {commission.commission_code} marked paid ({dto.payment_method.value}, {dto.reference})")
        return commission

    async def create_tier(self, dto: TierCreate) -> CommissionTier:
        tier = build_tier(**dto.model_dump(exclude_none=True))
        return await self.commissions.add_tier(tier, self.session)

    async def list_tiers(self) -> list[CommissionTier]:
        return await self.commissions.list_tiers(self.session)
