from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.errors import PartnerNotFound
from api.crud.partner import PartnerService
from api.database import get_session
from api.models import Partner, User, UserRole
from api.security import require_roles
from config import Settings, get_settings
from services.commission.admin import CommissionAdminService
from services.commission.ledger import LedgerQueryService
from services.commission.withdrawals import WithdrawalProcessor


def get_withdrawal_processor(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> WithdrawalProcessor:
    return WithdrawalProcessor(session, settings)


def get_ledger_queries(session: AsyncSession = Depends(get_session)) -> LedgerQueryService:
    return LedgerQueryService(session)


def get_commission_admin(session: AsyncSession = Depends(get_session)) -> CommissionAdminService:
    return CommissionAdminService(session)


async def get_current_partner(
    user: User = Depends(require_roles(UserRole.partner)),
    session: AsyncSession = Depends(get_session),
) -> Partner:
    try:
        return await PartnerService().get_partner_by_user(user.id, session)
    except PartnerNotFound as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())
