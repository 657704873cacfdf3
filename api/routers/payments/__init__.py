from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_session
from config import Settings, get_settings
from services.gateway import PaymentGateway, get_payment_gateway
from services.settlement import SettlementEngine


def get_settlement_engine(
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
) -> SettlementEngine:
    return SettlementEngine(session, gateway, settings)
