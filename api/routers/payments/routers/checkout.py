from fastapi import APIRouter, Depends, HTTPException

from api.crud.errors import SettlementError
from api.models import User
from api.routers.payments import get_settlement_engine
from api.security import get_current_user
from services.settlement import SettlementEngine
from ..schemas import InitializePayment, InitializePaymentResponse, PaymentEnvelope

router = APIRouter()


@router.post("/initialize", response_model=InitializePaymentResponse)
async def initialize_payment(
    dto: InitializePayment,
    user: User = Depends(get_current_user),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    """
    Opens a hosted payment session for a pending order and records the
    pending payment transaction.

    Status codes:
    - 200: session opened, `payment.data.authorization_url` is the checkout link
    - 403: the order belongs to another buyer
    - 404: order not found
    - 409: order is not pending
    - 502: payment gateway unavailable
    """
    try:
        session = await engine.initiate_payment(dto.order_id, dto.email, user)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())
    return InitializePaymentResponse(payment=PaymentEnvelope(data=session))
