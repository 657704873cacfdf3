import hashlib
import hmac
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PayloadError

from api.crud.errors import UnknownReference
from api.routers.payments import get_settlement_engine
from config import Settings, get_settings
from services.settlement import SettlementEngine
from ..schemas import PaymentCallback

router = APIRouter()


def signature_is_valid(body: bytes, signature: str, secret: str) -> bool:
    expected = hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


@router.post("/verify", status_code=status.HTTP_200_OK)
async def verify_payment(
    request: Request,
    engine: SettlementEngine = Depends(get_settlement_engine),
    settings: Settings = Depends(get_settings),
):
    """
    Payment gateway callback.

    Answers 200 for every delivery it can authenticate, including replays
    and unknown references, so the gateway does not keep retrying. The
    payment status is re-verified with the gateway; the body is only used
    for the reference.

    Headers:
    - X-Paystack-Signature: hex HMAC-SHA512 of the raw body with the webhook secret
    """
    body = await request.body()
    signature = request.headers.get("x-paystack-signature")
    secret = settings.env.PAYSTACK_WEBHOOK_SECRET or settings.env.PAYSTACK_SECRET_KEY
    if not signature or not secret:
        if not settings.env.DEBUG:
            return JSONResponse(status_code=400, content={"status": "error", "message": "Missing webhook signature"})
    elif not signature_is_valid(body, signature, secret):
        return JSONResponse(status_code=400, content={"status": "error", "message": "Invalid webhook signature"})

    try:
        callback = PaymentCallback.model_validate_json(body or b"{}")
    except PayloadError as e:
        logging.warning(f"Unreadable payment callback: {e}")
        return {"status": "error"}

    reference = callback.resolved_reference()
    if not reference:
        logging.warning(f"Payment callback without a reference (event={callback.event})")
        return {"status": "error"}

    try:
        outcome = await engine.confirm_payment(reference)
        return {"status": "ok", "outcome": outcome.value}
    except UnknownReference:
        logging.warning(f"Payment callback for unknown reference {reference}")
        return {"status": "error"}
    except Exception as e:
        # The order stays pending; a redelivery or reconciliation picks it up
        logging.exception(f"Error confirming payment {reference}: {e}")
        return {"status": "error"}
