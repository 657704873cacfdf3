from fastapi import APIRouter
from .routers.checkout import router as CheckoutRouter
from .routers.history import router as HistoryRouter
from .routers.webhook import router as WebhookRouter

router = APIRouter()
public_router = APIRouter()

router.include_router(CheckoutRouter, tags=["Payments"])
router.include_router(HistoryRouter, tags=["Payments"])
public_router.include_router(WebhookRouter, tags=["Payment webhooks"])
