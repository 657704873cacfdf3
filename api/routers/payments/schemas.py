import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from api.crud.transaction.schema import TransactionRead
from api.routers.commissions.schemas import Pagination
from services.gateway.schemas import GatewaySession


class InitializePayment(BaseModel):
    order_id: uuid.UUID = Field(alias="orderId")
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=254)

    class Config:
        extra = "forbid"
        populate_by_name = True


class PaymentEnvelope(BaseModel):
    data: GatewaySession


class InitializePaymentResponse(BaseModel):
    status: str = "success"
    payment: PaymentEnvelope


class PaymentCallback(BaseModel):
    """
    Gateway callback. Either ``{"reference": ...}`` or Paystack's event
    envelope ``{"event": "charge.success", "data": {"reference": ...}}``.
    Only the reference is read; the status is always re-verified.
    """
    reference: Optional[str] = None
    event: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def resolved_reference(self) -> str | None:
        if self.reference:
            return self.reference
        if self.data and isinstance(self.data.get("reference"), str):
            return self.data["reference"]
        return None


class TransactionPage(BaseModel):
    transactions: List[TransactionRead]
    pagination: Pagination


class TransactionHistoryResponse(BaseModel):
    status: str = "success"
    history: TransactionPage
