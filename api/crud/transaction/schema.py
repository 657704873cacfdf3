import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from api.models.transaction import TransactionStatus, TransactionType


class TransactionRead(BaseModel):
    id: uuid.UUID
    type: TransactionType
    status: TransactionStatus
    amount: int
    currency: str
    reference: str
    description: str
    order_id: Optional[uuid.UUID] = None
    partner_id: Optional[uuid.UUID] = None
    payment_provider: str
    metadata_json: Dict[str, Any]
    processed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
