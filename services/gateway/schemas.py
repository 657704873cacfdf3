import enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class VerificationStatus(str, enum.Enum):
    success = "success"
    failed = "failed"
    # gateway has not reached a final state yet
    pending = "pending"


class GatewaySession(BaseModel):
    authorization_url: str
    reference: str
    amount: int
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VerificationResult(BaseModel):
    status: VerificationStatus
    reference: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
