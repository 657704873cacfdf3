import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from pydantic import BaseModel, Field, model_validator

from api.models.commission import (
    CommissionSource,
    CommissionStatus,
    PaymentMethod,
    TierStatus,
    WithdrawalStatus,
)


class CommissionRead(BaseModel):
    id: uuid.UUID
    commission_code: str
    partner_id: uuid.UUID
    referral_id: uuid.UUID | None = None
    transaction_id: uuid.UUID
    source_reference: str
    transaction_type: CommissionSource
    transaction_amount: int
    commission_rate: Decimal
    commission_amount: int
    currency: str
    status: CommissionStatus
    payment_method: PaymentMethod | None = None
    payment_reference: str | None = None
    payment_date: datetime | None = None
    due_date: datetime
    description: str
    created_at: datetime

    class Config:
        from_attributes = True


class CommissionPaymentUpdate(BaseModel):
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    reference: str = Field(min_length=1)

    class Config:
        extra = "forbid"
        populate_by_name = True


class TierCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(default="", max_length=500)
    min_transactions: int = Field(ge=0, alias="minTransactions")
    max_transactions: int | None = Field(default=None, ge=0, alias="maxTransactions")
    commission_rate: Decimal = Field(ge=0, le=1, alias="commissionRate")
    bonus_rate: Decimal | None = Field(default=None, ge=0, le=1, alias="bonusRate")
    status: TierStatus = TierStatus.active
    effective_date: datetime | None = Field(default=None, alias="effectiveDate")
    expiry_date: datetime | None = Field(default=None, alias="expiryDate")

    class Config:
        extra = "forbid"
        populate_by_name = True

    @model_validator(mode="after")
    def check_bounds(self):
        if self.max_transactions is not None and self.max_transactions <= self.min_transactions:
            raise ValueError("maxTransactions must be greater than minTransactions")
        if self.effective_date and self.expiry_date and self.expiry_date <= self.effective_date:
            raise ValueError("expiryDate must be after effectiveDate")
        return self


class TierRead(BaseModel):
    id: uuid.UUID
    tier_code: str
    name: str
    description: str
    min_transactions: int
    max_transactions: int | None = None
    commission_rate: Decimal
    bonus_rate: Decimal | None = None
    status: TierStatus
    effective_date: datetime
    expiry_date: datetime | None = None

    class Config:
        from_attributes = True


class WithdrawalCreate(BaseModel):
    amount: int = Field(gt=0)
    payment_method: PaymentMethod = Field(default=PaymentMethod.bank_transfer, alias="paymentMethod")
    destination: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = "forbid"
        populate_by_name = True


class WithdrawalFailure(BaseModel):
    reason: str = Field(min_length=1)

    class Config:
        extra = "forbid"


class WithdrawalRead(BaseModel):
    id: uuid.UUID
    withdrawal_code: str
    partner_id: uuid.UUID
    amount: int
    currency: str
    payment_method: PaymentMethod
    destination: Dict[str, Any]
    processing_fee: int
    net_amount: int
    status: WithdrawalStatus
    transaction_reference: str
    failure_reason: str | None = None
    requested_at: datetime
    processed_at: datetime | None = None
    completed_at: datetime | None = None

    class Config:
        from_attributes = True
