import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from api.models.order import OrderStatus


class OrderItemCreate(BaseModel):
    listing_id: uuid.UUID = Field(alias="listingId")
    quantity: int = Field(gt=0)

    class Config:
        extra = "forbid"
        populate_by_name = True


class OrderCreate(BaseModel):
    items: list[OrderItemCreate] = Field(min_length=1)

    class Config:
        extra = "forbid"


class OrderItemRead(BaseModel):
    id: uuid.UUID
    listing_id: uuid.UUID
    farmer_id: uuid.UUID
    quantity: int
    price: int

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: uuid.UUID
    buyer_id: uuid.UUID
    items: list[OrderItemRead]
    total: int
    currency: str
    status: OrderStatus
    created_at: datetime
    paid_at: datetime | None = None

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatus

    class Config:
        extra = "forbid"
