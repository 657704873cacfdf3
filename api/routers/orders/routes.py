import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.errors import PermissionDenied, SettlementError
from api.crud.order import OrderCRUD
from api.crud.order.schema import OrderCreate, OrderRead, OrderStatusUpdate
from api.database import get_session
from api.models import Order, OrderStatus, User, UserRole
from api.security import get_current_user, require_roles
from config import Settings, get_settings

router = APIRouter()
orders = OrderCRUD()


def _check_access(order: Order, user: User, target: OrderStatus | None = None) -> None:
    if user.role == UserRole.admin:
        return
    is_buyer = order.buyer_id == user.id
    is_seller = any(item.farmer_id == user.id for item in order.items)
    if target is None:
        allowed = is_buyer or is_seller
    elif target == OrderStatus.cancelled:
        allowed = is_buyer
    else:
        allowed = is_seller
    if not allowed:
        raise PermissionDenied("You cannot access this order")


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED, summary="Create an order from listings")
async def create_order(
    dto: OrderCreate,
    user: User = Depends(require_roles(UserRole.buyer)),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """
    Unit prices are taken from the listings at creation time; the total is
    the sum of the line subtotals.
    """
    try:
        return await orders.create_order(user.id, dto, session, currency=settings.env.CURRENCY)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())


@router.get("/{order_id}", response_model=OrderRead, summary="Get an order")
async def get_order(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    try:
        order = await orders.get_order(order_id, session)
        _check_access(order, user)
        return order
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())


@router.patch("/{order_id}/status", response_model=OrderRead, summary="Move an order along its lifecycle")
async def update_order_status(
    order_id: uuid.UUID,
    dto: OrderStatusUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Status codes:
    - 200: status changed
    - 403: buyers may only cancel, sellers may only deliver or complete
    - 409: transition not allowed from the current status (`paid` is set by payment settlement only)
    """
    try:
        order = await orders.get_order(order_id, session)
        _check_access(order, user, dto.status)
        return await orders.update_status(order_id, dto.status, session)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())
