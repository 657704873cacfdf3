import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.errors import InvalidTransition, ListingNotFound, OrderNotFound, ValidationError
from api.models import Listing, ListingStatus, Order, OrderItem, OrderStatus
from api.models.base import utcnow
from .schema import OrderCreate
from .state_machine import MANUAL_TARGETS, allowed_from, can_transition


class OrderCRUD:
    async def create_order(self, buyer_id: uuid.UUID, dto: OrderCreate, session: AsyncSession, currency: str = "NGN") -> Order:
        """
        Creates a pending order, snapshotting each listing's unit price.
        The order total is the sum of the line subtotals.
        """
        listing_ids = [item.listing_id for item in dto.items]
        res = await session.execute(select(Listing).where(Listing.id.in_(listing_ids)))
        listings = {listing.id: listing for listing in res.scalars().all()}

        items = []
        for item in dto.items:
            listing = listings.get(item.listing_id)
            if not listing:
                raise ListingNotFound(f"Listing {item.listing_id} not found")
            if listing.status != ListingStatus.active:
                raise ValidationError(f"Listing {listing.id} is not available")
            if item.quantity > listing.quantity:
                raise ValidationError(f"Only {listing.quantity} units of listing {listing.id} available")
            items.append(OrderItem(
                listing_id=listing.id,
                farmer_id=listing.farmer_id,
                quantity=item.quantity,
                price=listing.price,
            ))

        order = Order(
            buyer_id=buyer_id,
            items=items,
            total=sum(i.quantity * i.price for i in items),
            currency=currency,
            status=OrderStatus.pending,
        )
        session.add(order)
        await session.commit()
        await session.refresh(order)
        return order

    async def get_order(self, order_id: uuid.UUID, session: AsyncSession) -> Order:
        order = await session.get(Order, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        return order

    async def mark_paid(self, order_id: uuid.UUID, session: AsyncSession) -> bool:
        """pending -> paid. Returns False when the order was not pending. Does not commit."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.pending)
            .values(status=OrderStatus.paid, paid_at=utcnow(), updated_at=utcnow())
            .returning(Order.id)
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none() is not None

    async def update_status(self, order_id: uuid.UUID, target: OrderStatus, session: AsyncSession) -> Order:
        order = await self.get_order(order_id, session)
        if target not in MANUAL_TARGETS or not can_transition(order.status, target):
            allowed = ", ".join(s.value for s in allowed_from(order.status) if s in MANUAL_TARGETS)
            raise InvalidTransition(
                f"Invalid order transition: {order.status.value} -> {target.value}. Allowed: [{allowed}]"
            )
        # Compare-and-set so a concurrent settlement cannot be overwritten
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == order.status)
            .values(status=target, updated_at=utcnow())
            .returning(Order.id)
        )
        res = await session.execute(stmt)
        if res.scalar_one_or_none() is None:
            await session.rollback()
            raise InvalidTransition(f"Order {order_id} changed status concurrently")
        await session.commit()
        await session.refresh(order)
        return order
