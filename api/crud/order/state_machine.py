"""Order lifecycle.

    pending -> paid -> delivered -> completed
    pending -> cancelled

Status only moves forward. ``paid`` is reached exclusively through payment
settlement, never through a manual status update.
"""
from api.models.order import OrderStatus


_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.pending: {OrderStatus.paid, OrderStatus.cancelled},
    OrderStatus.paid: {OrderStatus.delivered},
    OrderStatus.delivered: {OrderStatus.completed},
    # Terminal
    OrderStatus.completed: set(),
    OrderStatus.cancelled: set(),
}

MANUAL_TARGETS = {OrderStatus.delivered, OrderStatus.completed, OrderStatus.cancelled}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _TRANSITIONS.get(current, set())


def allowed_from(current: OrderStatus) -> list[OrderStatus]:
    return sorted(_TRANSITIONS.get(current, set()), key=lambda s: s.value)
