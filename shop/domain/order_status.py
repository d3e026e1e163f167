# shop/domain/order_status.py
from enum import Enum

from shop.domain.errors import InvalidStatusTransition
from shop.utils import settings


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}

CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}


def can_transition(current: str, target: str) -> bool:
    return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]


def ensure_transition(current: str, target: str, strict: bool | None = None) -> None:
    """Raise InvalidStatusTransition unless current -> target is allowed.

    With strict mode off any known status may be set, which is how orders were
    edited from the admin panel before the table existed.
    """
    strict = settings.STRICT_STATUS_TRANSITIONS if strict is None else strict
    OrderStatus(target)

    if not strict:
        return

    if not can_transition(current, target):
        raise InvalidStatusTransition(current, target)


def can_be_cancelled(status: str) -> bool:
    return OrderStatus(status) in CANCELLABLE
