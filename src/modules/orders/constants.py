"""Order status choices and the status state machine.

Only forward edges exist; a status never regresses.  ``CANCELLED``,
``REFUNDED`` and ``FAILED`` have no outgoing edges and ``DELIVERED`` can
only move to ``REFUNDED``.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    PREPARING = "PREPARING", "Preparing"
    READY = "READY", "Ready"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"
    REFUNDED = "REFUNDED", "Refunded"
    FAILED = "FAILED", "Failed"


VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.FAILED}
    ),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PREPARING, OrderStatus.CANCELLED, OrderStatus.FAILED}
    ),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.FAILED}),
    OrderStatus.READY: frozenset({OrderStatus.SHIPPED, OrderStatus.FAILED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.FAILED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}

TERMINAL_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
        OrderStatus.FAILED,
    }
)

# Item mutation is only allowed while the order is still open.
MUTABLE_STATES: frozenset[str] = frozenset({OrderStatus.PENDING})

ORDER_NUMBER_MAX_RETRIES = 5


def is_valid_transition(current: str, target: str) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())
