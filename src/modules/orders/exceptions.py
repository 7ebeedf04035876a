"""Order lifecycle exceptions.

Raised by ``OrderService`` before or inside a coordinated transaction.
Errors raised inside a transaction reach the caller unchanged after the
rollback; the API layer maps each kind to an HTTP status.

``ProductNotFound`` and ``InsufficientStock`` belong to the product stock
store and are re-exported here so callers import the whole taxonomy from
one place.
"""

from __future__ import annotations

from modules.products.exceptions import InsufficientStock, ProductNotFound


class OrderError(Exception):
    """Base class for order lifecycle failures."""


class InvalidOrderData(OrderError):
    """The order request is malformed (no items, bad quantity, ...)."""


class InvalidOrderItemData(OrderError):
    """An item request is malformed."""


class OrderNotFound(OrderError):
    """The requested order does not exist."""


class OrderItemNotFound(OrderError):
    """The item does not exist or does not belong to the order."""


class OrderStatusInvalid(OrderError):
    """The status is unknown, the transition is not allowed, or the
    operation requires a status the order no longer has."""


class CustomerNotFound(OrderError):
    """The customer referenced by the order does not exist."""


__all__ = [
    "CustomerNotFound",
    "InsufficientStock",
    "InvalidOrderData",
    "InvalidOrderItemData",
    "OrderError",
    "OrderItemNotFound",
    "OrderNotFound",
    "OrderStatusInvalid",
    "ProductNotFound",
]
