"""Product stock store exceptions.

Raised by the Product repository and re-exported by the orders module,
so a failure detected during a stock pre-check and one detected by the
guarded decrement inside a transaction are the same exception type.
"""

from __future__ import annotations


class ProductNotFound(Exception):
    """The referenced product does not exist or has been soft-deleted."""


class InsufficientStock(Exception):
    """A reservation would drive a product's stock below zero."""

    def __init__(self, product_id, requested: int, available: int) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}."
        )
