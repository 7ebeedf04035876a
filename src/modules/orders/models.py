"""Order, OrderItem and OrderStatusHistory models.

- ``Order.total_amount`` always equals the sum of its items' subtotals
  after any committed engine operation; it is written only by the order
  repository, never computed lazily by callers.
- ``OrderItem.unit_price`` is a snapshot of the product price when the
  item was added and never changes afterwards.  ``subtotal`` is
  ``quantity * unit_price``, computed on save.
- Orders are never deleted; terminal statuses mark the end of the
  lifecycle.  Items are hard-deleted when removed from a pending order.
- ``OrderStatusHistory`` is an append-only audit trail written in the
  same transaction as the status change.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    MUTABLE_STATES,
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    OrderStatus,
    is_valid_transition,
)


class Order(BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier generated on first
    save (``ORD-YYYYMMDD-XXXXXX``); the UUIDv7 ``id`` is used everywhere
    else.  ``idempotency_key`` is only set for orders created through the
    API with an ``Idempotency-Key`` header.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    customer: models.ForeignKey = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    notes: models.TextField = models.TextField(blank=True, default="")
    idempotency_key: models.CharField = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def accepts_item_changes(self) -> bool:
        return self.status in MUTABLE_STATES

    def can_transition_to(self, new_status: str) -> bool:
        return is_valid_transition(self.status, new_status)

    def items_total(self) -> Decimal:
        """Sum of the persisted items' subtotals."""
        total = self.items.aggregate(total=models.Sum("subtotal"))["total"]
        return total if total is not None else Decimal("0.00")

    @staticmethod
    def generate_order_number() -> str:
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            using = kwargs.get("using") or "default"
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.using(using).filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item: a product, a quantity and the price frozen at add time."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        validators=[MinValueValidator(1)]
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, editable=False
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self.unit_price is None:
            raise ValidationError({"unit_price": "A price snapshot is required."})
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_id} x{self.quantity} @ {self.unit_price}"


class OrderStatusHistory(BaseModel):
    """Immutable record of one status change (``old_status`` is ``None``
    for the creation entry)."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20, choices=OrderStatus.choices
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}: {self.old_status} -> {self.new_status}"
