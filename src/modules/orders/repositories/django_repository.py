"""Django ORM implementation of the Order repository.

Writes route through the ``TransactionScope`` alias and are wrapped in
``transaction.atomic()``: inside a coordinated transaction that is a
savepoint, on its own it is a complete transaction.

Concurrency control uses ``select_for_update()`` on the order row (no
``version`` field exists on the model): status writes and item changes
lock the order first, so ``total_amount`` is always recomputed from the
items visible to the lock holder.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Sum
from django.utils import timezone

from modules.core.transactions import TransactionScope
from modules.orders.exceptions import OrderItemNotFound
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.operations import ItemLine
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


def _alias(scope: Optional[TransactionScope]) -> str:
    return scope.using if scope is not None else DEFAULT_DB_ALIAS


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    def create(
        self, data: Dict[str, Any], scope: Optional[TransactionScope] = None
    ) -> Order:
        """Create an order with its items.

        ``data`` keys:
        - ``customer_id`` (required)
        - ``items`` (required): sequence of ``ItemLine``
        - ``idempotency_key`` (optional)
        - ``notes`` (optional)
        """
        using = _alias(scope)
        with transaction.atomic(using=using):
            order = Order(
                customer_id=data["customer_id"],
                idempotency_key=data.get("idempotency_key"),
                notes=data.get("notes", ""),
            )
            order.save(using=using)

            total = Decimal("0.00")
            items = data.get("items", ())
            for line in items:
                item = self._build_item(order.id, line)
                item.save(using=using)
                total += item.subtotal

            order.total_amount = total
            order.save(using=using, update_fields=["total_amount", "updated_at"])

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            item_count=len(items),
            total=str(total),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        ``select_related`` for the customer and ``prefetch_related`` for
        items (with product) and status history prevent N+1 queries.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._eager(Order.objects.all()).filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(
        self, id: str, scope: Optional[TransactionScope] = None
    ) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must run inside a transaction.  Returns ``None`` for non-existent
        or invalid IDs.
        """
        try:
            return (
                Order.objects.using(_alias(scope))
                .select_for_update()
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters.

        Supported filter keys include ``status``, ``customer_id`` and
        ``created_at__range``.
        """
        queryset = self._eager(Order.objects.all())
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_by_customer(self, customer_id: str) -> List[Order]:
        try:
            return self.list({"customer_id": customer_id})
        except (ValueError, ValidationError):
            return []

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self._eager(Order.objects.all()).filter(idempotency_key=key).first()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist (create or update) an order."""
        entity.save()
        logger.info("order.saved", order_id=str(entity.id))
        return entity

    def update_status(
        self, order: Order, status: str, scope: Optional[TransactionScope] = None
    ) -> Order:
        order.status = status
        order.save(using=_alias(scope), update_fields=["status", "updated_at"])
        return order

    def add_item(
        self, order_id: UUID, line: ItemLine, scope: Optional[TransactionScope] = None
    ) -> OrderItem:
        item = self._build_item(order_id, line)
        item.save(using=_alias(scope))
        logger.info(
            "order.item_added",
            order_id=str(order_id),
            item_id=str(item.id),
            product_id=str(line.product_id),
            quantity=line.quantity,
        )
        return item

    def remove_item(
        self, order_id: UUID, item_id: UUID, scope: Optional[TransactionScope] = None
    ) -> None:
        try:
            deleted, _ = (
                OrderItem.objects.using(_alias(scope))
                .filter(order_id=order_id, id=item_id)
                .delete()
            )
        except (ValueError, ValidationError):
            deleted = 0
        if not deleted:
            raise OrderItemNotFound(
                f"Item {item_id} not found in order {order_id}."
            )
        logger.info("order.item_removed", order_id=str(order_id), item_id=str(item_id))

    def recompute_total(
        self, order_id: UUID, scope: Optional[TransactionScope] = None
    ) -> Decimal:
        using = _alias(scope)
        total = (
            OrderItem.objects.using(using)
            .filter(order_id=order_id)
            .aggregate(total=Sum("subtotal"))["total"]
        )
        if total is None:
            total = Decimal("0.00")
        Order.objects.using(using).filter(id=order_id).update(
            total_amount=total, updated_at=timezone.now()
        )
        return total

    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        scope: Optional[TransactionScope] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
        )
        history.save(using=_alias(scope))

        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _eager(queryset):
        return queryset.select_related("customer").prefetch_related(
            "items__product", "status_history"
        )

    @staticmethod
    def _build_item(order_id: UUID, line: ItemLine) -> OrderItem:
        return OrderItem(
            order_id=order_id,
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
        )
