"""Transactional operations on the Order aggregate.

The engine describes each multi-record mutation as a small immutable
value (``NewOrder``, ``OrderItemChange``) and ``OrderWriter`` executes it
against the order and product stores inside the transaction opened by
the ``TransactionCoordinator``.  Nothing here opens a transaction itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional, Tuple
from uuid import UUID

import structlog

from modules.orders.constants import OrderStatus, is_valid_transition
from modules.orders.exceptions import OrderNotFound, OrderStatusInvalid

if TYPE_CHECKING:
    from modules.core.transactions import TransactionScope
    from modules.orders.models import Order, OrderItem
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ItemLine:
    """A product, a quantity and the unit price captured for it."""

    product_id: UUID
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class StockAdjustment:
    """Change a product's stock by ``delta`` (negative reserves)."""

    product_id: UUID
    delta: int


def _ordered(adjustments: Iterable[StockAdjustment]) -> Tuple[StockAdjustment, ...]:
    # A stable product order keeps concurrent transactions from deadlocking.
    return tuple(sorted(adjustments, key=lambda adj: str(adj.product_id)))


@dataclass(frozen=True)
class NewOrder:
    customer_id: UUID
    lines: Tuple[ItemLine, ...]
    notes: str = ""
    idempotency_key: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), Decimal("0.00"))

    @property
    def stock_adjustments(self) -> Tuple[StockAdjustment, ...]:
        return _ordered(
            StockAdjustment(line.product_id, -line.quantity) for line in self.lines
        )


@dataclass(frozen=True)
class OrderItemChange:
    """Items to add to / remove from a pending order and the stock that moves
    with them."""

    order_id: UUID
    add: Tuple[ItemLine, ...] = ()
    remove: Tuple[UUID, ...] = ()
    stock_adjustments: Tuple[StockAdjustment, ...] = ()

    @classmethod
    def adding(cls, order_id: UUID, line: ItemLine) -> OrderItemChange:
        return cls(
            order_id=order_id,
            add=(line,),
            stock_adjustments=(StockAdjustment(line.product_id, -line.quantity),),
        )

    @classmethod
    def removing(cls, order_id: UUID, item: OrderItem) -> OrderItemChange:
        return cls(
            order_id=order_id,
            remove=(item.id,),
            stock_adjustments=(StockAdjustment(item.product_id, item.quantity),),
        )


class OrderWriter:
    """Executes order operations against the stores of one transaction."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
    ) -> None:
        self._orders = order_repository
        self._products = product_repository

    def create(self, scope: TransactionScope, new_order: NewOrder) -> Order:
        """Persist the order, its items and its creation history entry, then
        reserve stock for every line."""
        order = self._orders.create(
            {
                "customer_id": new_order.customer_id,
                "items": new_order.lines,
                "notes": new_order.notes,
                "idempotency_key": new_order.idempotency_key,
            },
            scope=scope,
        )
        self._orders.add_history(
            order_id=order.id,
            status=OrderStatus.PENDING,
            notes="Order created",
            old_status=None,
            scope=scope,
        )
        self._apply_stock(scope, new_order.stock_adjustments)
        return order

    def apply(self, scope: TransactionScope, change: OrderItemChange) -> Order:
        """Apply an item change to a locked, still pending order and
        recompute its total."""
        order = self._lock(scope, change.order_id)
        if not order.accepts_item_changes:
            raise OrderStatusInvalid(
                f"Items can only change while the order is {OrderStatus.PENDING}; "
                f"order {order.id} is {order.status}."
            )

        for item_id in change.remove:
            self._orders.remove_item(order.id, item_id, scope=scope)
        for line in change.add:
            self._orders.add_item(order.id, line, scope=scope)
        self._apply_stock(scope, change.stock_adjustments)

        total = self._orders.recompute_total(order.id, scope=scope)
        logger.info(
            "order.items_changed",
            order_id=str(order.id),
            added=len(change.add),
            removed=len(change.remove),
            total=str(total),
        )
        return order

    def change_status(
        self,
        scope: TransactionScope,
        order_id: UUID,
        new_status: str,
        notes: str = "",
    ) -> Order:
        """Write a status transition, re-validated against the locked row."""
        order = self._lock(scope, order_id)
        if not is_valid_transition(order.status, new_status):
            raise OrderStatusInvalid(
                f"Cannot transition from {order.status} to {new_status}."
            )
        old_status = order.status
        self._orders.update_status(order, new_status, scope=scope)
        self._orders.add_history(
            order_id=order.id,
            status=new_status,
            notes=notes,
            old_status=old_status,
            scope=scope,
        )
        return order

    def _lock(self, scope: TransactionScope, order_id: UUID) -> Order:
        order = self._orders.get_for_update(str(order_id), scope=scope)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _apply_stock(
        self, scope: TransactionScope, adjustments: Iterable[StockAdjustment]
    ) -> None:
        for adjustment in _ordered(adjustments):
            remaining = self._products.adjust_stock(
                str(adjustment.product_id), adjustment.delta, scope=scope
            )
            logger.info(
                "order.stock_reserved" if adjustment.delta < 0 else "order.stock_released",
                product_id=str(adjustment.product_id),
                quantity=abs(adjustment.delta),
                remaining=remaining,
            )
