"""Order repository interface (the Order Store).

Extends ``IRepository[Order]`` with the writes the Order aggregate needs.
Every write accepts an optional ``TransactionScope``; the engine always
passes the scope of the coordinated transaction so the order, its items,
its history and the product stock commit or roll back together.
"""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.core.transactions import TransactionScope
    from modules.orders.models import Order, OrderItem, OrderStatusHistory
    from modules.orders.operations import ItemLine


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(
        self, data: Dict[str, Any], scope: Optional[TransactionScope] = None
    ) -> Order:
        """Create an order with its items.

        ``data`` must include ``customer_id`` and ``items`` (a sequence of
        ``ItemLine``), and optionally ``idempotency_key`` and ``notes``.
        """

    @abstractmethod
    def get_for_update(
        self, id: str, scope: Optional[TransactionScope] = None
    ) -> Optional[Order]:
        """Retrieve an order and lock its row until the transaction ends."""

    @abstractmethod
    def list_by_customer(self, customer_id: str) -> List[Order]:
        """List a customer's orders, newest first."""

    @abstractmethod
    def update_status(
        self, order: Order, status: str, scope: Optional[TransactionScope] = None
    ) -> Order:
        """Persist a new status on *order*."""

    @abstractmethod
    def add_item(
        self, order_id: UUID, line: ItemLine, scope: Optional[TransactionScope] = None
    ) -> OrderItem:
        """Attach a new item to the order."""

    @abstractmethod
    def remove_item(
        self, order_id: UUID, item_id: UUID, scope: Optional[TransactionScope] = None
    ) -> None:
        """Delete an item of the order.

        Raises:
            OrderItemNotFound: the item does not exist or belongs to
                another order.
        """

    @abstractmethod
    def recompute_total(
        self, order_id: UUID, scope: Optional[TransactionScope] = None
    ) -> Decimal:
        """Set ``total_amount`` to the sum of the items' subtotals."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        scope: Optional[TransactionScope] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""
