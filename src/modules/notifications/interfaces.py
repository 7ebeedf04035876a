"""Notifier contract.

A notifier delivers one kind of message about an order to its customer.
Implementations raise on delivery failure; callers decide whether a
failure matters (the order lifecycle never waits on it).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from modules.orders.models import Order


@runtime_checkable
class INotifier(Protocol):
    def send_order_confirmation(self, order: Order) -> None:
        """Tell the customer the order was placed."""

    def send_order_status_update(self, order: Order) -> None:
        """Tell the customer the order moved to ``order.status``."""
