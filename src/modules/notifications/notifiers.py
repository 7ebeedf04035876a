"""Notifier implementations.

``EmailNotifier`` renders a plain-text template and sends it through the
Django mail framework (``EMAIL_BACKEND``).  ``CompositeNotifier`` fans a
message out to every notifier listed in ``ORDER_NOTIFIERS``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional

import structlog
from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string
from django.utils.module_loading import import_string

from modules.notifications.exceptions import NotificationError
from modules.orders.dtos import OrderOutputDTO

if TYPE_CHECKING:
    from modules.notifications.interfaces import INotifier
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class EmailNotifier:
    """Send order e-mails to the customer's address."""

    confirmation_template = "notifications/order_confirmation.txt"
    status_update_template = "notifications/order_status_update.txt"

    def __init__(self, from_email: Optional[str] = None) -> None:
        self.from_email = from_email or settings.ORDER_NOTIFICATION_FROM_EMAIL

    def send_order_confirmation(self, order: Order) -> None:
        self._send(
            order,
            subject=f"Order confirmation #{order.order_number}",
            template=self.confirmation_template,
        )

    def send_order_status_update(self, order: Order) -> None:
        self._send(
            order,
            subject=f"Order #{order.order_number} is now {order.get_status_display()}",
            template=self.status_update_template,
        )

    def _send(self, order: Order, subject: str, template: str) -> None:
        recipient = order.customer.email
        if not recipient:
            raise NotificationError(f"Customer {order.customer_id} has no e-mail address.")

        body = render_to_string(template, {"order": OrderOutputDTO.from_entity(order)})
        send_mail(subject, body, self.from_email, [recipient], fail_silently=False)
        logger.info(
            "notification.email_sent",
            order_id=str(order.id),
            template=template,
            recipient=recipient,
        )


class CompositeNotifier:
    """Deliver through every notifier; one failing does not stop the rest."""

    def __init__(self, notifiers: Iterable[INotifier]) -> None:
        self.notifiers: List[INotifier] = list(notifiers)

    def send_order_confirmation(self, order: Order) -> int:
        return self._broadcast("send_order_confirmation", order)

    def send_order_status_update(self, order: Order) -> int:
        return self._broadcast("send_order_status_update", order)

    def _broadcast(self, method: str, order: Order) -> int:
        """Return the number of notifiers that failed."""
        failures = 0
        for notifier in self.notifiers:
            try:
                getattr(notifier, method)(order)
            except Exception as exc:
                failures += 1
                logger.error(
                    "notification.failed",
                    notifier=type(notifier).__name__,
                    message=method,
                    order_id=str(order.id),
                    error=str(exc),
                    exc_info=True,
                )
        return failures


def build_notifier() -> CompositeNotifier:
    """Instantiate the notifiers configured in ``ORDER_NOTIFIERS``."""
    return CompositeNotifier(import_string(path)() for path in settings.ORDER_NOTIFIERS)
