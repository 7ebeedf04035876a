"""Order notification tasks.

Delivery is best effort: a task runs once (no retries), logs failures
and never touches order state.
"""

from typing import Any, Dict

import structlog
from celery import shared_task

from modules.notifications.notifiers import build_notifier

logger = structlog.get_logger(__name__)


def _deliver(order_id: str, message: str) -> Dict[str, Any]:
    from modules.orders.repositories import OrderDjangoRepository

    order = OrderDjangoRepository().get_by_id(order_id)
    if order is None:
        logger.warning("notification.order_missing", order_id=order_id, message=message)
        return {"order_id": order_id, "delivered": False, "failures": 0}

    notifier = build_notifier()
    failures = getattr(notifier, message)(order)
    logger.info(
        "notification.delivered",
        order_id=order_id,
        message=message,
        notifiers=len(notifier.notifiers),
        failures=failures,
    )
    return {"order_id": order_id, "delivered": failures == 0, "failures": failures}


@shared_task(name="notifications.send_order_confirmation", max_retries=0)
def send_order_confirmation(order_id: str) -> Dict[str, Any]:
    return _deliver(order_id, "send_order_confirmation")


@shared_task(name="notifications.send_order_status_update", max_retries=0)
def send_order_status_update(order_id: str) -> Dict[str, Any]:
    return _deliver(order_id, "send_order_status_update")
