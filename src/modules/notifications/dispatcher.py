"""Fire-and-forget entry point used by the order engine.

The engine registers these calls with ``transaction.on_commit`` so they
only run for committed work.  Enqueueing never raises: a broker outage
is logged and the committed order stays committed.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog

from modules.notifications.tasks import send_order_confirmation, send_order_status_update

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    def order_confirmed(self, order_id: UUID) -> None:
        self._enqueue(send_order_confirmation, order_id)

    def order_status_changed(self, order_id: UUID) -> None:
        self._enqueue(send_order_status_update, order_id)

    def _enqueue(self, task: Any, order_id: UUID) -> None:
        try:
            task.delay(str(order_id))
        except Exception as exc:
            logger.error(
                "notification.enqueue_failed",
                task=task.name,
                order_id=str(order_id),
                error=str(exc),
            )
            return
        logger.info("notification.enqueued", task=task.name, order_id=str(order_id))
