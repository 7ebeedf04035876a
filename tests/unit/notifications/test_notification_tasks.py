"""Unit tests for the Celery notification tasks and the dispatcher.

Celery runs eagerly in tests (``CELERY_TASK_ALWAYS_EAGER``).
"""

from __future__ import annotations

import logging
import uuid
from unittest.mock import patch

import pytest
from django.core import mail

from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.tasks import send_order_confirmation, send_order_status_update
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(place_order, product):
    return place_order((product, 1))


@pytest.fixture()
def dispatching_service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        product_repository=ProductDjangoRepository(),
    )


class TestTasks:
    def test_confirmation_task_sends_mail(self, order):
        result = send_order_confirmation(str(order.id))

        assert result == {"order_id": str(order.id), "delivered": True, "failures": 0}
        assert len(mail.outbox) == 1

    def test_status_task_sends_mail(self, order):
        send_order_status_update(str(order.id))
        assert "is now Pending" in mail.outbox[0].body

    def test_missing_order_is_skipped(self, caplog):
        missing = str(uuid.uuid4())
        with caplog.at_level(logging.INFO):
            result = send_order_confirmation(missing)

        assert result["delivered"] is False
        assert mail.outbox == []
        assert any("notification.order_missing" in r.getMessage() for r in caplog.records)

    def test_delivery_failure_is_reported_not_raised(self, order):
        with patch(
            "modules.notifications.notifiers.send_mail", side_effect=OSError("smtp down")
        ):
            result = send_order_confirmation(str(order.id))

        assert result["delivered"] is False
        assert result["failures"] == 1

    def test_tasks_do_not_retry(self):
        assert send_order_confirmation.max_retries == 0
        assert send_order_status_update.max_retries == 0


class TestDispatcher:
    def test_order_confirmed_enqueues_task(self, order):
        NotificationDispatcher().order_confirmed(order.id)
        assert len(mail.outbox) == 1

    def test_enqueue_failure_is_logged_not_raised(self, order, caplog):
        with patch.object(
            send_order_status_update, "delay", side_effect=ConnectionError("broker down")
        ):
            with caplog.at_level(logging.INFO):
                NotificationDispatcher().order_status_changed(order.id)

        failures = [
            r.getMessage()
            for r in caplog.records
            if "notification.enqueue_failed" in r.getMessage()
        ]
        assert failures and str(order.id) in failures[0]
        assert mail.outbox == []


class TestEndToEndDelivery:
    """The real dispatcher wired into the order service."""

    def test_confirm_order_mails_customer_after_commit(
        self, dispatching_service, place_order, product, django_capture_on_commit_callbacks
    ):
        order = place_order((product, 1))

        with django_capture_on_commit_callbacks(execute=True):
            updated = dispatching_service.update_status(order.id, "CONFIRMED")

        assert updated.status == "CONFIRMED"
        assert [m.to for m in mail.outbox] == [["jane@example.com"]]

    def test_notification_failure_does_not_fail_the_update(
        self, dispatching_service, place_order, product, django_capture_on_commit_callbacks
    ):
        order = place_order((product, 1))

        with patch(
            "modules.notifications.notifiers.send_mail", side_effect=OSError("smtp down")
        ):
            with django_capture_on_commit_callbacks(execute=True):
                updated = dispatching_service.update_status(order.id, "CONFIRMED")

        assert updated.status == "CONFIRMED"
        assert mail.outbox == []
