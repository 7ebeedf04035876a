"""Unit tests for the notifier implementations."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from django.core import mail
from django.test import override_settings

from modules.customers.models import Customer
from modules.notifications.exceptions import NotificationError
from modules.notifications.interfaces import INotifier
from modules.notifications.notifiers import CompositeNotifier, EmailNotifier, build_notifier

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(place_order, make_product):
    return place_order((make_product(price="3.20", name="Sourdough Loaf"), 2))


class TestEmailNotifier:
    def test_is_a_notifier(self):
        assert isinstance(EmailNotifier(), INotifier)

    def test_confirmation_mail(self, order):
        EmailNotifier(from_email="shop@example.com").send_order_confirmation(order)

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == ["jane@example.com"]
        assert message.from_email == "shop@example.com"
        assert order.order_number in message.subject
        assert "Sourdough Loaf" in message.body
        assert "6.40" in message.body

    def test_status_update_mail(self, service, order):
        confirmed = service.update_status(order.id, "CONFIRMED", notes="Payment received")

        EmailNotifier().send_order_status_update(confirmed)

        message = mail.outbox[0]
        assert "Confirmed" in message.subject
        assert "is now Confirmed" in message.body
        assert "Payment received" in message.body

    def test_customer_without_email(self, order):
        Customer.objects.filter(id=order.customer_id).update(email="")
        order.customer.refresh_from_db()

        with pytest.raises(NotificationError):
            EmailNotifier().send_order_confirmation(order)
        assert mail.outbox == []


class TestCompositeNotifier:
    def test_calls_every_notifier(self, order):
        first, second = MagicMock(), MagicMock()

        failures = CompositeNotifier([first, second]).send_order_confirmation(order)

        assert failures == 0
        first.send_order_confirmation.assert_called_once_with(order)
        second.send_order_confirmation.assert_called_once_with(order)

    def test_failure_does_not_stop_the_others(self, order):
        broken, healthy = MagicMock(), MagicMock()
        broken.send_order_status_update.side_effect = ConnectionError("smtp down")

        failures = CompositeNotifier([broken, healthy]).send_order_status_update(order)

        assert failures == 1
        healthy.send_order_status_update.assert_called_once_with(order)


class TestBuildNotifier:
    def test_default_is_email(self):
        notifier = build_notifier()
        assert [type(n) for n in notifier.notifiers] == [EmailNotifier]

    @override_settings(ORDER_NOTIFIERS=[])
    def test_empty_configuration(self):
        assert build_notifier().notifiers == []
