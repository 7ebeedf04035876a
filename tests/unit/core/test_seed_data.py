"""Unit tests for the ``seed_data`` management command."""

from __future__ import annotations

from io import StringIO

import pytest
from django.core import mail
from django.core.management import call_command

from modules.customers.models import Customer
from modules.orders.models import Order
from modules.products.models import Product

pytestmark = pytest.mark.unit


def _seed(**options) -> str:
    out = StringIO()
    call_command("seed_data", stdout=out, **options)
    return out.getvalue()


class TestSeedData:
    def test_creates_catalog_and_orders(self):
        output = _seed(orders=5)

        assert Customer.objects.count() == 6
        assert Product.objects.count() == 10
        assert Order.objects.count() == 5
        assert "orders=5" in output

    def test_reports_orders_per_status(self):
        output = _seed(orders=4)

        for status in set(Order.objects.values_list("status", flat=True)):
            count = Order.objects.filter(status=status).count()
            assert f"  {status}: {count}" in output

    def test_running_twice_reuses_rows(self):
        _seed(orders=3)
        _seed(orders=3)

        assert Customer.objects.count() == 6
        assert Order.objects.count() == 3

    def test_totals_match_items(self):
        _seed(orders=5)

        for order in Order.objects.all():
            assert order.total_amount == order.items_total()

    def test_no_mail_without_notify(self, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            _seed(orders=2)
        assert mail.outbox == []
