from __future__ import annotations

from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from modules.orders.models import Order, OrderItem, OrderStatusHistory

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(customer):
    return Order.objects.create(customer=customer)


class TestOrder:
    def test_defaults(self, order):
        assert order.status == "PENDING"
        assert order.total_amount == Decimal("0.00")
        assert order.order_number.startswith("ORD-")

    def test_order_numbers_are_unique(self, customer):
        numbers = {Order.objects.create(customer=customer).order_number for _ in range(5)}
        assert len(numbers) == 5

    def test_items_total(self, order, make_product):
        OrderItem.objects.create(
            order=order, product=make_product(), quantity=3, unit_price=Decimal("1.10")
        )
        OrderItem.objects.create(
            order=order, product=make_product(), quantity=1, unit_price=Decimal("0.70")
        )
        assert order.items_total() == Decimal("4.00")

    def test_items_total_without_items(self, order):
        assert order.items_total() == Decimal("0.00")


class TestOrderItem:
    def test_subtotal_computed_on_save(self, order, product):
        item = OrderItem.objects.create(
            order=order, product=product, quantity=4, unit_price=Decimal("2.25")
        )
        assert item.subtotal == Decimal("9.00")

    def test_price_snapshot_required(self, order, product):
        with pytest.raises(ValidationError):
            OrderItem(order=order, product=product, quantity=1, unit_price=None).save()

    def test_clean_rejects_zero_quantity(self, order, product):
        item = OrderItem(order=order, product=product, quantity=0, unit_price=Decimal("1.00"))
        with pytest.raises(ValidationError):
            item.clean()

    def test_database_rejects_zero_quantity(self, order, product):
        with pytest.raises(IntegrityError), transaction.atomic():
            OrderItem.objects.create(
                order=order, product=product, quantity=0, unit_price=Decimal("1.00")
            )


@pytest.mark.parametrize("model", [Order, OrderItem, OrderStatusHistory])
def test_model_fields_are_annotated(model):
    inherited = {"id", "created_at", "updated_at"}
    declared = {f.name for f in model._meta.local_concrete_fields} - inherited
    assert declared <= set(model.__annotations__)
