"""Unit tests for OrderDjangoRepository (the Order Store)."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from modules.core.transactions import TransactionCoordinator
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OrderItemNotFound
from modules.orders.models import Order, OrderItem
from modules.orders.operations import ItemLine
from modules.orders.repositories.django_repository import OrderDjangoRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def repo():
    return OrderDjangoRepository()


@pytest.fixture()
def order(repo, customer, product):
    return repo.create(
        {
            "customer_id": customer.id,
            "items": [ItemLine(product.id, 2, Decimal("10.00"))],
            "notes": "leave at door",
        }
    )


class TestCreate:
    def test_persists_order_and_items(self, order, product):
        assert order.status == OrderStatus.PENDING
        assert order.total_amount == Decimal("20.00")
        item = OrderItem.objects.get(order=order)
        assert (item.product_id, item.quantity, item.subtotal) == (
            product.id,
            2,
            Decimal("20.00"),
        )

    def test_generates_order_number(self, order):
        assert order.order_number.startswith("ORD-")
        assert len(order.order_number) == len("ORD-YYYYMMDD-XXXXXX")


class TestReads:
    def test_get_by_id_malformed(self, repo):
        assert repo.get_by_id("garbage") is None

    def test_get_by_id_missing(self, repo):
        assert repo.get_by_id(str(uuid.uuid4())) is None

    def test_get_by_idempotency_key(self, repo, customer, product):
        created = repo.create(
            {
                "customer_id": customer.id,
                "items": [ItemLine(product.id, 1, Decimal("10.00"))],
                "idempotency_key": "abc",
            }
        )
        assert repo.get_by_idempotency_key("abc").id == created.id
        assert repo.get_by_idempotency_key("other") is None

    def test_list_filters(self, repo, order):
        assert [o.id for o in repo.list({"status": OrderStatus.PENDING})] == [order.id]
        assert repo.list({"status": OrderStatus.CONFIRMED}) == []

    def test_list_by_customer_malformed_id(self, repo, order):
        assert repo.list_by_customer("garbage") == []


class TestItemWrites:
    def test_add_item_and_recompute_total(self, repo, order, make_product):
        other = make_product(price="1.25")

        def work(scope):
            repo.add_item(order.id, ItemLine(other.id, 4, Decimal("1.25")), scope=scope)
            return repo.recompute_total(order.id, scope=scope)

        assert TransactionCoordinator().run(work) == Decimal("25.00")
        order.refresh_from_db()
        assert order.total_amount == Decimal("25.00")

    def test_remove_item(self, repo, order):
        item = OrderItem.objects.get(order=order)
        repo.remove_item(order.id, item.id)
        assert repo.recompute_total(order.id) == Decimal("0.00")

    def test_remove_item_of_other_order(self, repo, order, customer, product):
        other = repo.create(
            {"customer_id": customer.id, "items": [ItemLine(product.id, 1, Decimal("10.00"))]}
        )
        foreign_item = OrderItem.objects.get(order=other)

        with pytest.raises(OrderItemNotFound):
            repo.remove_item(order.id, foreign_item.id)

    def test_remove_item_malformed_id(self, repo, order):
        with pytest.raises(OrderItemNotFound):
            repo.remove_item(order.id, "garbage")


class TestStatusWrites:
    def test_update_status_and_history(self, repo, order):
        def work(scope):
            locked = repo.get_for_update(str(order.id), scope=scope)
            repo.update_status(locked, OrderStatus.CONFIRMED, scope=scope)
            return repo.add_history(
                order.id, OrderStatus.CONFIRMED, notes="ok", old_status="PENDING", scope=scope
            )

        history = TransactionCoordinator().run(work)

        assert Order.objects.get(id=order.id).status == OrderStatus.CONFIRMED
        assert history.old_status == OrderStatus.PENDING

    def test_get_for_update_missing(self, repo):
        assert TransactionCoordinator().run(
            lambda scope: repo.get_for_update(str(uuid.uuid4()), scope=scope)
        ) is None
