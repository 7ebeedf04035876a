"""Unit tests for ProductDjangoRepository (the Product Stock Store).

Covers:
- Live/soft-deleted look-ups and malformed IDs.
- Guarded stock decrements: never below zero, error carries the numbers.
- Increments, absolute stock writes and unknown products.
- Participation in a coordinated transaction through ``TransactionScope``.
- Soft delete through the repository.
"""

from __future__ import annotations

import uuid

import pytest

from modules.core.transactions import TransactionCoordinator
from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def repo():
    return ProductDjangoRepository()


class TestLookups:
    def test_get_by_id(self, repo, product):
        assert repo.get_by_id(str(product.id)) == product

    def test_get_by_id_malformed_returns_none(self, repo):
        assert repo.get_by_id("not-a-uuid") is None

    def test_soft_deleted_product_is_hidden(self, repo, product):
        product.delete()
        assert repo.get_by_id(str(product.id)) is None

    def test_get_by_sku_is_case_insensitive_on_input(self, repo, product):
        assert repo.get_by_sku(" apple-1kg ") == product


class TestAdjustStock:
    def test_decrement_returns_remaining_stock(self, repo, make_product):
        p = make_product(stock=10)
        assert repo.adjust_stock(str(p.id), -3) == 7
        p.refresh_from_db()
        assert p.stock_quantity == 7

    def test_decrement_to_exactly_zero(self, repo, make_product):
        p = make_product(stock=4)
        assert repo.adjust_stock(str(p.id), -4) == 0

    def test_decrement_below_zero_is_rejected(self, repo, make_product):
        p = make_product(stock=2)
        with pytest.raises(InsufficientStock) as exc_info:
            repo.adjust_stock(str(p.id), -3)

        assert exc_info.value.product_id == p.id
        assert isinstance(exc_info.value.product_id, uuid.UUID)
        assert exc_info.value.requested == 3
        assert exc_info.value.available == 2
        p.refresh_from_db()
        assert p.stock_quantity == 2

    def test_increment(self, repo, make_product):
        p = make_product(stock=0)
        assert repo.adjust_stock(str(p.id), 5) == 5

    def test_unknown_product(self, repo):
        with pytest.raises(ProductNotFound):
            repo.adjust_stock(str(uuid.uuid4()), -1)

    def test_malformed_id(self, repo):
        with pytest.raises(ProductNotFound):
            repo.adjust_stock("nope", 1)

    def test_joins_a_coordinated_transaction(self, repo, make_product):
        a = make_product(stock=5)
        b = make_product(stock=1)

        def work(scope):
            repo.adjust_stock(str(a.id), -5, scope=scope)
            repo.adjust_stock(str(b.id), -2, scope=scope)

        with pytest.raises(InsufficientStock):
            TransactionCoordinator().run(work)

        a.refresh_from_db()
        b.refresh_from_db()
        assert a.stock_quantity == 5
        assert b.stock_quantity == 1


class TestSetStock:
    def test_overwrites_quantity(self, repo, product):
        repo.set_stock(str(product.id), 3)
        product.refresh_from_db()
        assert product.stock_quantity == 3

    def test_negative_quantity_rejected(self, repo, product):
        with pytest.raises(ValueError):
            repo.set_stock(str(product.id), -1)

    def test_unknown_product(self, repo):
        with pytest.raises(ProductNotFound):
            repo.set_stock(str(uuid.uuid4()), 1)


class TestDelete:
    def test_soft_deletes(self, repo, product):
        assert repo.delete(str(product.id)) is True
        product.refresh_from_db()
        assert product.is_deleted
        assert repo.get_by_id(str(product.id)) is None

    def test_unknown_product(self, repo):
        assert repo.delete(str(uuid.uuid4())) is False

    def test_already_deleted(self, repo, product):
        repo.delete(str(product.id))
        assert repo.delete(str(product.id)) is False
