"""Unit tests for BaseModel and SoftDeleteModel, exercised through Customer."""

from __future__ import annotations

import uuid

import pytest

from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository

pytestmark = pytest.mark.unit


class TestBaseModel:
    def test_id_is_uuid_version_7(self, customer):
        assert isinstance(customer.id, uuid.UUID)
        assert customer.id.version == 7

    def test_ids_are_time_ordered(self, make_customer):
        a = make_customer()
        b = make_customer()
        assert str(a.id) < str(b.id)

    def test_save_with_update_fields_bumps_updated_at(self, customer):
        before = customer.updated_at
        customer.name = "Renamed"
        customer.save(update_fields=["name"])
        customer.refresh_from_db()
        assert customer.updated_at > before


class TestSoftDeleteModel:
    def test_delete_marks_row(self, customer):
        assert customer.delete() == (1, {"customers.Customer": 1})
        customer.refresh_from_db()
        assert customer.is_deleted

    def test_second_delete_is_noop(self, customer):
        customer.delete()
        assert customer.delete() == (0, {})

    def test_alive_and_dead(self, make_customer):
        alive = make_customer()
        dead = make_customer()
        dead.delete()

        assert list(Customer.objects.alive().filter(id__in=[alive.id, dead.id])) == [alive]
        assert list(Customer.objects.dead()) == [dead]

    def test_queryset_delete_is_soft(self, make_customer):
        make_customer()
        make_customer()
        count, _ = Customer.objects.all().delete()
        assert count == 2
        assert Customer.objects.count() == 2
        assert not Customer.objects.alive().exists()

    def test_restore(self, customer):
        customer.delete()
        customer.restore()
        customer.refresh_from_db()
        assert not customer.is_deleted

    def test_hard_delete(self, customer):
        customer.hard_delete()
        assert not Customer.objects.filter(id=customer.id).exists()


class TestCustomerRepository:
    def test_exists_ignores_deleted(self, customer):
        repo = CustomerDjangoRepository()
        assert repo.exists(str(customer.id))
        repo.delete(str(customer.id))
        assert not repo.exists(str(customer.id))

    def test_exists_with_malformed_id(self):
        assert CustomerDjangoRepository().exists("nope") is False

    def test_email_is_normalised(self, make_customer):
        c = make_customer(email="  Mixed.Case@Example.COM ")
        assert CustomerDjangoRepository().get_by_email("mixed.case@example.com") == c

    def test_delete_is_soft(self, customer):
        repo = CustomerDjangoRepository()
        assert repo.delete(str(customer.id)) is True
        customer.refresh_from_db()
        assert customer.is_deleted

    @pytest.mark.parametrize("customer_id", [str(uuid.uuid4()), "nope"])
    def test_delete_unknown_customer(self, customer_id):
        assert CustomerDjangoRepository().delete(customer_id) is False
