from __future__ import annotations

import itertools
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository

_sequence = itertools.count(1)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def auth_client(api_client):
    """APIClient with a force-authenticated Django user."""
    user = get_user_model().objects.create_user(
        username=f"clerk-{next(_sequence)}", password="testpass123"
    )
    api_client.force_authenticate(user=user)
    return api_client


class RecordingNotifications:
    """Stands in for ``NotificationDispatcher`` and records every call."""

    def __init__(self) -> None:
        self.confirmed: list = []
        self.status_changed: list = []

    def order_confirmed(self, order_id) -> None:
        self.confirmed.append(order_id)

    def order_status_changed(self, order_id) -> None:
        self.status_changed.append(order_id)


@pytest.fixture()
def make_customer():
    def _make(**overrides) -> Customer:
        n = next(_sequence)
        fields = {"name": f"Customer {n}", "email": f"customer{n}@example.com"}
        fields.update(overrides)
        return Customer.objects.create(**fields)

    return _make


@pytest.fixture()
def make_product():
    def _make(price="10.00", stock=100, **overrides) -> Product:
        n = next(_sequence)
        fields = {
            "sku": f"SKU-{n:04d}",
            "name": f"Product {n}",
            "price": Decimal(price),
            "stock_quantity": stock,
        }
        fields.update(overrides)
        return Product.objects.create(**fields)

    return _make


@pytest.fixture()
def customer(make_customer):
    return make_customer(name="Jane Doe", email="jane@example.com")


@pytest.fixture()
def product(make_product):
    return make_product(price="10.00", stock=100, sku="APPLE-1KG", name="Apples 1kg")


@pytest.fixture()
def notifications():
    return RecordingNotifications()


@pytest.fixture()
def service(notifications):
    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        notifications=notifications,
    )


@pytest.fixture()
def place_order(service, customer):
    """Create a PENDING order through the service: ``place_order((product, qty), ...)``."""

    def _place(*lines, **overrides):
        dto = CreateOrderDTO(
            customer_id=overrides.pop("customer_id", customer.id),
            items=[
                CreateOrderItemDTO(product_id=product.id, quantity=quantity)
                for product, quantity in lines
            ],
            **overrides,
        )
        return service.create_order(dto)

    return _place
