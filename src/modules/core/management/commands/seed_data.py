from __future__ import annotations

import random
from collections import Counter
from decimal import Decimal
from typing import Iterable

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.orders.constants import VALID_TRANSITIONS, OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.exceptions import InsufficientStock
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository

# Happy path of the status machine; seeded orders stop somewhere along it.
LIFECYCLE = [
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]


class _NoNotifications:
    def order_confirmed(self, order_id) -> None:
        pass

    def order_status_changed(self, order_id) -> None:
        pass


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=30)
        parser.add_argument(
            "--notify",
            action="store_true",
            help="Enqueue customer notifications for seeded orders.",
        )

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        customers = self._seed_customers()
        products = self._seed_products()
        service = OrderService(
            order_repository=OrderDjangoRepository(),
            customer_repository=CustomerDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            notifications=None if options["notify"] else _NoNotifications(),
        )
        orders_created = self._seed_orders(service, customers, products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"customers={len(customers)}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )
        by_status = Counter(order.status for order in service.list_orders())
        for status, total in sorted(by_status.items()):
            self.stdout.write(f"  {status}: {total}")

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="clerk").exists():
            User.objects.create_user("clerk", password="clerk123", is_staff=True)
            created += 1
        return created

    def _seed_customers(self) -> list[Customer]:
        self.stdout.write("Creating customers...")
        customers: list[Customer] = []
        seed_customers = [
            ("Amina Wanjiru", "amina@example.com", "+254712000001"),
            ("Brian Otieno", "brian@example.com", "+254712000002"),
            ("Chloe Martin", "chloe@example.com", "+33612000003"),
            ("David Kim", "david@example.com", "+821012000004"),
            ("Elena Rossi", "elena@example.com", "+393412000005"),
            ("Farid Haddad", "farid@example.com", "+971501200006"),
        ]
        for name, email, phone in seed_customers:
            customer, _ = Customer.objects.get_or_create(
                email=email,
                defaults={"name": name, "phone": phone},
            )
            customers.append(customer)
        self.stdout.write(self.style.SUCCESS("Creating customers... Done!"))
        return customers

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            ("FRU-001", "Bananas (1 kg)", "Fruit", "1.99"),
            ("FRU-002", "Gala Apples (1 kg)", "Fruit", "3.49"),
            ("VEG-001", "Carrots (500 g)", "Vegetables", "0.89"),
            ("VEG-002", "Baby Spinach (200 g)", "Vegetables", "2.29"),
            ("DAI-001", "Whole Milk (1 l)", "Dairy", "1.19"),
            ("DAI-002", "Greek Yogurt (500 g)", "Dairy", "2.79"),
            ("BAK-001", "Sourdough Loaf", "Bakery", "3.99"),
            ("PAN-001", "Basmati Rice (1 kg)", "Pantry", "2.49"),
            ("PAN-002", "Olive Oil (750 ml)", "Pantry", "7.95"),
            ("BEV-001", "Ground Coffee (250 g)", "Beverages", "5.49"),
        ]
        for sku, name, category, price in catalog:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "description": category,
                    "price": Decimal(price),
                    "stock_quantity": random.randint(50, 200),
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(
        self,
        service: OrderService,
        customers: Iterable[Customer],
        products: list[Product],
        count: int,
    ) -> int:
        self.stdout.write("Creating orders...")
        customers_list = list(customers)
        if not customers_list or not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no customers/products)."))
            return 0

        orders_created = 0
        for i in range(count):
            dto = CreateOrderDTO(
                customer_id=random.choice(customers_list).id,
                items=[
                    CreateOrderItemDTO(product_id=product.id, quantity=random.randint(1, 4))
                    for product in random.sample(products, k=random.randint(1, 4))
                ],
                notes=f"Seed order {i + 1}",
                idempotency_key=f"seed-{i + 1}",
            )
            try:
                order = service.create_order(dto)
            except InsufficientStock as exc:
                self.stdout.write(self.style.WARNING(f"Skipped seed order {i + 1}: {exc}"))
                continue
            orders_created += 1

            if order.status != OrderStatus.PENDING:
                continue
            self._advance(service, order.id, random.randint(0, len(LIFECYCLE)))

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created

    def _advance(self, service: OrderService, order_id, steps: int) -> None:
        current = OrderStatus.PENDING
        for target in LIFECYCLE[:steps]:
            service.update_status(order_id, target, notes="Seeded transition")
            current = target
        # Occasionally end the walk on a side branch.
        exits = sorted(VALID_TRANSITIONS[current] - set(LIFECYCLE))
        if exits and random.random() < 0.2:
            service.update_status(order_id, random.choice(exits), notes="Seeded exit")
