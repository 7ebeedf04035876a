"""Django ORM implementation of the Product repository.

Stock changes are single ``UPDATE ... SET stock_quantity = stock_quantity
+ delta`` statements.  Decrements carry a ``stock_quantity >= -delta``
predicate, so two concurrent reservations racing past an advisory
pre-check cannot both succeed when only one fits: the database applies
one and the other matches zero rows and raises ``InsufficientStock``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import F
from django.utils import timezone

from modules.core.transactions import TransactionScope
from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a live product, ``None`` for missing or malformed IDs."""
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        queryset = Product.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id), sku=entity.sku)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        logger.info("product.soft_deleted", product_id=str(id))
        return True

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return Product.objects.alive().filter(sku=sku.strip().upper()).first()

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def adjust_stock(
        self, id: str, delta: int, scope: Optional[TransactionScope] = None
    ) -> int:
        if scope is not None:
            return self._adjust(id, delta, scope.using)
        with transaction.atomic(using=DEFAULT_DB_ALIAS):
            return self._adjust(id, delta, DEFAULT_DB_ALIAS)

    def set_stock(
        self, id: str, quantity: int, scope: Optional[TransactionScope] = None
    ) -> None:
        if quantity < 0:
            raise ValueError("Stock quantity cannot be negative.")
        using = scope.using if scope is not None else DEFAULT_DB_ALIAS
        try:
            updated = (
                Product.objects.using(using)
                .filter(id=id)
                .update(stock_quantity=quantity, updated_at=timezone.now())
            )
        except (ValueError, ValidationError):
            updated = 0
        if not updated:
            raise ProductNotFound(f"Product {id} not found.")
        logger.info("product.stock_set", product_id=str(id), stock=quantity)

    def _adjust(self, id: str, delta: int, using: str) -> int:
        try:
            queryset = Product.objects.using(using).filter(id=id)
            guarded = queryset.filter(stock_quantity__gte=-delta) if delta < 0 else queryset
            updated = guarded.update(
                stock_quantity=F("stock_quantity") + delta,
                updated_at=timezone.now(),
            )
        except (ValueError, ValidationError) as exc:
            raise ProductNotFound(f"Product {id} not found.") from exc

        current = queryset.values_list("stock_quantity", flat=True).first()
        if current is None:
            raise ProductNotFound(f"Product {id} not found.")
        if not updated:
            logger.warning(
                "product.stock_guard_rejected",
                product_id=str(id),
                requested=-delta,
                available=current,
            )
            raise InsufficientStock(
                product_id=UUID(str(id)), requested=-delta, available=current
            )

        logger.info("product.stock_adjusted", product_id=str(id), delta=delta, stock=current)
        return current
