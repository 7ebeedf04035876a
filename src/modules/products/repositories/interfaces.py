"""Product repository interface (the Product Stock Store).

Stock writes accept an optional ``TransactionScope``: inside a
coordinated transaction they join it, otherwise they run in their own
atomic block.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.core.transactions import TransactionScope
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_by_sku(self, sku: str) -> Optional[Product]:
        """Retrieve a product by SKU."""

    @abstractmethod
    def adjust_stock(
        self, id: str, delta: int, scope: Optional[TransactionScope] = None
    ) -> int:
        """Add *delta* to the product's stock and return the new stock.

        Negative deltas are guarded: the update only applies while the
        stock covers the decrement.

        Raises:
            ProductNotFound: no product with this ID.
            InsufficientStock: the decrement would make stock negative.
        """

    @abstractmethod
    def set_stock(
        self, id: str, quantity: int, scope: Optional[TransactionScope] = None
    ) -> None:
        """Overwrite the product's stock with an absolute quantity."""
