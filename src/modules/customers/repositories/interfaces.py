"""Customer repository interface.

The order engine only needs to know whether a customer exists; the
remaining look-ups serve seeding and administration.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.models import Customer


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for the Customer aggregate."""

    @abstractmethod
    def exists(self, id: str) -> bool:
        """Return ``True`` when a live customer with this ID exists."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Customer]:
        """Retrieve a customer by e-mail address."""
