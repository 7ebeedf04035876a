"""Customer model.

Customers are referenced by orders (``PROTECT``) and are only ever
soft-deleted.  ``email`` is the notification address for order updates
and is normalised to lower case on save.
"""

from __future__ import annotations

import structlog
from django.core.validators import RegexValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)

phone_validator = RegexValidator(
    regex=r"^\+?[1-9]\d{1,14}$",
    message="Phone number must be in E.164 format (e.g. +254712345678).",
)


class Customer(SoftDeleteModel):
    name = models.CharField(max_length=100)
    email = models.EmailField(max_length=254, unique=True)
    phone = models.CharField(
        max_length=16, blank=True, default="", validators=[phone_validator]
    )
    address = models.TextField(blank=True, default="")

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="customers_created_idx"),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.name
