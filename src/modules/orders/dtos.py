"""Order DTOs for the Lifecycle Engine.

Pydantic v2 models, immutable (``frozen=True``).  Input DTOs are the
contract between the API layer and ``OrderService``; prices are never
part of an input, they are snapshotted from the product at write time.

- ``CreateOrderItemDTO``: one requested line of a new order.
- ``CreateOrderDTO``: a new order (at least one line).
- ``AddOrderItemDTO``: a line added to a pending order.
- ``OrderOutputDTO``: read model of an order with items and history.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class AddOrderItemDTO(CreateOrderItemDTO):
    """A line added to an existing pending order."""


class CreateOrderDTO(BaseModel):
    """Order creation request.

    Validates:
    - ``items`` must contain at least one item.
    - the same product may appear on several lines; stock is checked
      against their combined quantity.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    items: List[CreateOrderItemDTO]
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: UUID
    product_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class StatusHistoryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    old_status: Optional[str]
    new_status: str
    notes: str
    created_at: datetime

    @classmethod
    def from_entity(cls, history: OrderStatusHistory) -> StatusHistoryDTO:
        return cls(
            old_status=history.old_status,
            new_status=history.new_status,
            notes=history.notes,
            created_at=history.created_at,
        )


class OrderOutputDTO(BaseModel):
    """Read model of an order, used wherever an order leaves the engine
    outside the HTTP layer (notification rendering)."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    order_number: str
    customer_id: UUID
    customer_name: str
    status: str
    status_display: str
    total_amount: Decimal
    notes: str
    created_at: datetime
    items: List[OrderItemOutputDTO]
    history: List[StatusHistoryDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build the DTO from an Order with its relations loaded."""
        items = [
            OrderItemOutputDTO(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product.name,
                product_sku=item.product.sku,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in order.items.all()
        ]
        history = [StatusHistoryDTO.from_entity(h) for h in order.status_history.all()]
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            customer_name=order.customer.name,
            status=order.status,
            status_display=order.get_status_display(),
            total_amount=order.total_amount,
            notes=order.notes,
            created_at=order.created_at,
            items=items,
            history=history,
        )
