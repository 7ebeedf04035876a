"""Order service layer (the Lifecycle Engine).

Every mutating use case follows the same shape:

1. Advisory pre-checks against the current state (existence, status,
   stock).  They fail fast with a domain error and write nothing.
2. One ``TransactionCoordinator.run`` call executing an ``OrderWriter``
   operation.  Inside it the order row is locked and its status
   re-validated; stock moves through guarded updates, so a pre-check
   that went stale in between still cannot corrupt state.
3. A notification registered with ``on_commit`` for creation and
   status changes.  Delivery never affects the outcome.

Errors raised inside the transaction reach the caller unchanged after
the rollback.
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import IntegrityError
from pydantic import ValidationError

from modules.core.transactions import TransactionCoordinator
from modules.orders.constants import OrderStatus
from modules.orders.dtos import AddOrderItemDTO, CreateOrderDTO
from modules.orders.exceptions import (
    CustomerNotFound,
    InsufficientStock,
    InvalidOrderData,
    InvalidOrderItemData,
    OrderItemNotFound,
    OrderNotFound,
    OrderStatusInvalid,
    ProductNotFound,
)
from modules.orders.operations import ItemLine, NewOrder, OrderItemChange, OrderWriter

if TYPE_CHECKING:
    from modules.core.transactions import TransactionScope
    from modules.customers.repositories.interfaces import ICustomerRepository
    from modules.notifications.dispatcher import NotificationDispatcher
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "Invalid value.")
    return f"{location}: {message}" if location else message


class OrderService:
    """Application service for Order use-cases.

    Receives repositories, the transaction coordinator and the
    notification dispatcher via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        product_repository: IProductRepository,
        coordinator: Optional[TransactionCoordinator] = None,
        notifications: Optional[NotificationDispatcher] = None,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._product_repo = product_repository
        self._coordinator = coordinator or TransactionCoordinator()
        if notifications is None:
            from modules.notifications.dispatcher import NotificationDispatcher

            notifications = NotificationDispatcher()
        self._notifications = notifications
        self._writer = OrderWriter(order_repository, product_repository)

    # ------------------------------------------------------------------
    # Input parsing
    # ------------------------------------------------------------------

    @staticmethod
    def build_create_dto(data: Mapping[str, Any]) -> CreateOrderDTO:
        """Validate raw creation input.

        Raises:
            InvalidOrderData: no items, bad quantity or malformed identifiers.
        """
        try:
            return CreateOrderDTO.model_validate(dict(data))
        except ValidationError as exc:
            raise InvalidOrderData(_first_error(exc)) from exc

    @staticmethod
    def build_item_dto(data: Mapping[str, Any]) -> AddOrderItemDTO:
        """Validate raw add-item input.

        Raises:
            InvalidOrderItemData: bad quantity or malformed product ID.
        """
        try:
            return AddOrderItemDTO.model_validate(dict(data))
        except ValidationError as exc:
            raise InvalidOrderItemData(_first_error(exc)) from exc

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create a PENDING order and reserve stock for every line.

        All or nothing: either the order, its items, its history entry
        and every stock decrement commit together, or nothing does.

        Raises:
            CustomerNotFound: customer does not exist.
            ProductNotFound: a product does not exist.
            InsufficientStock: a line asks for more than is in stock.
            StorageFailure: the transaction could not be opened or
                committed.
        """
        log = logger.bind(customer_id=str(dto.customer_id))
        log.info("order.creation_started", item_count=len(dto.items))

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        if not self._customer_repo.exists(str(dto.customer_id)):
            raise CustomerNotFound(f"Customer {dto.customer_id} not found.")

        # Lines for the same product share one stock check.
        requested: Dict[UUID, int] = {}
        for item_dto in dto.items:
            requested[item_dto.product_id] = (
                requested.get(item_dto.product_id, 0) + item_dto.quantity
            )
        products = {
            product_id: self._available_product(product_id, quantity)
            for product_id, quantity in requested.items()
        }
        lines = [
            ItemLine(
                products[item_dto.product_id].id,
                item_dto.quantity,
                products[item_dto.product_id].price,
            )
            for item_dto in dto.items
        ]

        new_order = NewOrder(
            customer_id=dto.customer_id,
            lines=tuple(lines),
            notes=dto.notes or "",
            idempotency_key=dto.idempotency_key,
        )

        def unit_of_work(scope: TransactionScope) -> Order:
            order = self._writer.create(scope, new_order)
            scope.on_commit(partial(self._notifications.order_confirmed, order.id))
            return order

        try:
            order = self._coordinator.run(unit_of_work)
        except IntegrityError:
            # Lost a race with a concurrent request carrying the same key.
            existing = (
                self._order_repo.get_by_idempotency_key(dto.idempotency_key)
                if dto.idempotency_key
                else None
            )
            if existing is None:
                raise
            log.info("order.idempotency_hit", order_id=str(existing.id), key=dto.idempotency_key)
            return existing

        log.info("order.created", order_id=str(order.id), total=str(new_order.total))
        return self._order_repo.get_by_id(str(order.id)) or order

    def update_status(
        self,
        order_id: UUID,
        new_status: str,
        notes: str = "",
    ) -> Order:
        """Move an order along the status state machine.

        The transition is validated up front and again under the order's
        row lock; the status write and its history entry commit together.
        Cancelling does not touch stock.

        Raises:
            OrderStatusInvalid: unknown status or transition not allowed.
            OrderNotFound: order does not exist.
            StorageFailure: the transaction could not be opened or
                committed.
        """
        if new_status not in OrderStatus.values:
            raise OrderStatusInvalid(f"Unknown order status '{new_status}'.")

        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=new_status,
        )
        if not order.can_transition_to(new_status):
            log.warning("order.invalid_transition")
            raise OrderStatusInvalid(
                f"Cannot transition from {order.status} to {new_status}."
            )

        def unit_of_work(scope: TransactionScope) -> Order:
            updated = self._writer.change_status(scope, order.id, new_status, notes)
            scope.on_commit(partial(self._notifications.order_status_changed, updated.id))
            return updated

        self._coordinator.run(unit_of_work)
        log.info("order.status_updated")
        return self._order_repo.get_by_id(str(order_id))

    def add_order_item(self, order_id: UUID, dto: AddOrderItemDTO) -> Order:
        """Add a line to a PENDING order at the product's current price.

        Raises:
            OrderNotFound: order does not exist.
            OrderStatusInvalid: order is no longer PENDING.
            ProductNotFound: product does not exist.
            InsufficientStock: not enough stock for the quantity.
            StorageFailure: the transaction could not be opened or
                committed.
        """
        order = self._pending_order(order_id)
        product = self._available_product(dto.product_id, dto.quantity)
        change = OrderItemChange.adding(
            order.id, ItemLine(product.id, dto.quantity, product.price)
        )

        self._coordinator.run(lambda scope: self._writer.apply(scope, change))
        logger.info(
            "order.item_added_to_order",
            order_id=str(order.id),
            product_id=str(product.id),
            quantity=dto.quantity,
        )
        return self._order_repo.get_by_id(str(order.id))

    def remove_order_item(self, order_id: UUID, item_id: UUID) -> Order:
        """Remove a line from a PENDING order and give its stock back.

        Raises:
            OrderNotFound: order does not exist.
            OrderStatusInvalid: order is no longer PENDING.
            OrderItemNotFound: the item is not part of this order.
            StorageFailure: the transaction could not be opened or
                committed.
        """
        order = self._pending_order(order_id)
        item = next((i for i in order.items.all() if str(i.id) == str(item_id)), None)
        if item is None:
            raise OrderItemNotFound(f"Item {item_id} not found in order {order.id}.")
        change = OrderItemChange.removing(order.id, item)

        self._coordinator.run(lambda scope: self._writer.apply(scope, change))
        logger.info(
            "order.item_removed_from_order",
            order_id=str(order.id),
            item_id=str(item.id),
            quantity=item.quantity,
        )
        return self._order_repo.get_by_id(str(order.id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return self._order_repo.list(filters)

    def list_customer_orders(self, customer_id: str) -> List[Order]:
        if not self._customer_repo.exists(str(customer_id)):
            raise CustomerNotFound(f"Customer {customer_id} not found.")
        return self._order_repo.list_by_customer(str(customer_id))

    # ------------------------------------------------------------------
    # Pre-checks
    # ------------------------------------------------------------------

    def _pending_order(self, order_id: UUID) -> Order:
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if not order.accepts_item_changes:
            logger.warning(
                "order.items_locked", order_id=str(order.id), status=order.status
            )
            raise OrderStatusInvalid(
                f"Items can only change while the order is {OrderStatus.PENDING}; "
                f"order {order.id} is {order.status}."
            )
        return order

    def _available_product(self, product_id: UUID, quantity: int) -> Product:
        product = self._product_repo.get_by_id(str(product_id))
        if not product:
            raise ProductNotFound(f"Product {product_id} not found.")
        if product.stock_quantity < quantity:
            logger.warning(
                "order.insufficient_stock",
                product_id=str(product.id),
                requested=quantity,
                available=product.stock_quantity,
            )
            raise InsufficientStock(
                product_id=product.id,
                requested=quantity,
                available=product.stock_quantity,
            )
        return product
