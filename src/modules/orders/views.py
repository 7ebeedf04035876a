"""Order API views.

Exposes the ``OrderService`` via HTTP using a DRF ViewSet.  Domain
exceptions are translated into HTTP status codes; anything else
propagates to DRF's handler.
"""

from __future__ import annotations

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import StorageFailure
from modules.core.pagination import StandardResultsSetPagination
from modules.customers.repositories.django_repository import CustomerDjangoRepository
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
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    AddOrderItemSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    UpdateOrderStatusSerializer,
)
from modules.orders.services import OrderService
from modules.products.repositories.django_repository import ProductDjangoRepository

logger = structlog.get_logger(__name__)

ERROR_STATUS = (
    ((InvalidOrderData, InvalidOrderItemData), status.HTTP_400_BAD_REQUEST),
    (
        (OrderNotFound, OrderItemNotFound, CustomerNotFound, ProductNotFound),
        status.HTTP_404_NOT_FOUND,
    ),
    ((OrderStatusInvalid, InsufficientStock), status.HTTP_409_CONFLICT),
    ((StorageFailure,), status.HTTP_503_SERVICE_UNAVAILABLE),
)
HANDLED_ERRORS = tuple(exc for group, _ in ERROR_STATUS for exc in group)


def error_response(exc: Exception) -> Response:
    http_status = next(
        (code for group, code in ERROR_STATUS if isinstance(exc, group)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if http_status >= 500:
        logger.error("order.request_failed", error=str(exc))
        return Response(
            {"detail": "Storage temporarily unavailable, try again later."},
            status=http_status,
        )
    return Response({"detail": str(exc)}, status=http_status)


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Does **not** extend ``ModelViewSet``: every write goes through
    ``OrderService``.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer__name"]
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            customer_repository=CustomerDjangoRepository(),
            product_repository=ProductDjangoRepository(),
        )

    def get_queryset(self):
        return Order.objects.select_related("customer")

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        idempotency_key = request.headers.get("Idempotency-Key")
        try:
            dto = self._service.build_create_dto(
                {**serializer.validated_data, "idempotency_key": idempotency_key}
            )
            if idempotency_key:
                existing = OrderDjangoRepository().get_by_idempotency_key(idempotency_key)
                if existing:
                    return Response(OrderSerializer(existing).data, status=status.HTTP_200_OK)
            order = self._service.create_order(dto)
        except HANDLED_ERRORS as exc:
            return error_response(exc)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, customer, date range, total range) is handled
        by ``OrderFilter``, ordering by ``OrderingFilter``.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status Update
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/ with ``{"status": ..., "notes": ...}``."""
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.update_status(
                order_id=pk,
                new_status=serializer.validated_data["status"],
                notes=serializer.validated_data["notes"],
            )
        except HANDLED_ERRORS as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"], url_path="items")
    def add_item(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/items/"""
        serializer = AddOrderItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            dto = self._service.build_item_dto(serializer.validated_data)
            order = self._service.add_order_item(pk, dto)
        except HANDLED_ERRORS as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["delete"], url_path=r"items/(?P<item_id>[^/.]+)")
    def remove_item(
        self, request: Request, pk: str | None = None, item_id: str | None = None
    ) -> Response:
        """DELETE /api/v1/orders/{pk}/items/{item_id}/"""
        try:
            order = self._service.remove_order_item(pk, item_id)
        except HANDLED_ERRORS as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data)
