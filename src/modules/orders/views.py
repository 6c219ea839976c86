"""Order API views.

Exposes ``OrderService`` over HTTP using a DRF ``GenericViewSet``.
Domain exceptions are translated into HTTP status codes:

- ``NotFound`` -> 404
- payment failures -> 402
- validation errors -> 400
- any other business-rule conflict (stock, transitions) -> 409

The view never swallows generic exceptions.
"""

from __future__ import annotations

from uuid import UUID

import pydantic
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import DomainError, DomainValidationError, NotFound
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderFromCartDTO
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.serializers import (
    CancelOrderSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    PaymentRequestSerializer,
    RefundOrderSerializer,
    StatusHistorySerializer,
    UpdateStatusSerializer,
)
from modules.orders.services import build_order_service
from modules.payments.exceptions import PaymentError


def domain_error_response(exc: DomainError) -> Response:
    if isinstance(exc, NotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, PaymentError):
        code = status.HTTP_402_PAYMENT_REQUIRED
    elif isinstance(exc, DomainValidationError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_409_CONFLICT
    return Response(exc.to_dict(), status=code)


def _actor_id(request: Request):
    user = request.user
    return user.pk if user and user.is_authenticated else None


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Does **not** extend ``ModelViewSet``: all writes go through the
    service layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["order_number"]
    ordering_fields = ["created_at", "grand_total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/ : convert a cart into an order."""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            dto = CreateOrderFromCartDTO(**serializer.validated_data, actor_id=_actor_id(request))
        except pydantic.ValidationError as exc:
            return Response(
                {"code": "validation_error", "detail": exc.errors(include_url=False)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            order = self._service.create_order_from_cart(dto)
        except DomainError as exc:
            return domain_error_response(exc)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def get_queryset(self):
        return Order.objects.prefetch_related("items", "status_history", "refunds")

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, user, date range, total range) is handled by
        ``OrderFilter``; results are paginated.
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
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"])
    def history(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/history/"""
        try:
            entries = self._service.get_status_history(pk)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(StatusHistorySerializer(entries, many=True).data)

    # ------------------------------------------------------------------
    # Status Update
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Cancellations and refunds have dedicated endpoints and are refused
        here.
        """
        serializer = UpdateStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        if new_status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            endpoint = "cancel" if new_status == OrderStatus.CANCELLED else "refund"
            return Response(
                {"detail": f"Use the /{endpoint}/ endpoint."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        order_id = _parse_uuid(pk)
        if order_id is None:
            return Response({"detail": "Invalid order ID format."}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.update_status(
                order_id,
                new_status,
                actor_id=_actor_id(request),
                notes=serializer.validated_data["notes"],
            )
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Dedicated actions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/ : cancel and restore stock."""
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order_id = _parse_uuid(pk)
        if order_id is None:
            return Response({"detail": "Invalid order ID format."}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.cancel_order(
                order_id,
                reason=serializer.validated_data["reason"],
                actor_id=_actor_id(request),
            )
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def refund(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/refund/

        With ``use_gateway`` the money is returned through the payment
        gateway first; otherwise the refund is only recorded.
        """
        serializer = RefundOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order_id = _parse_uuid(pk)
        if order_id is None:
            return Response({"detail": "Invalid order ID format."}, status=status.HTTP_400_BAD_REQUEST)

        refund = self._service.process_refund if data["use_gateway"] else self._service.refund_order
        try:
            order = refund(
                order_id,
                data["amount"],
                reason=data["reason"],
                actor_id=_actor_id(request),
                release_inventory=data["release_inventory"],
            )
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def pay(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/pay/ : charge a pending order."""
        serializer = PaymentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order_id = _parse_uuid(pk)
        if order_id is None:
            return Response({"detail": "Invalid order ID format."}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.process_payment(
                order_id,
                serializer.validated_data["details"],
                authorize_only=serializer.validated_data["authorize_only"],
                actor_id=_actor_id(request),
            )
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)


def _parse_uuid(value: str | None) -> UUID | None:
    try:
        return UUID(str(value))
    except ValueError:
        return None
