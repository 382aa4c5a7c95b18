"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions raised by the service propagate to
``api_exception_handler``; the view never swallows generic exceptions.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import OrderHistoryPagination
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.services import CouponService
from modules.orders.dtos import (
    CreateOrderDTO,
    CreateOrderItemDTO,
    PaymentResultDTO,
    ShippingAddressDTO,
    TrackingDTO,
)
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelOrderSerializer,
    CreateOrderSerializer,
    OrderListQuerySerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderTrackingSerializer,
    PaymentResultSerializer,
    UpdateStatusSerializer,
)
from modules.orders.services import OrderService
from modules.products.repositories.django_repository import ProductDjangoRepository


def build_order_service() -> OrderService:
    """Wire the service with its Django-backed collaborators."""
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        coupon_service=CouponService(repository=CouponDjangoRepository()),
    )


def is_replay(idempotency_key: Optional[str]) -> bool:
    """True when an order was already placed with this Idempotency-Key."""
    return bool(
        idempotency_key
        and Order.objects.filter(idempotency_key=idempotency_key).exists()
    )


def build_create_order_dto(
    user_id: int,
    items: List[Dict[str, Any]],
    details: Dict[str, Any],
    coupon_code: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> CreateOrderDTO:
    """Turn validated request data into the placement DTO."""
    billing = details.get("billing_address")
    return CreateOrderDTO(
        user_id=user_id,
        items=[
            CreateOrderItemDTO(
                product_id=item["product_id"],
                quantity=item["quantity"],
                variant=item.get("variant"),
            )
            for item in items
        ],
        shipping_address=ShippingAddressDTO(**details["shipping_address"]),
        billing_address=ShippingAddressDTO(**billing) if billing else None,
        payment_method=details["payment_method"],
        coupon_code=coupon_code,
        notes=details.get("notes", ""),
        idempotency_key=idempotency_key,
    )


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet`` — all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    pagination_class = OrderHistoryPagination
    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_permissions(self):
        if self.action == "update_status":
            return [IsAdminUser()]
        return super().get_permissions()

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttling scopes."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "track"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

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
        data = serializer.validated_data

        idempotency_key = request.headers.get("Idempotency-Key")
        replay = is_replay(idempotency_key)
        dto = build_create_order_dto(
            request.user.pk,
            data["items"],
            data,
            coupon_code=data.get("coupon_code"),
            idempotency_key=idempotency_key,
        )

        order = self._service.place_order(dto)
        return Response(
            OrderSerializer(order).data,
            status=status.HTTP_200_OK if replay else status.HTTP_201_CREATED,
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/?page=&limit=&status="""
        query = OrderListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        orders = self._service.list_orders(
            request.user, query.validated_data.get("status") or None
        )
        page = self.paginate_queryset(orders)
        return self.get_paginated_response(OrderListSerializer(page, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(pk, request.user)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"], url_path="track")
    def track(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/track/"""
        tracking = self._service.track_order(pk, request.user)
        return Response(OrderTrackingSerializer(tracking).data)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @action(detail=True, methods=["put", "patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/status/ (administrators only)"""
        serializer = UpdateStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tracking = TrackingDTO(
            courier=data["courier"],
            tracking_number=data["tracking_number"],
            tracking_url=data["tracking_url"],
        )
        order = self._service.advance_status(
            pk,
            data["status"],
            request.user,
            notes=data["notes"],
            tracking=tracking if tracking.as_dict() else None,
        )
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["put", "post"], url_path="cancel")
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/cancel/"""
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self._service.cancel_order(
            pk, request.user, serializer.validated_data.get("reason")
        )
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"], url_path="payment")
    def payment(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/payment/"""
        serializer = PaymentResultSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        dto = PaymentResultDTO(
            id=data["id"],
            status=data["status"],
            update_time=data["update_time"],
            email_address=data["payer"].get("email_address", ""),
        )
        order = self._service.record_payment(pk, request.user, dto)
        return Response(OrderSerializer(order).data)
