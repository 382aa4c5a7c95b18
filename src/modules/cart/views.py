"""Session cart API.

The cart lives in the Django session; each request restores a
``CartStore`` from it and ``SessionCartPersistence`` writes it back after
every mutation.  Product look-ups go through the catalog service so a
missing or inactive product is rejected before it reaches the cart.
"""

from __future__ import annotations

import structlog
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.cart.cart import (
    CartStore,
    ProductSnapshot,
    SessionCartPersistence,
    VariantSnapshot,
)
from modules.cart.serializers import (
    AddItemSerializer,
    ApplyCouponSerializer,
    CartSerializer,
    UpdateQuantitySerializer,
)
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.services import CouponService
from modules.orders.exceptions import EmptyCart, ProductUnavailable, VariantNotFound
from modules.orders.serializers import CheckoutDetailsSerializer, OrderSerializer
from modules.orders.views import (
    build_create_order_dto,
    build_order_service,
    is_replay,
)
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService

logger = structlog.get_logger(__name__)


class CartViewSet(ViewSet):
    """``/api/v1/cart/``: anonymous shoppers may fill a cart; checkout needs a login."""

    permission_classes = [AllowAny]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._coupons = CouponService(repository=CouponDjangoRepository())
        self._products = ProductService(repository=ProductDjangoRepository())

    def get_permissions(self):
        if self.action == "checkout":
            return [IsAuthenticated()]
        return super().get_permissions()

    def _load(self, request: Request) -> CartStore:
        return SessionCartPersistence(request.session).load(coupon_service=self._coupons)

    def _respond(self, cart: CartStore, status_code: int = status.HTTP_200_OK) -> Response:
        return Response(CartSerializer(cart).data, status=status_code)

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/cart/"""
        return self._respond(self._load(request))

    @action(detail=False, methods=["delete"], url_path="clear")
    def clear(self, request: Request) -> Response:
        """DELETE /api/v1/cart/clear/"""
        cart = self._load(request)
        cart.clear()
        return self._respond(cart)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"], url_path="items")
    def add_item(self, request: Request) -> Response:
        """POST /api/v1/cart/items/"""
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        product = self._products.get_product(str(data["product_id"]))
        if not product.is_active:
            raise ProductUnavailable(product.name)

        variant = None
        if data.get("variant"):
            variant = product.get_variant(data["variant"])
            if variant is None:
                raise VariantNotFound(product.name, data["variant"])
        else:
            variant = product.default_variant

        cart = self._load(request)
        cart.add_item(
            ProductSnapshot.from_product(product),
            VariantSnapshot.from_variant(variant) if variant else None,
            data["quantity"],
        )
        return self._respond(cart, status.HTTP_201_CREATED)

    @action(
        detail=False,
        methods=["patch", "delete"],
        url_path=r"items/(?P<key>[^/]+)",
    )
    def item(self, request: Request, key: str) -> Response:
        """PATCH / DELETE /api/v1/cart/items/{key}/"""
        cart = self._load(request)
        if request.method == "DELETE":
            cart.remove_item(key)
        else:
            serializer = UpdateQuantitySerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            cart.update_quantity(key, serializer.validated_data["quantity"])
        return self._respond(cart)

    # ------------------------------------------------------------------
    # Coupon
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post", "delete"], url_path="coupon")
    def coupon(self, request: Request) -> Response:
        """POST / DELETE /api/v1/cart/coupon/"""
        cart = self._load(request)
        if request.method == "DELETE":
            cart.remove_coupon()
        else:
            serializer = ApplyCouponSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            cart.apply_coupon(serializer.validated_data["code"])
        return self._respond(cart)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"], url_path="checkout")
    def checkout(self, request: Request) -> Response:
        """POST /api/v1/cart/checkout/

        Places an order from the session cart (with its coupon) and
        empties the cart once the order exists.  Repeating the request
        with the same ``Idempotency-Key`` answers 200 with that order.
        """
        serializer = CheckoutDetailsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        idempotency_key = request.headers.get("Idempotency-Key")
        replay = is_replay(idempotency_key)
        cart = self._load(request)
        if cart.is_empty and not replay:
            raise EmptyCart()

        dto = build_create_order_dto(
            request.user.pk,
            [
                {
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "variant": item.variant,
                }
                for item in cart.items
            ],
            serializer.validated_data,
            coupon_code=cart.coupon_code,
            idempotency_key=idempotency_key,
        )
        order = build_order_service().place_order(dto)

        cart.clear()
        logger.info("cart.checked_out", order_id=str(order.id), replay=replay)
        return Response(
            OrderSerializer(order).data,
            status=status.HTTP_200_OK if replay else status.HTTP_201_CREATED,
        )
