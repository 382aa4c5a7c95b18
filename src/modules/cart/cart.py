"""Cart state container.

``CartStore`` owns the pre-checkout line items and the applied coupon,
and re-derives the totals after every mutation.  It knows nothing about
HTTP or sessions: persistence is a subscriber (``SessionCartPersistence``)
that is notified with the store after each change.

Item keys are ``"{product_id}"`` or ``"{product_id}-{variant}"`` so the
same tea in two pack sizes gives two lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import structlog

from modules.cart.exceptions import CartItemNotFound
from modules.cart.pricing import EMPTY_TOTALS, PricingPolicy, Totals
from modules.coupons.exceptions import CouponError
from shared.domain.money import ZERO, to_decimal

if TYPE_CHECKING:
    from django.contrib.sessions.backends.base import SessionBase

    from modules.coupons.dtos import AppliedCoupon
    from modules.coupons.services import CouponService
    from modules.products.models import Product, ProductVariant

logger = structlog.get_logger(__name__)

Listener = Callable[["CartStore"], None]

SESSION_KEY = "cart"


@dataclass(frozen=True)
class ProductSnapshot:
    """What the cart needs to know about a product when it is added."""

    id: Optional[str]
    name: str
    price: Decimal
    stock: int = 0

    @classmethod
    def from_product(cls, product: Product) -> ProductSnapshot:
        return cls(
            id=str(product.id),
            name=product.name,
            price=product.default_price,
            stock=product.stock_quantity,
        )


@dataclass(frozen=True)
class VariantSnapshot:
    name: str
    price: Decimal
    stock: int = 0
    weight: str = ""

    @classmethod
    def from_variant(cls, variant: ProductVariant) -> VariantSnapshot:
        return cls(
            name=variant.name,
            price=variant.price,
            stock=variant.stock,
            weight=variant.weight,
        )


@dataclass
class CartItem:
    key: str
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    variant: Optional[str] = None
    weight: str = ""
    stock: int = 0

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def exceeds_stock(self) -> bool:
        """Soft check against the stock seen when the item was added."""
        return self.quantity > self.stock

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "variant": self.variant,
            "weight": self.weight,
            "stock": self.stock,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CartItem:
        return cls(
            key=data["key"],
            product_id=data["product_id"],
            name=data["name"],
            unit_price=to_decimal(data["unit_price"]),
            quantity=int(data["quantity"]),
            variant=data.get("variant"),
            weight=data.get("weight", ""),
            stock=int(data.get("stock", 0)),
        )


def item_key(product_id: str, variant: Optional[str] = None) -> str:
    return f"{product_id}-{variant}" if variant else str(product_id)


class CartStore:
    """Line items + coupon, with derived totals and change listeners."""

    def __init__(
        self,
        coupon_service: Optional[CouponService] = None,
        pricing: Optional[PricingPolicy] = None,
    ) -> None:
        self._coupon_service = coupon_service
        self._pricing = pricing or PricingPolicy.from_settings()
        self._items: Dict[str, CartItem] = {}
        self._coupon: Optional[AppliedCoupon] = None
        self._totals: Totals = EMPTY_TOTALS
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def items(self) -> List[CartItem]:
        return list(self._items.values())

    @property
    def coupon(self) -> Optional[AppliedCoupon]:
        return self._coupon

    @property
    def coupon_code(self) -> Optional[str]:
        return self._coupon.code if self._coupon else None

    @property
    def totals(self) -> Totals:
        return self._totals

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def get_item(self, key: str) -> CartItem:
        try:
            return self._items[key]
        except KeyError:
            raise CartItemNotFound(key) from None

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_item(
        self,
        product: ProductSnapshot,
        variant: Optional[VariantSnapshot] = None,
        quantity: int = 1,
    ) -> Optional[CartItem]:
        """Add ``quantity`` units, merging with an existing line for the same key.

        A snapshot without an id is ignored (logged, no state change).
        """
        if product is None or not product.id:
            logger.error("cart.invalid_product", product=repr(product))
            return None

        key = item_key(product.id, variant.name if variant else None)
        item = self._items.get(key)
        if item is not None:
            item.quantity += quantity
        else:
            item = CartItem(
                key=key,
                product_id=str(product.id),
                name=product.name,
                unit_price=variant.price if variant else product.price,
                quantity=quantity,
                variant=variant.name if variant else None,
                weight=variant.weight if variant else "",
                stock=variant.stock if variant else product.stock,
            )
            self._items[key] = item

        logger.info("cart.item_added", key=key, quantity=item.quantity)
        self._commit()
        return item

    def update_quantity(self, key: str, quantity: int) -> None:
        """Set the quantity of a line; ``quantity <= 0`` removes it.

        Quantities are not clamped to stock here; checkout re-validates.
        """
        if quantity <= 0:
            self.remove_item(key)
            return
        item = self.get_item(key)
        item.quantity = quantity
        logger.info("cart.quantity_updated", key=key, quantity=quantity)
        self._commit()

    def remove_item(self, key: str) -> None:
        self.get_item(key)
        del self._items[key]
        logger.info("cart.item_removed", key=key)
        self._commit()

    def clear(self) -> None:
        self._items.clear()
        self._coupon = None
        logger.info("cart.cleared")
        self._commit()

    def apply_coupon(self, code: str) -> AppliedCoupon:
        """Apply ``code`` to the current subtotal.

        Raises the coupon evaluator's rejection unchanged; the cart is not
        modified in that case.
        """
        if self._coupon_service is None:
            raise RuntimeError("CartStore has no coupon service configured.")
        applied = self._coupon_service.validate(code, self._subtotal())
        self._coupon = applied
        logger.info("cart.coupon_applied", coupon_code=applied.code)
        self._commit()
        return applied

    def remove_coupon(self) -> None:
        self._coupon = None
        logger.info("cart.coupon_removed")
        self._commit()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def _subtotal(self) -> Decimal:
        return sum((item.line_total for item in self._items.values()), ZERO)

    def _recompute(self) -> None:
        if not self._items:
            self._coupon = None
            self._totals = EMPTY_TOTALS
            return

        subtotal = self._subtotal()
        if self._coupon is not None:
            self._reevaluate_coupon(subtotal)
        discount = self._coupon.discount if self._coupon else ZERO
        self._totals = self._pricing.totals(subtotal, discount)

    def _reevaluate_coupon(self, subtotal: Decimal) -> None:
        code = self._coupon.code
        if self._coupon_service is None:
            return
        try:
            self._coupon = self._coupon_service.validate(code, subtotal)
        except CouponError as exc:
            self._coupon = None
            logger.info("cart.coupon_dropped", coupon_code=code, reason=exc.code)

    def _commit(self) -> None:
        self._recompute()
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self._items.values()],
            "coupon_code": self.coupon_code,
        }

    @classmethod
    def from_dict(
        cls,
        data: Optional[Dict[str, Any]],
        coupon_service: Optional[CouponService] = None,
        pricing: Optional[PricingPolicy] = None,
    ) -> CartStore:
        """Rebuild a store from ``to_dict`` output.

        The coupon is re-evaluated against the restored subtotal and
        silently dropped if it no longer applies.
        """
        store = cls(coupon_service=coupon_service, pricing=pricing)
        data = data or {}
        for raw in data.get("items", []):
            item = CartItem.from_dict(raw)
            store._items[item.key] = item

        code = data.get("coupon_code")
        if code and coupon_service is not None and store._items:
            try:
                store._coupon = coupon_service.validate(code, store._subtotal())
            except CouponError as exc:
                logger.info("cart.coupon_dropped", coupon_code=code, reason=exc.code)
        store._recompute()
        return store


class SessionCartPersistence:
    """Cart subscriber that mirrors the store into the Django session."""

    def __init__(self, session: SessionBase, key: str = SESSION_KEY) -> None:
        self._session = session
        self._key = key

    def __call__(self, store: CartStore) -> None:
        if store.is_empty and not store.coupon_code:
            self._session.pop(self._key, None)
        else:
            self._session[self._key] = store.to_dict()
        self._session.modified = True

    def load(
        self,
        coupon_service: Optional[CouponService] = None,
        pricing: Optional[PricingPolicy] = None,
    ) -> CartStore:
        """Restore the session cart and subscribe this persistence to it."""
        store = CartStore.from_dict(
            self._session.get(self._key), coupon_service=coupon_service, pricing=pricing
        )
        store.subscribe(self)
        return store
