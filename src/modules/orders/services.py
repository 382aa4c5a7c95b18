"""Order service layer (Use Cases).

Orchestrates order placement and the order lifecycle.  All write
operations are atomic: the service defines the unit-of-work boundary.

Placement is two-phase.  Every line is validated against the live
catalog first (nothing is written), then stock is reserved with
conditional updates, lines sorted by product id.  A reservation that
loses a race raises ``InsufficientStock`` and the transaction rolls back
the reservations already made.

Notifications are never sent from here: events go to the outbox in the
same transaction and the relay task is enqueued after commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.cart.pricing import PricingPolicy
from modules.core.tasks import relay_outbox_events
from modules.orders.constants import (
    CANCELLABLE_STATES,
    DEFAULT_CANCELLATION_REASON,
    ESCALATION_STATES,
    LIFECYCLE,
    LIFECYCLE_RANK,
    MILESTONE_FIELDS,
    SHIPPED_STATES,
    TERMINAL_STATES,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.dtos import OrderTrackingDTO, TimelineStepDTO
from modules.orders.events import OrderCancelled, OrderPlaced, OrderStatusChanged
from modules.orders.exceptions import (
    AlreadyCancelled,
    AlreadyShipped,
    CancellationWindowExpired,
    EmptyCart,
    InsufficientStock,
    InvalidOrderStatus,
    OrderAccessDenied,
    OrderNotFound,
    ProductNotFound,
    ProductUnavailable,
    VariantNotFound,
)
from modules.orders.models import Order
from shared.domain.money import ZERO

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractUser
    from django.db.models import QuerySet

    from modules.coupons.services import CouponService
    from modules.orders.dtos import CreateOrderDTO, PaymentResultDTO, TrackingDTO
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

TIMELINE_TEXT = {
    OrderStatus.PENDING: (
        "Order Placed",
        "Your order has been received and is being processed",
    ),
    OrderStatus.CONFIRMED: (
        "Order Confirmed",
        "Your order has been confirmed and is being prepared",
    ),
    OrderStatus.PROCESSING: (
        "Processing",
        "Your order is being prepared for shipment",
    ),
    OrderStatus.SHIPPED: (
        "Shipped",
        "Your order has been shipped and is on its way",
    ),
    OrderStatus.OUT_FOR_DELIVERY: (
        "Out for Delivery",
        "Your order is out for delivery",
    ),
    OrderStatus.DELIVERED: (
        "Delivered",
        "Your order has been delivered successfully",
    ),
}


@dataclass(frozen=True)
class _ResolvedLine:
    product: Product
    variant: Optional[str]
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def _is_admin(actor: Any) -> bool:
    return bool(getattr(actor, "is_staff", False))


def _is_owner(order: Order, actor: Any) -> bool:
    return actor is not None and order.user_id == getattr(actor, "pk", None)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories, the coupon evaluator and the pricing policy
    via constructor injection (DIP).  ``clock`` returns the current
    aware datetime and is replaceable in tests.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        coupon_service: CouponService,
        pricing: Optional[PricingPolicy] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._coupon_service = coupon_service
        self._pricing = pricing or PricingPolicy.from_settings()
        self._clock = clock

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    @transaction.atomic
    def place_order(self, dto: CreateOrderDTO) -> Order:
        """Turn a checkout request into a persisted ``pending`` order.

        Steps:
        0. Replay: an existing order with the same idempotency key is returned.
        1. Reject an empty item list.
        2. Validate every line in submitted order (no writes).
        3. Price from the live catalog and evaluate the coupon.
        4. Reserve stock with conditional updates, sorted by product id.
        5. Persist order, frozen items, initial history and ``OrderPlaced``.
        6. Enqueue the outbox relay after commit.

        Raises:
            EmptyCart, ProductNotFound, ProductUnavailable, VariantNotFound,
            InsufficientStock, CouponNotFound, BelowMinimumOrder.
        """
        log = logger.bind(user_id=dto.user_id)
        log.info("order.placement_started", item_count=len(dto.items))

        # 0. Idempotency check
        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                if existing.user_id != dto.user_id:
                    raise OrderAccessDenied()
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        # 1. Empty cart
        if not dto.items:
            raise EmptyCart()

        # 2. Validate every line before touching stock
        lines = [
            self._resolve_line(item.product_id, item.variant, item.quantity)
            for item in dto.items
        ]

        # 3. Price and discount
        subtotal = sum((line.line_total for line in lines), ZERO)
        applied = (
            self._coupon_service.validate(dto.coupon_code, subtotal)
            if dto.coupon_code
            else None
        )
        totals = self._pricing.totals(
            subtotal,
            applied.discount if applied else ZERO,
            dto.payment_method,
        )

        # 4. Reserve stock
        self._reserve_stock(lines, log)

        # 5. Persist
        order = Order(
            user_id=dto.user_id,
            status=OrderStatus.PENDING,
            subtotal=totals.subtotal,
            discount_amount=totals.discount,
            coupon_code=applied.code if applied else "",
            discount_type=applied.discount_type if applied else "",
            shipping_charges=totals.shipping,
            tax_amount=totals.tax,
            tax_percentage=self._pricing.tax_rate_percent,
            total=totals.total,
            shipping_address=dto.shipping_address.model_dump(),
            billing_address=(
                dto.billing_address.model_dump() if dto.billing_address else None
            ),
            payment_method=dto.payment_method,
            payment_status=PaymentStatus.PENDING,
            notes=dto.notes,
            idempotency_key=dto.idempotency_key,
        )
        self._order_repo.create(
            order,
            [
                {
                    "product_id": line.product.id,
                    "product_name": line.product.name,
                    "variant": line.variant,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                }
                for line in lines
            ],
        )
        self._order_repo.add_history(
            order.id, None, OrderStatus.PENDING, dto.user_id, notes="Order placed"
        )
        order.add_domain_event(
            OrderPlaced(
                aggregate_id=order.id,
                order_number=order.order_number,
                total=str(order.total),
            )
        )
        self._order_repo.flush_events(order)

        log.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=str(order.total),
            coupon_code=order.coupon_code or None,
        )

        # 6. Notify after commit
        self._schedule_notifications()

        return self._order_repo.get_by_id(str(order.id)) or order

    def _resolve_line(
        self, product_id: Any, variant: Optional[str], quantity: int
    ) -> _ResolvedLine:
        product = self._product_repo.get_by_id(str(product_id))
        if product is None:
            raise ProductNotFound(product_id)
        if not product.is_active:
            raise ProductUnavailable(product.name)

        if variant:
            product_variant = product.get_variant(variant)
            if product_variant is None:
                raise VariantNotFound(product.name, variant)
            available, unit_price = product_variant.stock, product_variant.price
        else:
            available, unit_price = product.stock_quantity, product.price

        if quantity > available:
            raise InsufficientStock(product.name, available)
        return _ResolvedLine(product, variant, quantity, unit_price)

    def _reserve_stock(self, lines: List[_ResolvedLine], log) -> None:
        for line in sorted(lines, key=lambda ln: (str(ln.product.id), ln.variant or "")):
            product_id = str(line.product.id)
            if not self._product_repo.reserve_stock(
                product_id, line.quantity, line.variant
            ):
                available = self._product_repo.available_stock(product_id, line.variant)
                log.warning(
                    "order.stock_race_lost",
                    product_id=product_id,
                    variant=line.variant,
                    requested=line.quantity,
                    available=available,
                )
                raise InsufficientStock(line.product.name, available)
            log.info(
                "order.stock_reserved",
                product_id=product_id,
                variant=line.variant,
                quantity=line.quantity,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @transaction.atomic
    def advance_status(
        self,
        order_id: Any,
        new_status: str,
        actor: AbstractUser,
        notes: str = "",
        tracking: Optional[TrackingDTO] = None,
    ) -> Order:
        """Move an order forward along its lifecycle.

        Acquires a row-level lock (``SELECT FOR UPDATE``) on the order.
        ``cancelled`` is not accepted here; use ``cancel_order``.

        Raises:
            InvalidOrderStatus: unknown status or a disallowed transition.
            OrderNotFound: order does not exist.
            OrderAccessDenied: actor is neither the owner nor an admin.
        """
        if new_status not in OrderStatus.values:
            raise InvalidOrderStatus(f"'{new_status}' is not a valid order status.")
        if new_status == OrderStatus.CANCELLED:
            raise InvalidOrderStatus("Use the cancel operation to cancel an order.")

        order = self._order_repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(order_id)
        if not (_is_owner(order, actor) or _is_admin(actor)):
            raise OrderAccessDenied()

        old_status = order.status
        self._check_transition(old_status, new_status)

        now = self._clock()
        order.status = new_status
        new_rank = LIFECYCLE_RANK.get(new_status, -1)
        for milestone, field in MILESTONE_FIELDS.items():
            if LIFECYCLE_RANK[milestone] <= new_rank and getattr(order, field) is None:
                setattr(order, field, now)
        if tracking is not None:
            order.tracking = {**(order.tracking or {}), **tracking.as_dict()}

        self._order_repo.add_history(order.id, old_status, new_status, actor.pk, notes)
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                order_number=order.order_number,
                old_status=old_status,
                new_status=new_status,
            )
        )
        self._order_repo.save(order)

        logger.info(
            "order.status_changed",
            order_id=str(order.id),
            old_status=old_status,
            new_status=new_status,
            actor_id=actor.pk,
        )
        self._schedule_notifications()
        return self._order_repo.get_by_id(str(order.id)) or order

    @staticmethod
    def _check_transition(current: str, new: str) -> None:
        if current in TERMINAL_STATES:
            raise InvalidOrderStatus(
                f"Order is {current} and its status can no longer change.",
                current=current,
            )
        if new in ESCALATION_STATES:
            if current != OrderStatus.DELIVERED:
                raise InvalidOrderStatus(
                    f"Only delivered orders can move to {new}.", current=current
                )
            return
        if current == OrderStatus.DELIVERED:
            raise InvalidOrderStatus(
                "A delivered order can only be returned or exchanged.",
                current=current,
            )
        if LIFECYCLE_RANK[new] <= LIFECYCLE_RANK[current]:
            raise InvalidOrderStatus(
                f"Cannot move order from {current} to {new}.", current=current
            )

    @transaction.atomic
    def cancel_order(
        self, order_id: Any, actor: AbstractUser, reason: Optional[str] = None
    ) -> Order:
        """Cancel a pre-shipment order and put its stock back.

        The window is inclusive: an order exactly ``CANCELLATION_WINDOW_HOURS``
        old can still be cancelled.

        Raises:
            OrderNotFound, OrderAccessDenied, AlreadyCancelled, AlreadyShipped,
            InvalidOrderStatus, CancellationWindowExpired.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(order_id)
        if not _is_owner(order, actor):
            raise OrderAccessDenied("Only the customer who placed the order can cancel it.")

        log = logger.bind(order_id=str(order.id), order_number=order.order_number)

        if order.status == OrderStatus.CANCELLED:
            raise AlreadyCancelled()
        if order.status in SHIPPED_STATES:
            raise AlreadyShipped(order.status)
        if order.status not in CANCELLABLE_STATES:
            raise InvalidOrderStatus(
                f"Order in status {order.status} cannot be cancelled.",
                current=order.status,
            )

        now = self._clock()
        window = settings.STOREFRONT["CANCELLATION_WINDOW_HOURS"]
        hours_passed = (now - order.created_at).total_seconds() / 3600
        if hours_passed > window:
            log.info("order.cancellation_rejected", hours_passed=round(hours_passed, 2))
            raise CancellationWindowExpired(window, order.created_at)

        items = sorted(
            order.items.all(), key=lambda i: (str(i.product_id), i.variant)
        )
        for item in items:
            if item.product_id is None:
                log.warning("order.restock_skipped", item_id=str(item.id))
                continue
            released = self._product_repo.release_stock(
                str(item.product_id), item.quantity, item.variant or None
            )
            if not released:
                log.warning(
                    "order.restock_skipped",
                    item_id=str(item.id),
                    variant=item.variant or None,
                )

        old_status = order.status
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = now
        order.cancellation_reason = (reason or "").strip() or DEFAULT_CANCELLATION_REASON

        self._order_repo.add_history(
            order.id, old_status, OrderStatus.CANCELLED, actor.pk, order.cancellation_reason
        )
        order.add_domain_event(
            OrderCancelled(
                aggregate_id=order.id,
                order_number=order.order_number,
                reason=order.cancellation_reason,
            )
        )
        self._order_repo.save(order)

        log.info("order.cancelled", old_status=old_status, item_count=len(items))
        self._schedule_notifications()
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def record_payment(
        self, order_id: Any, actor: AbstractUser, payment: PaymentResultDTO
    ) -> Order:
        """Store the gateway's confirmation and mark the order paid.

        Raises:
            OrderNotFound, OrderAccessDenied.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(order_id)
        if not _is_owner(order, actor):
            raise OrderAccessDenied("Only the customer who placed the order can pay for it.")

        order.payment_result = payment.model_dump()
        order.payment_status = PaymentStatus.PAID
        order.paid_at = self._clock()
        self._order_repo.save(order)

        logger.info(
            "order.payment_recorded",
            order_id=str(order.id),
            payment_id=payment.id,
            payment_state=payment.status,
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: Any, actor: AbstractUser) -> Order:
        """Retrieve a single order visible to ``actor`` (owner or admin)."""
        order = self._order_repo.get_by_id(str(order_id))
        if order is None:
            raise OrderNotFound(order_id)
        if not (_is_owner(order, actor) or _is_admin(actor)):
            raise OrderAccessDenied()
        return order

    def list_orders(
        self, actor: AbstractUser, status: Optional[str] = None
    ) -> QuerySet[Order]:
        """The caller's own orders, newest first, optionally by status."""
        if status and status not in OrderStatus.values:
            raise InvalidOrderStatus(f"'{status}' is not a valid order status.")
        return self._order_repo.list_for_user(actor.pk, status)

    def track_order(self, order_id: Any, actor: AbstractUser) -> OrderTrackingDTO:
        """Fulfilment timeline: one step per lifecycle status.

        A step is completed when the order reached it (or went past it);
        its date is the first time the history recorded that status.
        """
        order = self.get_order(order_id, actor)
        reached = {}
        for entry in order.status_history.all():
            reached.setdefault(entry.new_status, entry.created_at)

        current_rank = LIFECYCLE_RANK.get(order.status, -1)
        if order.status in ESCALATION_STATES:
            current_rank = LIFECYCLE_RANK[OrderStatus.DELIVERED]

        steps = []
        for rank, status in enumerate(LIFECYCLE):
            title, description = TIMELINE_TEXT[status]
            date = order.created_at if status == OrderStatus.PENDING else reached.get(status)
            steps.append(
                TimelineStepDTO(
                    status=status,
                    title=title,
                    description=description,
                    completed=status in reached or rank <= current_rank,
                    date=date,
                )
            )

        return OrderTrackingDTO(
            order_id=order.id,
            order_number=order.order_number,
            current_status=order.status,
            timeline=steps,
            tracking=order.tracking or {},
            cancelled_at=order.cancelled_at,
            delivered_at=order.delivered_at,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _schedule_notifications(self) -> None:
        transaction.on_commit(_enqueue_relay)


def _enqueue_relay() -> None:
    """Ask Celery to relay the outbox; a broker outage never fails the order."""
    try:
        relay_outbox_events.delay()
    except Exception as exc:  # noqa: BLE001 - the beat schedule relays it later
        logger.warning("order.notification_enqueue_failed", error=str(exc))
