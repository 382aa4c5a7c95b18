"""Coupon evaluator.

``CouponService.validate`` is a pure check of a code against a
subtotal: it reads the coupon table and never writes to it.

Discounts:
- percentage: ``round_half_up(subtotal * value / 100)``, capped at the subtotal.
- fixed: ``min(value, subtotal)``.

A discount is therefore never negative and never larger than the subtotal.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, List

import structlog

from modules.coupons.dtos import AppliedCoupon
from modules.coupons.exceptions import BelowMinimumOrder, CouponNotFound
from modules.coupons.models import Coupon, DiscountType
from shared.domain.money import ZERO, percentage_of, to_decimal

if TYPE_CHECKING:
    from modules.coupons.repositories.interfaces import ICouponRepository

logger = structlog.get_logger(__name__)


def discount_for(coupon: Coupon, subtotal: Decimal) -> Decimal:
    if subtotal <= 0:
        return ZERO
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = percentage_of(subtotal, coupon.value)
    else:
        discount = to_decimal(coupon.value)
    return max(ZERO, min(discount, subtotal))


class CouponService:
    def __init__(self, repository: ICouponRepository) -> None:
        self._repo = repository

    def validate(self, code: str, subtotal: Decimal) -> AppliedCoupon:
        """Evaluate ``code`` against ``subtotal``.

        Raises:
            CouponNotFound: unknown or inactive code (matched case-insensitively).
            BelowMinimumOrder: ``subtotal`` is under the coupon's minimum.
        """
        normalized = (code or "").strip().upper()
        subtotal = to_decimal(subtotal)
        log = logger.bind(coupon_code=normalized, subtotal=str(subtotal))

        coupon = self._repo.get_active_by_code(normalized) if normalized else None
        if coupon is None:
            log.info("coupon.rejected", reason="not_found")
            raise CouponNotFound(normalized)

        if subtotal < coupon.min_order:
            shortfall = coupon.min_order - subtotal
            log.info("coupon.rejected", reason="below_minimum", shortfall=str(shortfall))
            raise BelowMinimumOrder(coupon.code, coupon.min_order, shortfall)

        discount = discount_for(coupon, subtotal)
        log.info("coupon.applied", discount=str(discount))
        return AppliedCoupon(
            code=coupon.code,
            discount_type=coupon.discount_type,
            value=coupon.value,
            min_order=coupon.min_order,
            discount=discount,
            description=coupon.description,
        )

    def list_active(self) -> List[Coupon]:
        return self._repo.list_active()
