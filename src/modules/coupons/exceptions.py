"""Coupon evaluation errors."""

from __future__ import annotations

from decimal import Decimal

from modules.core.exceptions import DomainError


class CouponError(DomainError):
    """Base class for coupon rejections."""


class CouponNotFound(CouponError):
    """Unknown or inactive coupon code."""

    code = "coupon_not_found"

    def __init__(self, coupon_code: str) -> None:
        self.coupon_code = coupon_code
        super().__init__(f"Coupon '{coupon_code}' is invalid or no longer active.")


class BelowMinimumOrder(CouponError):
    """Subtotal is below the coupon's minimum order value."""

    code = "below_minimum_order"

    def __init__(self, coupon_code: str, minimum: Decimal, shortfall: Decimal) -> None:
        self.coupon_code = coupon_code
        self.minimum = minimum
        self.shortfall = shortfall
        super().__init__(
            f"Coupon '{coupon_code}' needs a minimum order of ₹{minimum}. "
            f"Add ₹{shortfall} more to use it."
        )
