"""Coupon DTOs."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator


class AppliedCoupon(BaseModel):
    """A coupon accepted for a given subtotal, with the discount it yields."""

    model_config = ConfigDict(frozen=True)

    code: str
    discount_type: str
    value: Decimal
    min_order: Decimal
    discount: Decimal
    description: str = ""


class ValidateCouponDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    subtotal: Decimal

    @field_validator("code")
    @classmethod
    def code_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Coupon code must not be empty.")
        return v.strip().upper()

    @field_validator("subtotal")
    @classmethod
    def subtotal_must_be_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Subtotal cannot be negative.")
        return v
