"""Coupon evaluator: look-up, minimum order and discount arithmetic."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from modules.coupons.exceptions import BelowMinimumOrder, CouponError, CouponNotFound
from modules.coupons.models import Coupon, DiscountType
from modules.coupons.services import CouponService, discount_for

pytestmark = pytest.mark.unit


class TestValidate:
    def test_percentage_coupon(self, coupon_service, coupons):
        applied = coupon_service.validate("TEA20", Decimal("600"))

        assert applied.code == "TEA20"
        assert applied.discount_type == DiscountType.PERCENTAGE
        assert applied.discount == Decimal("120")

    def test_fixed_coupon(self, coupon_service, coupons):
        applied = coupon_service.validate("WELCOME50", Decimal("350"))

        assert applied.discount == Decimal("50")

    def test_code_is_case_insensitive(self, coupon_service, coupons):
        assert coupon_service.validate("  bestea10 ", Decimal("200")).code == "BESTEA10"

    def test_exactly_minimum_order_succeeds(self, coupon_service, coupons):
        applied = coupon_service.validate("TEA20", Decimal("500"))

        assert applied.discount == Decimal("100")

    def test_one_unit_below_minimum_fails_with_shortfall(self, coupon_service, coupons):
        with pytest.raises(BelowMinimumOrder) as exc_info:
            coupon_service.validate("TEA20", Decimal("499"))

        assert exc_info.value.shortfall == Decimal("1")
        assert exc_info.value.minimum == Decimal("500")
        assert "₹500" in str(exc_info.value)
        assert exc_info.value.code == "below_minimum_order"

    @pytest.mark.parametrize("code", ["NOPE", "", "   "])
    def test_unknown_code(self, coupon_service, coupons, code):
        with pytest.raises(CouponNotFound) as exc_info:
            coupon_service.validate(code, Decimal("1000"))

        assert exc_info.value.code == "coupon_not_found"

    def test_inactive_coupon_is_not_found(self, coupon_service, coupons):
        coupons["TEA20"].is_active = False
        coupons["TEA20"].save()

        with pytest.raises(CouponNotFound):
            coupon_service.validate("TEA20", Decimal("1000"))

    def test_rejections_share_a_base_class(self):
        assert issubclass(CouponNotFound, CouponError)
        assert issubclass(BelowMinimumOrder, CouponError)

    def test_validate_never_writes(self):
        repo = MagicMock()
        repo.get_active_by_code.return_value = Coupon(
            code="TEA20",
            discount_type=DiscountType.PERCENTAGE,
            value=Decimal("20"),
            min_order=Decimal("500"),
        )

        CouponService(repository=repo).validate("TEA20", Decimal("600"))

        repo.get_active_by_code.assert_called_once_with("TEA20")
        repo.save.assert_not_called()


class TestDiscountFor:
    def _coupon(self, discount_type, value):
        return Coupon(code="X", discount_type=discount_type, value=Decimal(value))

    def test_percentage_rounds_half_up(self):
        # 10% of 205 = 20.5
        coupon = self._coupon(DiscountType.PERCENTAGE, "10")
        assert discount_for(coupon, Decimal("205")) == Decimal("21")

    def test_fixed_discount_is_capped_at_subtotal(self):
        coupon = self._coupon(DiscountType.FIXED, "50")
        assert discount_for(coupon, Decimal("30")) == Decimal("30")

    def test_full_percentage_equals_subtotal(self):
        coupon = self._coupon(DiscountType.PERCENTAGE, "100")
        assert discount_for(coupon, Decimal("640")) == Decimal("640")

    def test_zero_subtotal_gives_zero_discount(self):
        coupon = self._coupon(DiscountType.FIXED, "50")
        assert discount_for(coupon, Decimal("0")) == Decimal("0")

    @pytest.mark.parametrize("subtotal", ["1", "49", "50", "333", "10000"])
    @pytest.mark.parametrize(
        "discount_type, value",
        [(DiscountType.PERCENTAGE, "20"), (DiscountType.FIXED, "50")],
    )
    def test_discount_is_within_zero_and_subtotal(self, discount_type, value, subtotal):
        discount = discount_for(self._coupon(discount_type, value), Decimal(subtotal))
        assert Decimal("0") <= discount <= Decimal(subtotal)


def test_list_active_excludes_inactive(coupon_service, coupons):
    coupons["FREESHIP"].is_active = False
    coupons["FREESHIP"].save()

    codes = [coupon.code for coupon in coupon_service.list_active()]

    assert "FREESHIP" not in codes
    assert set(codes) == {"BESTEA10", "WELCOME50", "TEA20"}


def test_code_is_stored_uppercase():
    coupon = Coupon.objects.create(
        code=" monsoon15 ", discount_type=DiscountType.PERCENTAGE, value=Decimal("15")
    )
    assert coupon.code == "MONSOON15"
