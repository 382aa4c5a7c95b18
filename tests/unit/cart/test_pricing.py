"""Shipping, tax and total derivation."""

from decimal import Decimal

import pytest

from modules.cart.pricing import EMPTY_TOTALS, PricingPolicy

pytestmark = pytest.mark.unit


@pytest.fixture()
def policy():
    return PricingPolicy(
        free_shipping_threshold=Decimal("499"),
        shipping_fee=Decimal("50"),
        tax_rate_percent=Decimal("18"),
        cod_fee=Decimal("0"),
    )


class TestTotals:
    def test_below_free_shipping_threshold(self, policy):
        totals = policy.totals(Decimal("300"))

        assert totals.shipping == Decimal("50")
        assert totals.tax == Decimal("54")
        assert totals.total == Decimal("404")

    def test_at_or_above_threshold_ships_free(self, policy):
        totals = policy.totals(Decimal("600"))

        assert totals.shipping == Decimal("0")
        assert totals.tax == Decimal("108")
        assert totals.total == Decimal("708")

    def test_threshold_itself_ships_free(self, policy):
        assert policy.shipping_for(Decimal("499")) == Decimal("0")
        assert policy.shipping_for(Decimal("498")) == Decimal("50")

    def test_discount_is_subtracted_after_tax_on_gross_subtotal(self, policy):
        totals = policy.totals(Decimal("600"), discount=Decimal("120"))

        assert totals.tax == Decimal("108")
        assert totals.discount == Decimal("120")
        assert totals.total == Decimal("588")

    def test_total_identity_holds(self, policy):
        for subtotal in ("1", "297", "498", "499", "1234.50"):
            totals = policy.totals(Decimal(subtotal), discount=Decimal("1"))
            assert totals.total == (
                totals.subtotal - totals.discount + totals.shipping + totals.tax
            )

    def test_tax_is_rounded_half_up_to_whole_rupee(self, policy):
        # 18% of 225 = 40.5
        assert policy.tax_for(Decimal("225")) == Decimal("41")


def test_cod_fee_is_added_to_shipping_for_cash_on_delivery():
    policy = PricingPolicy(
        free_shipping_threshold=Decimal("499"),
        shipping_fee=Decimal("50"),
        tax_rate_percent=Decimal("18"),
        cod_fee=Decimal("30"),
    )

    assert policy.shipping_for(Decimal("600"), "cod") == Decimal("30")
    assert policy.shipping_for(Decimal("600"), "upi") == Decimal("0")
    assert policy.totals(Decimal("300"), payment_method="cod").shipping == Decimal("80")


def test_policy_reads_storefront_settings(settings):
    settings.STOREFRONT = {
        **settings.STOREFRONT,
        "FREE_SHIPPING_THRESHOLD": "999",
        "SHIPPING_FEE": "75",
        "TAX_RATE_PERCENT": "5",
    }

    policy = PricingPolicy.from_settings()

    assert policy.free_shipping_threshold == Decimal("999")
    assert policy.shipping_fee == Decimal("75")
    assert policy.tax_rate_percent == Decimal("5")


def test_empty_totals_are_zero():
    assert EMPTY_TOTALS.total == 0
    assert EMPTY_TOTALS.as_dict() == {
        "subtotal": "0",
        "discount": "0",
        "shipping": "0",
        "tax": "0",
        "total": "0",
    }
