"""Integration tests for the public coupon endpoints."""

import pytest

from modules.coupons.models import Coupon

pytestmark = pytest.mark.integration

URL = "/api/v1/coupons/"


class TestCouponList:
    def test_lists_active_coupons_by_minimum_order(self, api_client, coupons):
        Coupon.objects.filter(code="FREESHIP").update(is_active=False)

        response = api_client.get(URL)

        assert response.status_code == 200
        assert [c["code"] for c in response.json()] == ["BESTEA10", "WELCOME50", "TEA20"]


class TestCouponValidate:
    def test_percentage_preview(self, api_client, coupons):
        response = api_client.post(
            f"{URL}validate/", {"code": "tea20", "subtotal": "849"}, format="json"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["code"] == "TEA20"
        assert data["discount"] == "170.00"

    def test_fixed_preview(self, api_client, coupons):
        response = api_client.post(
            f"{URL}validate/", {"code": "WELCOME50", "subtotal": "300"}, format="json"
        )

        assert response.json()["discount"] == "50.00"

    def test_unknown_code(self, api_client, coupons):
        response = api_client.post(
            f"{URL}validate/", {"code": "NOPE", "subtotal": "900"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "coupon_not_found"

    def test_below_minimum(self, api_client, coupons):
        response = api_client.post(
            f"{URL}validate/", {"code": "WELCOME50", "subtotal": "299.99"}, format="json"
        )

        error = response.json()["errors"][0]
        assert error["code"] == "below_minimum_order"
        assert "₹0.01" in error["detail"]

    def test_missing_subtotal_is_a_validation_error(self, api_client, coupons):
        response = api_client.post(f"{URL}validate/", {"code": "TEA20"}, format="json")

        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "validation_error"
        assert data["errors"][0]["attr"] == "subtotal"
