"""Integration tests for the order endpoints.

Covers:
- POST /api/v1/orders/: 201, idempotent replay (200), error codes.
- GET list (pagination shape, status filter) and detail (403 for strangers).
- PUT status/ (administrators only), cancel/, payment/, track/.
"""

from __future__ import annotations

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.models import Order
from modules.products.models import Product

pytestmark = pytest.mark.integration

ORDERS_URL = "/api/v1/orders/"


@pytest.fixture()
def payload(product, address):
    def build(*lines, **extra):
        lines = lines or ((product, 1),)
        body = {
            "items": [
                {"product_id": str(p.id), "quantity": q, **({"variant": v[0]} if v else {})}
                for p, q, *v in lines
            ],
            "shipping_address": address,
            "payment_method": "cod",
        }
        body.update(extra)
        return body

    return build


@pytest.fixture()
def placed(auth_client, payload):
    response = auth_client.post(ORDERS_URL, payload(), format="json")
    assert response.status_code == 201
    return response.json()


def _error_code(response):
    return response.json()["errors"][0]["code"]


class TestCreate:
    def test_creates_order(self, auth_client, payload, product, tea):
        response = auth_client.post(
            ORDERS_URL, payload((product, 3), (tea, 1, "500g")), format="json"
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["subtotal"] == "849.00"
        assert data["shipping_charges"] == "0.00"
        assert data["tax_amount"] == "153.00"
        assert data["total"] == "1002.00"
        assert data["order_number"].startswith("BESTEA")
        assert len(data["items"]) == 2
        assert data["status_history"][0]["new_status"] == "pending"
        assert Product.objects.get(id=product.id).stock_quantity == 2

    def test_with_coupon(self, auth_client, payload, product, coupons):
        response = auth_client.post(
            ORDERS_URL, payload((product, 3), coupon_code="welcome50"), format="json"
        )

        assert response.status_code == 201
        data = response.json()
        assert data["coupon_code"] == "WELCOME50"
        assert data["discount_amount"] == "50.00"
        assert data["total"] == "354.00"

    def test_idempotent_replay(self, auth_client, payload):
        headers = {"HTTP_IDEMPOTENCY_KEY": "checkout-1"}
        first = auth_client.post(ORDERS_URL, payload(), format="json", **headers)
        second = auth_client.post(ORDERS_URL, payload(), format="json", **headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        assert Order.objects.count() == 1

    def test_requires_authentication(self, api_client, payload):
        response = api_client.post(ORDERS_URL, payload(), format="json")

        assert response.status_code == 401

    def test_empty_items(self, auth_client, payload):
        response = auth_client.post(ORDERS_URL, {**payload(), "items": []}, format="json")

        assert response.status_code == 400
        assert _error_code(response) == "empty_cart"

    def test_insufficient_stock(self, auth_client, payload, product):
        response = auth_client.post(ORDERS_URL, payload((product, 6)), format="json")

        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "client_error"
        assert body["errors"][0]["code"] == "insufficient_stock"
        assert "Only 5 available" in body["errors"][0]["detail"]

    def test_unknown_product(self, auth_client, payload):
        body = payload()
        body["items"][0]["product_id"] = "00000000-0000-0000-0000-000000000000"

        response = auth_client.post(ORDERS_URL, body, format="json")

        assert response.status_code == 404
        assert _error_code(response) == "product_not_found"

    def test_inactive_product(self, auth_client, payload, inactive_product):
        response = auth_client.post(
            ORDERS_URL, payload((inactive_product, 1)), format="json"
        )

        assert response.status_code == 400
        assert _error_code(response) == "product_unavailable"

    def test_unknown_variant(self, auth_client, payload, tea):
        response = auth_client.post(ORDERS_URL, payload((tea, 1, "2kg")), format="json")

        assert response.status_code == 400
        assert _error_code(response) == "variant_not_found"

    def test_coupon_below_minimum(self, auth_client, payload, product, coupons):
        response = auth_client.post(
            ORDERS_URL, payload((product, 1), coupon_code="TEA20"), format="json"
        )

        assert response.status_code == 400
        assert _error_code(response) == "below_minimum_order"
        assert Product.objects.get(id=product.id).stock_quantity == 5

    def test_invalid_phone_is_a_field_error(self, auth_client, payload, address):
        body = payload(shipping_address={**address, "phone": "12345"})

        response = auth_client.post(ORDERS_URL, body, format="json")

        assert response.status_code == 400
        error = response.json()["errors"][0]
        assert error["attr"] == "phone"

    def test_missing_address_is_rejected_by_serializer(self, auth_client, payload):
        body = payload()
        del body["shipping_address"]

        response = auth_client.post(ORDERS_URL, body, format="json")

        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"


class TestRead:
    def test_list_is_paginated(self, auth_client, payload):
        for _ in range(3):
            auth_client.post(ORDERS_URL, payload(), format="json")

        response = auth_client.get(ORDERS_URL, {"page": 1, "limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert len(data["orders"]) == 2
        assert data["pagination"] == {
            "current_page": 1,
            "total_pages": 2,
            "total_orders": 3,
            "has_next": True,
            "has_prev": False,
        }
        assert data["orders"][0]["item_count"] == 1

    def test_page_past_the_end_is_empty(self, auth_client, placed):
        response = auth_client.get(ORDERS_URL, {"page": 5})

        assert response.status_code == 200
        assert response.json() == {
            "orders": [],
            "pagination": {
                "current_page": 5,
                "total_pages": 1,
                "total_orders": 1,
                "has_next": False,
                "has_prev": True,
            },
        }

    def test_list_shows_only_own_orders(self, other_client, placed):
        response = other_client.get(ORDERS_URL)

        assert response.json()["pagination"]["total_orders"] == 0

    def test_list_status_filter(self, auth_client, placed):
        assert auth_client.get(ORDERS_URL, {"status": "pending"}).json()["orders"]
        assert not auth_client.get(ORDERS_URL, {"status": "shipped"}).json()["orders"]

    def test_list_rejects_unknown_status(self, auth_client):
        response = auth_client.get(ORDERS_URL, {"status": "lost"})

        assert response.status_code == 400

    def test_detail_owner_and_admin(self, auth_client, staff_client, placed):
        url = f"{ORDERS_URL}{placed['id']}/"

        assert auth_client.get(url).status_code == 200
        assert staff_client.get(url).status_code == 200

    def test_detail_forbidden_for_stranger(self, other_client, placed):
        response = other_client.get(f"{ORDERS_URL}{placed['id']}/")

        assert response.status_code == 403
        assert _error_code(response) == "order_access_denied"

    def test_detail_not_found(self, auth_client):
        response = auth_client.get(f"{ORDERS_URL}00000000-0000-0000-0000-000000000000/")

        assert response.status_code == 404
        assert _error_code(response) == "order_not_found"

    def test_track(self, auth_client, placed):
        response = auth_client.get(f"{ORDERS_URL}{placed['id']}/track/")

        assert response.status_code == 200
        data = response.json()
        assert data["current_status"] == "pending"
        assert len(data["timeline"]) == 6
        assert data["timeline"][0]["completed"] is True
        assert data["timeline"][1]["completed"] is False


class TestStatus:
    def test_admin_updates_status(self, staff_client, placed):
        response = staff_client.put(
            f"{ORDERS_URL}{placed['id']}/status/",
            {
                "status": "shipped",
                "courier": "Delhivery",
                "tracking_number": "DL99",
                "notes": "Dispatched",
            },
            format="json",
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "shipped"
        assert data["shipped_at"] is not None
        assert data["tracking"] == {"courier": "Delhivery", "tracking_number": "DL99"}
        assert data["status_history"][-1]["notes"] == "Dispatched"

    def test_customer_cannot_update_status(self, auth_client, placed):
        response = auth_client.put(
            f"{ORDERS_URL}{placed['id']}/status/", {"status": "delivered"}, format="json"
        )

        assert response.status_code == 403

    def test_invalid_transition(self, staff_client, placed):
        response = staff_client.put(
            f"{ORDERS_URL}{placed['id']}/status/", {"status": "returned"}, format="json"
        )

        assert response.status_code == 400
        assert _error_code(response) == "invalid_order_status"


class TestCancel:
    def test_owner_cancels(self, auth_client, placed, product):
        response = auth_client.put(
            f"{ORDERS_URL}{placed['id']}/cancel/", {"reason": "Changed my mind"}, format="json"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["cancellation_reason"] == "Changed my mind"
        assert data["cancelled_at"] is not None
        assert Product.objects.get(id=product.id).stock_quantity == 5

    def test_cancel_without_body_uses_default_reason(self, auth_client, placed):
        response = auth_client.put(f"{ORDERS_URL}{placed['id']}/cancel/")

        assert response.json()["cancellation_reason"] == "Cancelled by customer"

    def test_cancel_shipped(self, auth_client, staff_client, placed):
        staff_client.put(
            f"{ORDERS_URL}{placed['id']}/status/", {"status": "shipped"}, format="json"
        )

        response = auth_client.put(f"{ORDERS_URL}{placed['id']}/cancel/")

        assert response.status_code == 400
        assert _error_code(response) == "already_shipped"
        assert Order.objects.get(id=placed["id"]).status == OrderStatus.SHIPPED

    def test_cancel_twice(self, auth_client, placed):
        auth_client.put(f"{ORDERS_URL}{placed['id']}/cancel/")

        response = auth_client.put(f"{ORDERS_URL}{placed['id']}/cancel/")

        assert _error_code(response) == "already_cancelled"

    def test_stranger_cannot_cancel(self, other_client, placed):
        response = other_client.put(f"{ORDERS_URL}{placed['id']}/cancel/")

        assert response.status_code == 403


class TestPayment:
    def test_owner_records_payment(self, auth_client, placed):
        response = auth_client.post(
            f"{ORDERS_URL}{placed['id']}/payment/",
            {
                "id": "pay_Nx81",
                "status": "COMPLETED",
                "update_time": "2026-10-19T10:00:00Z",
                "payer": {"email_address": "asha@example.com"},
            },
            format="json",
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["payment_result"]["email_address"] == "asha@example.com"

    def test_payment_requires_id(self, auth_client, placed):
        response = auth_client.post(
            f"{ORDERS_URL}{placed['id']}/payment/", {"status": "COMPLETED"}, format="json"
        )

        assert response.status_code == 400
