from decimal import Decimal

import pytest

from django.contrib.auth import get_user_model

from rest_framework.test import APIClient

from modules.coupons.models import Coupon, DiscountType
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.services import CouponService
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, ShippingAddressDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product, ProductStatus, ProductVariant
from modules.products.repositories.django_repository import ProductDjangoRepository

User = get_user_model()

ADDRESS = {
    "name": "Asha Borah",
    "phone": "9876543210",
    "address_line1": "12 MG Road",
    "city": "Guwahati",
    "state": "Assam",
    "pincode": "781001",
}


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer():
    return User.objects.create_user(
        username="asha",
        email="asha@example.com",
        password="testpass123",
        first_name="Asha",
        last_name="Borah",
    )


@pytest.fixture()
def other_customer():
    return User.objects.create_user(
        username="ravi", email="ravi@example.com", password="testpass123"
    )


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="store-admin", password="testpass123", is_staff=True
    )


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def auth_client(customer):
    """APIClient force-authenticated as ``customer``."""
    return _client_for(customer)


@pytest.fixture()
def other_client(other_customer):
    return _client_for(other_customer)


@pytest.fixture()
def staff_client(staff_user):
    return _client_for(staff_user)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def product():
    """Loose-leaf product without pack sizes: price 100, stock 5."""
    return Product.objects.create(
        sku="MASALA-LOOSE",
        name="Masala Chai Loose",
        price=Decimal("100.00"),
        stock_quantity=5,
        status=ProductStatus.ACTIVE,
    )


@pytest.fixture()
def tea():
    """Product sold in two pack sizes with their own price and stock."""
    product = Product.objects.create(
        sku="ASSAM-STRONG",
        name="Strong Assam Premium",
        price=Decimal("299.00"),
        stock_quantity=0,
        status=ProductStatus.ACTIVE,
    )
    ProductVariant.objects.create(
        product=product,
        name="250g",
        price=Decimal("299.00"),
        stock=10,
        weight="250g",
        is_default=True,
    )
    ProductVariant.objects.create(
        product=product,
        name="500g",
        price=Decimal("549.00"),
        stock=4,
        weight="500g",
    )
    return product


@pytest.fixture()
def inactive_product():
    return Product.objects.create(
        sku="OLD-BLEND",
        name="Discontinued Blend",
        price=Decimal("150.00"),
        stock_quantity=10,
        status=ProductStatus.INACTIVE,
    )


@pytest.fixture()
def coupons():
    rows = [
        ("BESTEA10", DiscountType.PERCENTAGE, "10", "200"),
        ("WELCOME50", DiscountType.FIXED, "50", "300"),
        ("FREESHIP", DiscountType.FIXED, "50", "400"),
        ("TEA20", DiscountType.PERCENTAGE, "20", "500"),
    ]
    return {
        code: Coupon.objects.create(
            code=code,
            discount_type=discount_type,
            value=Decimal(value),
            min_order=Decimal(min_order),
        )
        for code, discount_type, value, min_order in rows
    }


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def coupon_service():
    return CouponService(repository=CouponDjangoRepository())


@pytest.fixture()
def make_order_service(coupon_service):
    """Factory so tests can inject a fixed ``clock``."""

    def factory(**kwargs):
        return OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            coupon_service=coupon_service,
            **kwargs,
        )

    return factory


@pytest.fixture()
def order_service(make_order_service):
    return make_order_service()


@pytest.fixture()
def order_dto(customer):
    """Build a placement DTO for ``customer``; lines are (product, quantity[, variant])."""

    def build(*lines, **overrides):
        data = {
            "user_id": customer.pk,
            "items": [
                CreateOrderItemDTO(
                    product_id=line[0].id,
                    quantity=line[1],
                    variant=line[2] if len(line) > 2 else None,
                )
                for line in lines
            ],
            "shipping_address": ShippingAddressDTO(**ADDRESS),
            "payment_method": "cod",
        }
        data.update(overrides)
        return CreateOrderDTO(**data)

    return build


@pytest.fixture()
def address():
    return dict(ADDRESS)
