from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from modules.coupons.models import Coupon, DiscountType
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, ShippingAddressDTO
from modules.orders.models import Order
from modules.orders.views import build_order_service
from modules.products.models import Product, ProductStatus, ProductVariant

CATALOG = [
    (
        "ASSAM-STRONG",
        "Strong Assam Premium",
        "Bold CTC Assam for a strong morning chai.",
        [("250g", "299", 100), ("500g", "549", 50), ("1kg", "999", 25)],
    ),
    (
        "CARDAMOM-BLEND",
        "Cardamom Special Blend",
        "Assam leaf blended with crushed green cardamom.",
        [("250g", "349", 80), ("500g", "649", 40)],
    ),
    (
        "GREEN-CLASSIC",
        "Green Tea Classic",
        "Light, unoxidised whole-leaf green tea.",
        [("250g", "249", 150)],
    ),
    (
        "HERBAL-WELLNESS",
        "Herbal Wellness Blend",
        "Tulsi, ginger and lemongrass infusion.",
        [("100g", "199", 200)],
    ),
    (
        "ASSAM-GOLD",
        "Premium Assam Gold",
        "Golden-tip orthodox Assam.",
        [("250g", "499", 50)],
    ),
]

COUPONS = [
    ("BESTEA10", DiscountType.PERCENTAGE, "10", "200", "10% off on orders above ₹200"),
    ("WELCOME50", DiscountType.FIXED, "50", "300", "₹50 off on orders above ₹300"),
    ("FREESHIP", DiscountType.FIXED, "50", "400", "Free shipping on orders above ₹400"),
    ("TEA20", DiscountType.PERCENTAGE, "20", "500", "20% off on orders above ₹500"),
]


class Command(BaseCommand):
    help = "Seed database with a tea catalog, coupons and sample orders."

    def handle(self, *args, **options):
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        products = self._seed_products()
        coupons = self._seed_coupons()
        orders_created = self._seed_orders(products)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"products={len(products)}, "
                f"coupons={coupons}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser(
                "admin", email="admin@bestea.in", password="admin123"
            )
            created += 1
        if not User.objects.filter(username="customer").exists():
            User.objects.create_user(
                "customer",
                email="customer@example.com",
                password="customer123",
                first_name="John",
                last_name="Doe",
            )
            created += 1
        return created

    @transaction.atomic
    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        for sku, name, description, variants in CATALOG:
            base_price = Decimal(variants[0][1])
            product, created = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "description": description,
                    "price": base_price,
                    "stock_quantity": 0,
                    "status": ProductStatus.ACTIVE,
                },
            )
            if created:
                for index, (size, price, stock) in enumerate(variants):
                    ProductVariant.objects.create(
                        product=product,
                        name=size,
                        sku=f"{sku}-{size}",
                        price=Decimal(price),
                        stock=stock,
                        weight=size,
                        is_default=index == 0,
                    )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_coupons(self) -> int:
        self.stdout.write("Creating coupons...")
        for code, discount_type, value, min_order, description in COUPONS:
            Coupon.objects.get_or_create(
                code=code,
                defaults={
                    "discount_type": discount_type,
                    "value": Decimal(value),
                    "min_order": Decimal(min_order),
                    "description": description,
                },
            )
        self.stdout.write(self.style.SUCCESS("Creating coupons... Done!"))
        return len(COUPONS)

    def _seed_orders(self, products: list[Product]) -> int:
        """Place a couple of orders through the service so stock and history stay consistent."""
        self.stdout.write("Creating orders...")
        customer = get_user_model().objects.get(username="customer")
        if Order.objects.filter(user=customer).exists():
            self.stdout.write(self.style.WARNING("Skipping orders (already seeded)."))
            return 0

        address = ShippingAddressDTO(
            name="John Doe",
            phone="9876543210",
            address_line1="12 MG Road",
            city="Guwahati",
            state="Assam",
            pincode="781001",
        )
        baskets = [
            ([(products[0], "250g", 2)], "BESTEA10"),
            ([(products[1], "500g", 1), (products[3], "100g", 1)], None),
        ]
        service = build_order_service()
        for lines, coupon_code in baskets:
            service.place_order(
                CreateOrderDTO(
                    user_id=customer.pk,
                    items=[
                        CreateOrderItemDTO(
                            product_id=product.id, variant=variant, quantity=quantity
                        )
                        for product, variant, quantity in lines
                    ],
                    shipping_address=address,
                    payment_method="cod",
                    coupon_code=coupon_code,
                )
            )
        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return len(baskets)
