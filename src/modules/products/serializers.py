"""Product DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product, ProductStatus, ProductVariant


class ProductVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariant
        fields = ["id", "name", "sku", "price", "stock", "weight", "is_default"]
        read_only_fields = ["id"]


class ProductSerializer(serializers.ModelSerializer):
    """Read serializer for the Product resource."""

    variants = ProductVariantSerializer(many=True, read_only=True)
    default_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, read_only=True
    )
    is_active = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "description",
            "price",
            "default_price",
            "stock_quantity",
            "purchases",
            "status",
            "is_active",
            "variants",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProductCreateSerializer(serializers.Serializer):
    """Input shape for ``POST /products/``."""

    sku = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255)
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    stock_quantity = serializers.IntegerField(required=False, min_value=0, default=0)
    variants = ProductVariantSerializer(many=True, required=False, default=list)


class ProductUpdateSerializer(serializers.Serializer):
    """Input shape for ``PUT/PATCH /products/{id}/`` (all fields optional)."""

    name = serializers.CharField(max_length=255, required=False)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    stock_quantity = serializers.IntegerField(required=False, min_value=0)
    status = serializers.ChoiceField(choices=ProductStatus.choices, required=False)


class StockUpdateSerializer(serializers.Serializer):
    stock_quantity = serializers.IntegerField(min_value=0)
