"""Cart DRF serializers."""

from __future__ import annotations

from rest_framework import serializers


class AddItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    variant = serializers.CharField(
        max_length=50, required=False, allow_blank=True, allow_null=True, default=None
    )
    quantity = serializers.IntegerField(min_value=1, default=1)


class UpdateQuantitySerializer(serializers.Serializer):
    # zero or negative removes the line
    quantity = serializers.IntegerField()


class ApplyCouponSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=32)


class CartItemSerializer(serializers.Serializer):
    key = serializers.CharField()
    product_id = serializers.CharField()
    name = serializers.CharField()
    variant = serializers.CharField(allow_null=True)
    weight = serializers.CharField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    quantity = serializers.IntegerField()
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2)
    stock = serializers.IntegerField()
    exceeds_stock = serializers.BooleanField()


class TotalsSerializer(serializers.Serializer):
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    shipping = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)


class CartSerializer(serializers.Serializer):
    """Serializes a ``CartStore``."""

    items = CartItemSerializer(many=True)
    total_quantity = serializers.IntegerField()
    coupon_code = serializers.CharField(allow_null=True)
    totals = TotalsSerializer()
