from __future__ import annotations

from rest_framework import serializers

from modules.coupons.models import Coupon


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = ["code", "discount_type", "value", "min_order", "description"]
        read_only_fields = fields


class ValidateCouponSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=32)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class AppliedCouponSerializer(serializers.Serializer):
    code = serializers.CharField()
    discount_type = serializers.CharField()
    value = serializers.DecimalField(max_digits=10, decimal_places=2)
    min_order = serializers.DecimalField(max_digits=10, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    description = serializers.CharField()
