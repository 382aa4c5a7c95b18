"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in an order placement request."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    variant = serializers.CharField(
        max_length=50, required=False, allow_blank=True, allow_null=True, default=None
    )


class AddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    phone = serializers.CharField(max_length=20)
    address_line1 = serializers.CharField(max_length=255)
    address_line2 = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    pincode = serializers.CharField(max_length=10)
    landmark = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )


class CheckoutDetailsSerializer(serializers.Serializer):
    """Everything a checkout needs besides the items."""

    shipping_address = AddressSerializer()
    billing_address = AddressSerializer(required=False, allow_null=True, default=None)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    notes = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=1000
    )


class CreateOrderSerializer(CheckoutDetailsSerializer):
    """Validates the order placement request payload.

    An empty ``items`` list passes here so the service can answer with
    the ``empty_cart`` error code.
    """

    items = CreateOrderItemSerializer(many=True)
    coupon_code = serializers.CharField(
        max_length=32, required=False, allow_blank=True, allow_null=True, default=None
    )


class UpdateStatusSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=32)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    courier = serializers.CharField(required=False, allow_blank=True, default="")
    tracking_number = serializers.CharField(
        required=False, allow_blank=True, default=""
    )
    tracking_url = serializers.URLField(required=False, allow_blank=True, default="")


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=255, default=None
    )


class PayerSerializer(serializers.Serializer):
    email_address = serializers.EmailField(required=False, allow_blank=True, default="")


class PaymentResultSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=255)
    status = serializers.CharField(max_length=50)
    update_time = serializers.CharField(required=False, allow_blank=True, default="")
    payer = PayerSerializer(required=False, default=dict)


class OrderListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=OrderStatus.choices, required=False, allow_blank=True
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for frozen order items."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "variant",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "user_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "items",
            "subtotal",
            "discount_amount",
            "coupon_code",
            "discount_type",
            "shipping_charges",
            "tax_amount",
            "tax_percentage",
            "total",
            "shipping_address",
            "billing_address",
            "payment_method",
            "payment_status",
            "payment_result",
            "paid_at",
            "notes",
            "tracking",
            "cancellation_reason",
            "confirmed_at",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "created_at",
            "updated_at",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for the order history page."""

    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "payment_status",
            "total",
            "item_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_item_count(self, order: Order) -> int:
        return sum(item.quantity for item in order.items.all())


class TimelineStepSerializer(serializers.Serializer):
    status = serializers.CharField()
    title = serializers.CharField()
    description = serializers.CharField()
    completed = serializers.BooleanField()
    date = serializers.DateTimeField(allow_null=True)


class OrderTrackingSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    order_number = serializers.CharField()
    current_status = serializers.CharField()
    timeline = TimelineStepSerializer(many=True)
    tracking = serializers.DictField()
    cancelled_at = serializers.DateTimeField(allow_null=True)
    delivered_at = serializers.DateTimeField(allow_null=True)
