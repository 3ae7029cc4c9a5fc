"""DRF serializers for Orders.

Read serializers expose the stored pricing block as-is; it is a snapshot
taken at checkout and is never recomputed for the API.
"""

from rest_framework import serializers
from rest_framework.fields import empty

from common.choices import OrderStatus, PaymentMethod

from .models import Order, OrderItem, OrderStatusHistory

INDIAN_PHONE = r"^[6-9]\d{9}$"
PINCODE = r"^\d{6}$"


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ["id", "product", "name", "quantity", "price", "making_charges", "weight", "image_url", "line_total"]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["status", "note", "updated_by", "timestamp"]
        read_only_fields = fields


class PricingSerializer(serializers.Serializer):
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    making_charges = serializers.DecimalField(max_digits=12, decimal_places=2)
    gst = serializers.DecimalField(max_digits=12, decimal_places=2)
    shipping_charges = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)


class PaymentRecordSerializer(serializers.Serializer):
    method = serializers.CharField(source="payment_method")
    status = serializers.CharField(source="payment_status")
    gateway_order_id = serializers.CharField()
    gateway_payment_id = serializers.CharField()
    refund_id = serializers.CharField()
    paid_at = serializers.DateTimeField(allow_null=True)


class TrackingSerializer(serializers.Serializer):
    courier = serializers.CharField(source="tracking_courier")
    tracking_number = serializers.CharField()
    tracking_url = serializers.CharField()
    estimated_delivery = serializers.DateField(allow_null=True)


class OrderSerializer(serializers.ModelSerializer):
    """API representation for an order, grouping the pricing, payment and tracking blocks."""

    items = OrderItemSerializer(many=True, read_only=True)
    pricing = PricingSerializer(source="*", read_only=True)
    payment = PaymentRecordSerializer(source="*", read_only=True)
    tracking = TrackingSerializer(source="*", read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "status",
            "email",
            "items",
            "pricing",
            "coupon_code",
            "shipping_address",
            "billing_address",
            "payment",
            "tracking",
            "notes",
            "cancellation_reason",
            "return_reason",
            "status_history",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    phone = serializers.RegexField(
        INDIAN_PHONE,
        error_messages={"invalid": "Enter a valid 10-digit Indian phone number."},
    )
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=120)
    state = serializers.CharField(max_length=120)
    pincode = serializers.RegexField(PINCODE, error_messages={"invalid": "Pincode must be 6 digits."})
    country = serializers.CharField(max_length=80, default="India")


class BillingAddressSerializer(AddressSerializer):
    """Billing address; every field optional, missing ones fall back to shipping."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field in self.fields.values():
            field.required = False
            field.default = empty


class CheckoutSerializer(serializers.Serializer):
    shipping_address = AddressSerializer()
    billing_address = BillingAddressSerializer(required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    coupon_code = serializers.CharField(max_length=40, required=False, allow_blank=True, default="")
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        billing = attrs.get("billing_address")
        if billing:
            attrs["billing_address"] = {**attrs["shipping_address"], **billing}
        return attrs


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    courier = serializers.CharField(max_length=80, required=False, allow_blank=True)
    tracking_number = serializers.CharField(max_length=80, required=False, allow_blank=True)
    tracking_url = serializers.URLField(required=False, allow_blank=True)
    estimated_delivery = serializers.DateField(required=False, allow_null=True)

    def tracking(self) -> dict:
        data = self.validated_data
        keys = ("courier", "tracking_number", "tracking_url", "estimated_delivery")
        return {key: data[key] for key in keys if data.get(key)}
