from rest_framework import serializers


class CreatePaymentOrderSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)


class VerifyPaymentSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)
    razorpay_order_id = serializers.CharField(max_length=64)
    razorpay_payment_id = serializers.CharField(max_length=64)
    razorpay_signature = serializers.CharField(max_length=128)


class RefundSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class PaymentIntentSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    order_number = serializers.CharField()
    razorpay_order_id = serializers.CharField()
    amount = serializers.IntegerField(help_text="Amount in paise")
    currency = serializers.CharField()
    key_id = serializers.CharField()


class PaymentStatusSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(source="id")
    order_number = serializers.CharField(source="number")
    payment_status = serializers.CharField()
    payment_method = serializers.CharField()
    amount = serializers.DecimalField(source="total", max_digits=12, decimal_places=2)
    paid_at = serializers.DateTimeField(allow_null=True)
    razorpay_order_id = serializers.CharField(source="gateway_order_id")
    razorpay_payment_id = serializers.CharField(source="gateway_payment_id")
    refund_id = serializers.CharField()
