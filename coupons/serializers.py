from rest_framework import serializers

from common.choices import DiscountType

from .models import Coupon


class CouponAdminSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = [
            "id",
            "code",
            "description",
            "discount_type",
            "discount_value",
            "min_order_amount",
            "max_discount_amount",
            "usage_limit",
            "used_count",
            "is_active",
            "valid_from",
            "valid_until",
            "created_at",
        ]
        read_only_fields = ["used_count", "created_at"]
        # Uniqueness is checked on the normalized code in the service (409)
        extra_kwargs = {"code": {"validators": []}}

    def validate(self, attrs):
        valid_from = attrs.get("valid_from", getattr(self.instance, "valid_from", None))
        valid_until = attrs.get("valid_until", getattr(self.instance, "valid_until", None))
        if valid_from and valid_until and valid_until <= valid_from:
            raise serializers.ValidationError({"valid_until": "Must be after valid_from."})
        discount_type = attrs.get("discount_type", getattr(self.instance, "discount_type", None))
        discount_value = attrs.get("discount_value", getattr(self.instance, "discount_value", None))
        if discount_type == DiscountType.PERCENTAGE and discount_value is not None and discount_value > 100:
            raise serializers.ValidationError({"discount_value": "Percentage discount cannot exceed 100."})
        return attrs


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=40)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class CouponPreviewSerializer(serializers.Serializer):
    code = serializers.CharField()
    description = serializers.CharField()
    discount_type = serializers.CharField()
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
