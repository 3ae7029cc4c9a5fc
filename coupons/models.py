from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from common.choices import DiscountType


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Coupon(TimeStampedModel):
    """Discount code applied at checkout.

    ``used_count`` only ever increases: it is bumped once per order that
    applies the coupon and is not given back when that order is cancelled.
    """

    code = models.CharField(max_length=40, unique=True, help_text="Stored uppercase")
    description = models.CharField(max_length=255, blank=True)
    discount_type = models.CharField(max_length=16, choices=DiscountType.choices)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    min_order_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    max_discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True, help_text="Empty for unlimited")
    used_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                name="coupon_validity_window",
                condition=models.Q(valid_until__gt=models.F("valid_from")),
            ),
            models.CheckConstraint(name="coupon_discount_non_negative", condition=models.Q(discount_value__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.code
