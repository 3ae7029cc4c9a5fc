"""Orders app models.

An order is an immutable snapshot of a cart at checkout time: line items and
the pricing block are copied once and never recomputed. Status, the payment
record and tracking details are the only mutable parts, and every status
change appends an :class:`OrderStatusHistory` row.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models

from common.choices import OrderStatus, PaymentMethod, PaymentStatus


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


def _money(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"), **kwargs)


class Order(TimeStampedModel):
    """Purchase order capturing a snapshot of a user's checkout.

    Totals are denormalized to support reporting and auditability.
    ``stock_committed_at`` and ``stock_restored_at`` mark the one-time stock
    effects; they are set with conditional updates so concurrent payment
    confirmations cannot apply them twice.
    """

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.CASCADE)
    number = models.CharField(max_length=32, unique=True, null=True, blank=True, db_index=True)
    email = models.EmailField(blank=True)
    status = models.CharField(
        max_length=16,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )

    # Pricing block, computed once at checkout
    subtotal = _money()
    making_charges = _money()
    gst = _money()
    shipping_charges = _money()
    discount = _money()
    total = _money()
    coupon = models.ForeignKey(
        "coupons.Coupon",
        null=True,
        blank=True,
        related_name="orders",
        on_delete=models.SET_NULL,
    )
    coupon_code = models.CharField(max_length=40, blank=True)

    shipping_address = models.JSONField(default=dict)
    billing_address = models.JSONField(default=dict, blank=True)

    # Payment record
    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )
    gateway_order_id = models.CharField(max_length=64, blank=True, db_index=True)
    gateway_payment_id = models.CharField(max_length=64, blank=True, db_index=True)
    gateway_signature = models.CharField(max_length=128, blank=True)
    refund_id = models.CharField(max_length=64, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    stock_committed_at = models.DateTimeField(null=True, blank=True)
    stock_restored_at = models.DateTimeField(null=True, blank=True)

    tracking_courier = models.CharField(max_length=80, blank=True)
    tracking_number = models.CharField(max_length=80, blank=True)
    tracking_url = models.URLField(blank=True)
    estimated_delivery = models.DateField(null=True, blank=True)

    notes = models.TextField(max_length=500, blank=True)
    cancellation_reason = models.TextField(blank=True)
    return_reason = models.TextField(blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["user", "status", "created_at"]),
            models.Index(fields=["payment_status"]),
        ]
        constraints = [
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} user={self.user_id} status={self.status}"


class OrderItem(TimeStampedModel):
    """Line item within an order.

    Snapshots core product info for auditability (name, unit price, weight).
    """

    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="order_items", on_delete=models.PROTECT)
    name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(default=1)
    price = _money()
    making_charges = _money()
    weight = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal("0"))
    image_url = models.URLField(blank=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["order", "product"]),
        ]
        constraints = [
            models.CheckConstraint(name="orderitem_price_non_negative", condition=models.Q(price__gte=0)),
            models.CheckConstraint(name="orderitem_quantity_positive", condition=models.Q(quantity__gte=1)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} product={self.product_id} qty={self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return (self.price or Decimal("0.00")) * Decimal(int(self.quantity))


class OrderStatusHistory(models.Model):
    """Append-only audit log of status transitions."""

    order = models.ForeignKey(Order, related_name="status_history", on_delete=models.CASCADE)
    status = models.CharField(max_length=16, choices=OrderStatus.choices)
    note = models.CharField(max_length=255, blank=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="+",
        on_delete=models.SET_NULL,
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["timestamp", "id"]
        verbose_name_plural = "order status history"

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.order_id}:{self.status}"


class IdempotencyKey(TimeStampedModel):
    """Stores idempotent request results to prevent duplicate processing.

    Used for checkout requests carrying an ``Idempotency-Key`` header and for
    gateway webhook event ids.
    """

    key = models.CharField(max_length=128)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.CASCADE)
    scope = models.CharField(max_length=128)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=16)
    request_hash = models.CharField(max_length=64, null=True, blank=True)
    response_code = models.IntegerField(null=True, blank=True)
    response_json = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "scope", "path", "method"], name="uniq_idem_scope_path_method"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.scope}:{self.key}"
