"""Cart app models.

Each user owns at most one cart. Carts expire after ``CART_TTL_DAYS`` of
inactivity; every mutation pushes ``expires_at`` forward.
"""

from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


def default_cart_expiry():
    return timezone.now() + timedelta(days=settings.CART_TTL_DAYS)


class Cart(TimeStampedModel):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, related_name="cart", on_delete=models.CASCADE)
    expires_at = models.DateTimeField(default=default_cart_expiry, db_index=True)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Cart#{self.id} ({self.user_id})"


class CartItem(TimeStampedModel):
    """Line item holding a price snapshot taken when it was last changed."""

    cart = models.ForeignKey(Cart, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="cart_items", on_delete=models.CASCADE)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["cart", "product"], name="unique_product_per_cart"),
            models.CheckConstraint(
                name="quantity_positive",
                condition=models.Q(quantity__gte=1),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"CartItem#{self.id} cart={self.cart_id} product={self.product_id} qty={self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0.00")) * Decimal(int(self.quantity))
