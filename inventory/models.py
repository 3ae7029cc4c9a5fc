"""Inventory ledger.

Product rows hold the live ``stock_quantity``; every change to it is also
recorded here as a signed movement for auditing.
"""

from django.db import models

from common.choices import MovementType


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class StockMovement(TimeStampedModel):
    TYPE_INBOUND = MovementType.INBOUND
    TYPE_OUTBOUND = MovementType.OUTBOUND
    TYPE_ADJUST = MovementType.ADJUST
    TYPE_CHOICES = MovementType.choices

    product = models.ForeignKey("catalog.Product", on_delete=models.CASCADE, related_name="stock_movements")
    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="stock_movements",
    )
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    quantity = models.IntegerField()  # signed: +inbound, -outbound
    balance_after = models.IntegerField()
    reason = models.CharField(max_length=200, blank=True)
    reference = models.CharField(max_length=120, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(name="movement_non_zero", condition=~models.Q(quantity=0)),
        ]
        indexes = [
            models.Index(fields=["product", "created_at"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity} for product {self.product_id}"
