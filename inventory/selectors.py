"""Read-only inventory queries."""

from django.db.models import F, QuerySet
from django.utils.dateparse import parse_datetime

from catalog.models import Product

from .models import StockMovement


def list_movements(
    *,
    product_id=None,
    order_id=None,
    movement_type: str | None = None,
    created_after: str | None = None,
) -> QuerySet[StockMovement]:
    qs = StockMovement.objects.select_related("product", "order").order_by("-created_at", "-id")
    if product_id:
        qs = qs.filter(product_id=product_id)
    if order_id:
        qs = qs.filter(order_id=order_id)
    if movement_type:
        qs = qs.filter(movement_type=movement_type)
    if created_after:
        dt = parse_datetime(created_after)
        if dt:
            qs = qs.filter(created_at__gte=dt)
    return qs


def list_low_stock_products() -> QuerySet[Product]:
    """Active products at or below their low-stock threshold, including oversold ones."""
    return Product.objects.filter(is_active=True, stock_quantity__lte=F("low_stock_threshold")).order_by(
        "stock_quantity", "name"
    )
