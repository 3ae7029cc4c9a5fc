"""Stock mutations.

`deduct_stock_for_order` and `restore_stock_for_order` are the only code
paths that move stock for orders. Both lock the affected product rows in
primary-key order and apply all changes in one transaction, so an order's
stock effect is all-or-nothing and concurrent orders cannot deadlock.

Callers are responsible for applying each at most once per order; see
``orders.services.apply_confirmation_effects``.
"""

import logging
from collections import defaultdict

from django.db import transaction
from rest_framework.exceptions import ValidationError

from catalog.models import Product
from catalog.services import apply_stock_quantity

from .models import StockMovement

logger = logging.getLogger("lakshmi.inventory")


def _quantities_by_product(order) -> dict[int, int]:
    quantities: dict[int, int] = defaultdict(int)
    for item in order.items.all():
        quantities[item.product_id] += item.quantity
    return dict(quantities)


def _apply_deltas(deltas: dict[int, int], *, movement_type: str, reason: str, order=None) -> list[StockMovement]:
    products = Product.objects.select_for_update().filter(pk__in=deltas.keys()).order_by("pk")
    movements = []
    for product in products:
        delta = deltas[product.pk]
        apply_stock_quantity(product, product.stock_quantity + delta)
        product.save(update_fields=["stock_quantity", "is_in_stock", "updated_at"])
        if product.stock_quantity < 0:
            logger.warning(
                "stock.oversold",
                extra={
                    "product_id": product.pk,
                    "stock_quantity": product.stock_quantity,
                    "order_id": getattr(order, "pk", None),
                },
            )
        movements.append(
            StockMovement(
                product=product,
                order=order,
                movement_type=movement_type,
                quantity=delta,
                balance_after=product.stock_quantity,
                reason=reason,
                reference=getattr(order, "number", "") or "",
            )
        )
    StockMovement.objects.bulk_create(movements)
    return movements


@transaction.atomic
def deduct_stock_for_order(order) -> list[StockMovement]:
    """Decrement stock for every line of `order`.

    A paid order is never refused here: if stock was sold out between
    checkout and payment the quantity goes negative (backorder) and a
    warning is logged.
    """
    deltas = {pid: -qty for pid, qty in _quantities_by_product(order).items()}
    movements = _apply_deltas(deltas, movement_type=StockMovement.TYPE_OUTBOUND, reason="order confirmed", order=order)
    logger.info("stock.deducted", extra={"order_id": order.pk, "products": len(movements)})
    return movements


@transaction.atomic
def restore_stock_for_order(order, *, reason: str = "order cancelled") -> list[StockMovement]:
    deltas = _quantities_by_product(order)
    movements = _apply_deltas(deltas, movement_type=StockMovement.TYPE_INBOUND, reason=reason, order=order)
    logger.info("stock.restored", extra={"order_id": order.pk, "products": len(movements)})
    return movements


@transaction.atomic
def adjust_stock(*, product_id: int, quantity: int, reason: str = "", reference: str = "") -> StockMovement:
    """Apply a signed manual correction; refuses to drop below zero."""
    if quantity == 0:
        raise ValidationError({"quantity": "Quantity must be non-zero."})
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise ValidationError({"product": "Product not found."})
    if product.stock_quantity + quantity < 0:
        raise ValidationError({"quantity": f"Cannot remove {-quantity}; only {product.stock_quantity} in stock."})

    apply_stock_quantity(product, product.stock_quantity + quantity)
    product.save(update_fields=["stock_quantity", "is_in_stock", "updated_at"])
    movement = StockMovement.objects.create(
        product=product,
        movement_type=StockMovement.TYPE_ADJUST,
        quantity=quantity,
        balance_after=product.stock_quantity,
        reason=reason,
        reference=reference,
    )
    logger.info(
        "stock.adjusted",
        extra={"product_id": product.pk, "quantity": quantity, "balance": product.stock_quantity},
    )
    return movement
