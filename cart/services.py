"""Cart services: item mutations and clearing."""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from catalog.models import Product
from common.exceptions import InsufficientStockError, ProductUnavailableError

from .models import Cart, CartItem
from .selectors import get_cart_for_user

logger = logging.getLogger("lakshmi.cart")


def _touch(cart: Cart) -> None:
    cart.expires_at = timezone.now() + timedelta(days=settings.CART_TTL_DAYS)
    cart.save(update_fields=["expires_at", "updated_at"])


def _check_stock(product: Product, quantity: int) -> None:
    if quantity > product.stock_quantity:
        raise InsufficientStockError(product.name, product.stock_quantity)


@transaction.atomic
def add_item(*, user, product_id: int, quantity: int = 1) -> CartItem:
    """Add a product to the user's cart.

    Adding a product already in the cart increases its quantity; the combined
    quantity must fit in current stock. The unit price is re-snapshotted.
    """
    if quantity <= 0:
        raise ValidationError({"quantity": "Quantity must be at least 1"})
    product = Product.objects.filter(pk=product_id, is_active=True).first()
    if product is None:
        raise NotFound("Product not found or unavailable")

    cart = get_cart_for_user(user=user)
    item = CartItem.objects.select_for_update().filter(cart=cart, product=product).first()
    new_quantity = quantity + (item.quantity if item else 0)
    _check_stock(product, new_quantity)

    if item is None:
        item = CartItem.objects.create(
            cart=cart,
            product=product,
            quantity=new_quantity,
            unit_price=product.selling_price,
        )
        event = "cart.item_added"
    else:
        item.quantity = new_quantity
        item.unit_price = product.selling_price
        item.save(update_fields=["quantity", "unit_price", "updated_at"])
        event = "cart.item_updated"
    _touch(cart)

    logger.info(
        event,
        extra={
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "product_id": product.id,
            "quantity": new_quantity,
        },
    )
    return item


@transaction.atomic
def update_item_quantity(*, user, item_id: int, quantity: int) -> CartItem:
    """Set a line's quantity after re-checking availability and stock."""
    if quantity <= 0:
        raise ValidationError({"quantity": "Quantity must be at least 1"})
    item = (
        CartItem.objects.select_for_update()
        .select_related("product", "cart")
        .filter(id=item_id, cart__user=user)
        .first()
    )
    if item is None:
        raise NotFound("Item not found in cart")
    product = item.product
    if not product.is_active:
        raise ProductUnavailableError(product.name)
    _check_stock(product, quantity)

    item.quantity = quantity
    item.unit_price = product.selling_price
    item.save(update_fields=["quantity", "unit_price", "updated_at"])
    _touch(item.cart)
    logger.info(
        "cart.item_updated",
        extra={"cart_id": item.cart_id, "user_id": user.id, "product_id": product.id, "quantity": quantity},
    )
    return item


@transaction.atomic
def remove_item(*, user, item_id: int) -> None:
    item = CartItem.objects.select_related("cart").filter(id=item_id, cart__user=user).first()
    if item is None:
        raise NotFound("Item not found in cart")
    cart = item.cart
    item.delete()
    _touch(cart)
    logger.info("cart.item_removed", extra={"cart_id": cart.id, "user_id": user.id, "item_id": item_id})


@transaction.atomic
def clear_cart(*, user) -> None:
    cart = get_cart_for_user(user=user)
    cart.items.all().delete()
    _touch(cart)
    logger.info("cart.cleared", extra={"cart_id": cart.id, "user_id": user.id})


def clear_cart_for_user(user_id: int) -> int:
    """Remove every line from a user's cart; used when an order is confirmed."""
    deleted, _ = CartItem.objects.filter(cart__user_id=user_id).delete()
    logger.info("cart.cleared", extra={"user_id": user_id, "items": deleted, "reason": "order_confirmed"})
    return deleted


def purge_expired_carts(*, now=None) -> int:
    now = now or timezone.now()
    _, per_model = Cart.objects.filter(expires_at__lt=now).delete()
    return per_model.get("cart.Cart", 0)
