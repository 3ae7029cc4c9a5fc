"""Selectors for read-only cart queries."""

from decimal import Decimal

from django.db.models import DecimalField, ExpressionWrapper, F, Sum

from .models import Cart


def get_cart_for_user(*, user) -> Cart:
    """Return the user's cart, creating it if missing."""
    cart, _ = Cart.objects.get_or_create(user=user)
    return cart


def cart_totals(*, cart: Cart) -> dict:
    """Derived totals; never stored on the cart."""
    line_total = ExpressionWrapper(
        F("unit_price") * F("quantity"),
        output_field=DecimalField(max_digits=12, decimal_places=2),
    )
    agg = cart.items.aggregate(total_amount=Sum(line_total), item_count=Sum("quantity"))
    return {
        "item_count": agg["item_count"] or 0,
        "total_amount": agg["total_amount"] or Decimal("0.00"),
    }
