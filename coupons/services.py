"""Coupon evaluation and redemption."""

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from common.choices import DiscountType
from common.exceptions import ConflictError, InvalidCouponError

from .models import Coupon

logger = logging.getLogger("lakshmi.orders")

CENT = Decimal("0.01")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def evaluate_coupon(coupon: Coupon, amount: Decimal, now=None) -> Decimal:
    """Return the discount `coupon` grants on a pre-discount `amount`.

    Raises InvalidCouponError naming the first failed condition. The
    discount never exceeds `amount`.
    """
    now = now or timezone.now()
    if not coupon.is_active:
        raise InvalidCouponError("Coupon is not active")
    if now < coupon.valid_from:
        raise InvalidCouponError("Coupon is not yet valid")
    if now > coupon.valid_until:
        raise InvalidCouponError("Coupon has expired")
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise InvalidCouponError("Coupon usage limit reached")
    if amount < coupon.min_order_amount:
        raise InvalidCouponError(f"Minimum order amount of {coupon.min_order_amount} required")

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = amount * coupon.discount_value / Decimal(100)
        if coupon.max_discount_amount is not None:
            discount = min(discount, coupon.max_discount_amount)
    else:
        discount = coupon.discount_value
    return min(discount, amount).quantize(CENT, rounding=ROUND_HALF_UP)


def preview_coupon(code: str, amount: Decimal) -> tuple[Coupon, Decimal]:
    coupon = Coupon.objects.filter(code=normalize_code(code)).first()
    if coupon is None:
        raise InvalidCouponError("Invalid coupon code")
    return coupon, evaluate_coupon(coupon, amount)


@transaction.atomic
def redeem_coupon(code: str, amount: Decimal) -> tuple[Coupon, Decimal]:
    """Evaluate under a row lock and count one use.

    Must run inside the checkout transaction so the increment rolls back
    with the order if anything later fails.
    """
    coupon = Coupon.objects.select_for_update().filter(code=normalize_code(code)).first()
    if coupon is None:
        raise InvalidCouponError("Invalid coupon code")
    discount = evaluate_coupon(coupon, amount)
    Coupon.objects.filter(pk=coupon.pk).update(used_count=F("used_count") + 1)
    coupon.refresh_from_db(fields=["used_count"])
    logger.info(
        "coupon.redeemed",
        extra={"coupon": coupon.code, "used_count": coupon.used_count, "discount": str(discount)},
    )
    return coupon, discount


def create_coupon(*, data: dict) -> Coupon:
    data = {**data, "code": normalize_code(data["code"])}
    if Coupon.objects.filter(code=data["code"]).exists():
        raise ConflictError("Coupon code already exists")
    return Coupon.objects.create(**data)


def update_coupon(coupon: Coupon, *, data: dict) -> Coupon:
    if "code" in data:
        data = {**data, "code": normalize_code(data["code"])}
        if Coupon.objects.filter(code=data["code"]).exclude(pk=coupon.pk).exists():
            raise ConflictError("Coupon code already exists")
    for field, value in data.items():
        setattr(coupon, field, value)
    coupon.save()
    return coupon
