"""Order mutations: checkout, one-time stock effects and status transitions.

Stock is never touched at checkout. It moves exactly once when an order
leaves ``pending`` (verified payment or admin confirmation) through
:func:`apply_confirmation_effects`, and is given back at most once through
:func:`release_order_stock`. Both are guarded by conditional updates on the
order's marker columns, so racing callers cannot double-apply them.
"""

import hashlib
import json
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Optional, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from cart.models import Cart
from cart.services import clear_cart_for_user
from common.choices import OrderStatus, PaymentMethod, PaymentStatus
from common.exceptions import ConflictError, EmptyCartError, InsufficientStockError, ProductUnavailableError
from coupons.services import redeem_coupon
from inventory.services import deduct_stock_for_order, restore_stock_for_order

from . import emails
from .models import IdempotencyKey, Order, OrderItem, OrderStatusHistory
from .pricing import PricingLine, apply_discount, compute_pricing

logger = logging.getLogger("lakshmi.orders")

# Forward chain; any later step is reachable from an earlier one
FORWARD_CHAIN = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]
NON_TERMINAL = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED}
CUSTOMER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
IDEMPOTENCY_KEY_TTL = timedelta(hours=24)


def _build_transitions() -> dict[str, set[str]]:
    allowed: dict[str, set[str]] = {}
    for index, status in enumerate(FORWARD_CHAIN):
        allowed[status] = set(FORWARD_CHAIN[index + 1 :])
        if status in NON_TERMINAL:
            allowed[status] |= {OrderStatus.CANCELLED, OrderStatus.RETURNED}
    allowed[OrderStatus.CANCELLED] = set()
    allowed[OrderStatus.RETURNED] = set()
    return allowed


ALLOWED_TRANSITIONS = _build_transitions()


def format_order_number(order: Order) -> str:
    """Human-readable number derived from the primary key, so it cannot collide."""
    created = timezone.localtime(order.created_at) if order.created_at else timezone.localtime()
    return f"LS{created:%Y%m%d}{int(order.id):06d}"


def log_status_change(order: Order, status_from: str, *, actor=None) -> None:
    logger.info(
        "order_status_changed",
        extra={
            "order_id": order.id,
            "user_id": order.user_id,
            "status_from": status_from,
            "status_to": order.status,
            "actor_id": getattr(actor, "id", None),
        },
    )


def record_status(order: Order, *, note: str = "", actor=None) -> OrderStatusHistory:
    return OrderStatusHistory.objects.create(
        order=order,
        status=order.status,
        note=note[:255],
        updated_by=actor if getattr(actor, "id", None) else None,
    )


def _validate_cart_items(items) -> None:
    for item in items:
        product = item.product
        if not product.is_active:
            raise ProductUnavailableError(product.name)
        if product.stock_quantity < item.quantity:
            raise InsufficientStockError(product.name, product.stock_quantity)


@transaction.atomic
def checkout(
    *,
    user,
    payment_method: str,
    shipping_address: dict,
    billing_address: Optional[dict] = None,
    coupon_code: str = "",
    notes: str = "",
) -> Order:
    """Turn the user's cart into a pending order.

    Re-validates every line against current product state, prices the
    order, redeems the coupon and writes the order, its items, its number
    and the first history entry in one transaction. Any failure rolls all
    of it back, including the coupon's usage increment.
    """

    cart = Cart.objects.filter(user=user).first()
    items = list(cart.items.select_related("product").prefetch_related("product__images")) if cart else []
    if not items:
        raise EmptyCartError()
    _validate_cart_items(items)

    pricing = compute_pricing(
        PricingLine(
            unit_price=item.unit_price,
            making_charges=item.product.making_charges,
            weight=item.product.weight,
            quantity=item.quantity,
        )
        for item in items
    )

    coupon = None
    if coupon_code:
        coupon, discount = redeem_coupon(coupon_code, pricing.pre_discount_total)
        pricing = apply_discount(pricing, discount)

    order = Order.objects.create(
        user=user,
        email=user.email or "",
        payment_method=payment_method,
        shipping_address=shipping_address,
        billing_address=billing_address or shipping_address,
        coupon=coupon,
        coupon_code=coupon.code if coupon else "",
        notes=notes or "",
        **pricing.as_dict(),
    )
    OrderItem.objects.bulk_create(
        [
            OrderItem(
                order=order,
                product=item.product,
                name=item.product.name,
                quantity=item.quantity,
                price=item.unit_price,
                making_charges=item.product.making_charges,
                weight=item.product.weight,
                image_url=getattr(item.product.primary_image, "url", ""),
            )
            for item in items
        ]
    )
    order.number = format_order_number(order)
    order.save(update_fields=["number", "updated_at"])
    record_status(order, note="Order placed", actor=user)

    logger.info(
        "order_created",
        extra={
            "order_id": order.id,
            "user_id": user.id,
            "number": order.number,
            "total": str(order.total),
            "payment_method": payment_method,
            "coupon": order.coupon_code or None,
        },
    )
    transaction.on_commit(lambda: emails.send_order_created_email(order))
    return order


@transaction.atomic
def apply_confirmation_effects(order: Order) -> bool:
    """Decrement stock for every line and clear the owner's cart, once per order.

    Returns False when the effects were already applied.
    """
    now = timezone.now()
    claimed = Order.objects.filter(pk=order.pk, stock_committed_at__isnull=True).update(stock_committed_at=now)
    if not claimed:
        return False
    deduct_stock_for_order(order)
    clear_cart_for_user(order.user_id)
    order.stock_committed_at = now
    logger.info("order_stock_committed", extra={"order_id": order.id, "user_id": order.user_id})
    return True


@transaction.atomic
def release_order_stock(order: Order, *, reason: str = "order cancelled") -> bool:
    """Give committed stock back, once per order. No-op if stock was never committed."""
    now = timezone.now()
    claimed = Order.objects.filter(
        pk=order.pk,
        stock_committed_at__isnull=False,
        stock_restored_at__isnull=True,
    ).update(stock_restored_at=now)
    if not claimed:
        return False
    restore_stock_for_order(order, reason=reason)
    order.stock_restored_at = now
    logger.info("order_stock_restored", extra={"order_id": order.id, "reason": reason})
    return True


def _apply_tracking(order: Order, tracking: Optional[dict]) -> list[str]:
    fields = []
    for key, field in (
        ("courier", "tracking_courier"),
        ("tracking_number", "tracking_number"),
        ("tracking_url", "tracking_url"),
        ("estimated_delivery", "estimated_delivery"),
    ):
        if tracking and tracking.get(key):
            setattr(order, field, tracking[key])
            fields.append(field)
    return fields


@transaction.atomic
def update_order_status(order: Order, *, status: str, actor=None, note: str = "", tracking=None) -> Order:
    """Admin status transition.

    Leaving ``pending`` forward commits stock and clears the cart; moving to
    ``cancelled`` or ``returned`` releases committed stock; ``delivered``
    settles a cash-on-delivery payment.
    """
    order = Order.objects.select_for_update().get(pk=order.pk)
    prev = order.status
    if status == prev:
        raise ConflictError(f"Order is already {prev}")
    if status not in ALLOWED_TRANSITIONS.get(prev, set()):
        raise ConflictError(f"Cannot change order status from {prev} to {status}")

    order.status = status
    update_fields = ["status", "updated_at", *_apply_tracking(order, tracking)]
    if status == OrderStatus.CANCELLED:
        order.cancellation_reason = note or "Cancelled by admin"
        update_fields.append("cancellation_reason")
    elif status == OrderStatus.RETURNED:
        order.return_reason = note or "Returned"
        update_fields.append("return_reason")
    elif (
        status == OrderStatus.DELIVERED
        and order.payment_method == PaymentMethod.COD
        and order.payment_status == PaymentStatus.PENDING
    ):
        order.payment_status = PaymentStatus.COMPLETED
        order.paid_at = timezone.now()
        update_fields += ["payment_status", "paid_at"]
        logger.info(
            "payment_status_changed",
            extra={
                "order_id": order.id,
                "status_from": PaymentStatus.PENDING,
                "status_to": PaymentStatus.COMPLETED,
                "method": order.payment_method,
            },
        )
    order.save(update_fields=update_fields)
    record_status(order, note=note or f"Status changed from {prev} to {status}", actor=actor)

    if prev == OrderStatus.PENDING and status in FORWARD_CHAIN:
        apply_confirmation_effects(order)
    if status in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
        release_order_stock(order, reason=f"order {status}")

    log_status_change(order, prev, actor=actor)
    transaction.on_commit(lambda: emails.send_order_status_email(order, note))
    return order


@transaction.atomic
def cancel_order(order: Order, *, user, reason: str = "") -> Order:
    """Customer cancellation; refused once the order has shipped."""
    order = Order.objects.select_for_update().get(pk=order.pk)
    if order.status not in CUSTOMER_CANCELLABLE:
        raise ConflictError(f"Cannot cancel order with status: {order.status}")
    prev = order.status
    order.status = OrderStatus.CANCELLED
    order.cancellation_reason = reason or "Cancelled by customer"
    order.save(update_fields=["status", "cancellation_reason", "updated_at"])
    record_status(order, note=order.cancellation_reason, actor=user)
    release_order_stock(order, reason="order cancelled by customer")
    log_status_change(order, prev, actor=user)
    transaction.on_commit(lambda: emails.send_order_cancelled_email(order))
    return order


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
    request_hash: Optional[str] = None,
) -> Tuple[dict, int]:
    """Run handler idempotently and persist its response for the given key and scope.

    - Scope is derived from the caller: for authenticated users, "user:<id>"; otherwise "anon".
    - A stored response is replayed as-is until the key expires; an expired
      key is dropped and the request runs again.
    - Reusing a key with a different payload, or while the first request is
      still running, raises ConflictError.
    - If the handler raises, the key is released so the client may retry.
    """

    scope = f"user:{getattr(user, 'id', None)}" if getattr(user, "id", None) else "anon"
    method = str(method).upper()
    path = str(path)

    def _claim():
        with transaction.atomic():
            return IdempotencyKey.objects.create(
                key=key,
                user=user if getattr(user, "id", None) else None,
                scope=scope,
                path=path,
                method=method,
                request_hash=request_hash,
                expires_at=timezone.now() + IDEMPOTENCY_KEY_TTL,
            )

    try:
        idem = _claim()
    except IntegrityError:
        idem = IdempotencyKey.objects.get(key=key, scope=scope, path=path, method=method)
        if idem.expires_at and idem.expires_at <= timezone.now():
            # Expired keys start over as if never seen
            IdempotencyKey.objects.filter(id=idem.id, expires_at=idem.expires_at).delete()
            return with_idempotency(
                key=key,
                user=user,
                path=path,
                method=method,
                handler=handler,
                request_hash=request_hash,
            )
        if idem.request_hash and request_hash and idem.request_hash != request_hash:
            raise ConflictError("Idempotency key reused with different request payload")
        if idem.response_json is not None and idem.response_code is not None:
            return idem.response_json, int(idem.response_code)
        raise ConflictError("Request in progress")

    try:
        body, code = handler()
    except Exception:
        IdempotencyKey.objects.filter(id=idem.id).delete()
        raise

    def _json_safe(value):
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, dict):
            return {k: _json_safe(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [_json_safe(v) for v in value]
        return value

    safe_body = _json_safe(body)
    IdempotencyKey.objects.filter(id=idem.id).update(response_json=safe_body, response_code=code)
    return body, code


def compute_request_hash(data: Optional[dict]) -> Optional[str]:
    """Compute a canonical SHA256 hash of the request body.

    Uses sorted keys JSON representation to stabilize the hash across equivalent payloads.
    Returns None when data is falsy.
    """
    if not data:
        return None
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def purge_expired_idempotency_keys(*, now=None) -> int:
    now = now or timezone.now()
    deleted, _ = IdempotencyKey.objects.filter(expires_at__lt=now).delete()
    return deleted
