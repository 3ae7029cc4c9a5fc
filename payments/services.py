"""Payment reconciliation.

Two entry points report payments: the client's synchronous verify call and
the gateway's asynchronous webhook. Both authenticate independently and then
funnel into :func:`apply_successful_payment`, which moves the payment record
with a conditional UPDATE (only from ``pending`` or ``failed``). Whichever
caller wins the update applies the order confirmation; the other observes
``applied=False`` and does nothing, so duplicate or racing deliveries cannot
decrement stock or clear the cart twice.
"""

import json
import logging
from dataclasses import dataclass
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from common.choices import OrderStatus, PaymentMethod, PaymentStatus
from common.exceptions import ConflictError, PaymentVerificationError
from orders.models import IdempotencyKey, Order
from orders.services import apply_confirmation_effects, log_status_change, record_status, release_order_stock

from . import emails
from .gateway import PaymentIntent, RefundResult, get_gateway

logger = logging.getLogger("lakshmi.payments")

WEBHOOK_EVENT_TTL = timedelta(days=7)


@dataclass(frozen=True)
class PaymentDetails:
    """Gateway identifiers for a payment whose authenticity was already verified."""

    gateway_order_id: str
    payment_id: str
    signature: str = ""


def _log_payment_change(order: Order, status_from, status_to, **extra) -> None:
    logger.info(
        "payment_status_changed",
        extra={
            "order_id": order.id,
            "user_id": order.user_id,
            "status_from": status_from,
            "status_to": status_to,
            **extra,
        },
    )


def create_payment_intent(order: Order) -> PaymentIntent:
    if order.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
        raise ConflictError("Order is already paid")
    if order.payment_method != PaymentMethod.RAZORPAY:
        raise ValidationError("This order does not use Razorpay as payment method")
    if order.status == OrderStatus.CANCELLED:
        raise ConflictError("Cannot pay for a cancelled order")

    intent = get_gateway().create_intent(order)
    Order.objects.filter(pk=order.pk).update(gateway_order_id=intent.intent_id, updated_at=timezone.now())
    order.gateway_order_id = intent.intent_id
    return intent


@transaction.atomic
def apply_successful_payment(order: Order, details: PaymentDetails) -> tuple[Order, bool]:
    """Record a verified successful payment and confirm the order, once.

    Returns ``(order, applied)``; ``applied`` is False when the payment was
    already recorded by another delivery.
    """
    now = timezone.now()
    changes = {
        "payment_status": PaymentStatus.COMPLETED,
        "gateway_payment_id": details.payment_id,
        "paid_at": now,
        "updated_at": now,
    }
    if details.gateway_order_id:
        changes["gateway_order_id"] = details.gateway_order_id
    if details.signature:
        changes["gateway_signature"] = details.signature

    prev_payment = Order.objects.filter(pk=order.pk).values_list("payment_status", flat=True).first()
    claimed = Order.objects.filter(
        pk=order.pk,
        payment_status__in=[PaymentStatus.PENDING, PaymentStatus.FAILED],
    ).update(**changes)
    order = Order.objects.select_for_update().get(pk=order.pk)
    if not claimed:
        logger.info("payment_already_applied", extra={"order_id": order.id, "payment_id": details.payment_id})
        return order, False

    _log_payment_change(order, prev_payment, PaymentStatus.COMPLETED, payment_id=details.payment_id)

    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.CONFIRMED
        order.save(update_fields=["status", "updated_at"])
        record_status(order, note="Payment received")
        apply_confirmation_effects(order)
        log_status_change(order, OrderStatus.PENDING)
    elif order.status == OrderStatus.CANCELLED:
        # Money arrived for an order that no longer exists; needs a manual refund
        logger.warning("payment_on_cancelled_order", extra={"order_id": order.id, "payment_id": details.payment_id})
    return order, True


def mark_payment_failed(order: Order) -> bool:
    """Move a pending payment to failed. The order status is left alone."""
    updated = Order.objects.filter(pk=order.pk, payment_status=PaymentStatus.PENDING).update(
        payment_status=PaymentStatus.FAILED,
        updated_at=timezone.now(),
    )
    if updated:
        order.payment_status = PaymentStatus.FAILED
        _log_payment_change(order, PaymentStatus.PENDING, PaymentStatus.FAILED)
    return bool(updated)


@transaction.atomic
def apply_refund(order: Order, *, refund_id: str, reason: str = "", actor=None) -> tuple[Order, bool]:
    """Mark a completed payment refunded, cancel the order and restore its stock, once."""
    claimed = Order.objects.filter(pk=order.pk, payment_status=PaymentStatus.COMPLETED).update(
        payment_status=PaymentStatus.REFUNDED,
        refund_id=refund_id,
        updated_at=timezone.now(),
    )
    order = Order.objects.select_for_update().get(pk=order.pk)
    if not claimed:
        return order, False

    _log_payment_change(order, PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, refund_id=refund_id)
    prev = order.status
    if prev not in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
        order.status = OrderStatus.CANCELLED
        order.cancellation_reason = reason or "Refund processed"
        order.save(update_fields=["status", "cancellation_reason", "updated_at"])
        record_status(order, note=order.cancellation_reason, actor=actor)
        log_status_change(order, prev, actor=actor)
    release_order_stock(order, reason="order refunded")
    return order, True


def verify_payment(order: Order, *, gateway_order_id: str, payment_id: str, signature: str) -> Order:
    """Synchronous confirmation from the client after checkout on the gateway."""
    if order.payment_method != PaymentMethod.RAZORPAY:
        raise ValidationError("This order does not use Razorpay as payment method")
    if not order.gateway_order_id:
        raise ValidationError("No payment has been initiated for this order")

    valid = gateway_order_id == order.gateway_order_id
    valid = valid and get_gateway().verify_payment_signature(gateway_order_id, payment_id, signature)
    if not valid:
        mark_payment_failed(order)
        logger.warning("payment_verification_failed", extra={"order_id": order.id, "payment_id": payment_id})
        raise PaymentVerificationError("Payment verification failed. Invalid signature.")

    order, applied = apply_successful_payment(
        order,
        PaymentDetails(gateway_order_id=gateway_order_id, payment_id=payment_id, signature=signature),
    )
    if applied:
        emails.send_payment_success_email(order)
    return order


def refund_order(order: Order, *, actor=None, reason: str = "") -> tuple[Order, RefundResult]:
    """Admin refund: calls the gateway, then applies the refund locally."""
    if order.payment_status == PaymentStatus.REFUNDED:
        raise ConflictError("Order is already refunded")
    if order.payment_status != PaymentStatus.COMPLETED:
        raise ConflictError("Cannot refund order that is not paid")
    if not order.gateway_payment_id:
        raise ValidationError("No payment ID found for this order")

    gateway = get_gateway()
    payment = gateway.fetch_payment(order.gateway_payment_id)
    if payment.get("status") != "captured":
        logger.warning(
            "refund_payment_not_captured",
            extra={"order_id": order.id, "payment_id": order.gateway_payment_id, "gateway_status": payment.get("status")},
        )
        raise ConflictError(f"Payment is not refundable at the gateway (status: {payment.get('status')})")

    result = gateway.refund(order.gateway_payment_id, order.total, reason)
    order, applied = apply_refund(
        order,
        refund_id=result.refund_id,
        reason=reason or "Refund initiated by admin",
        actor=actor,
    )
    if applied:
        emails.send_refund_email(order, reason)
    return order, result


def _order_from_payment_entity(entity: dict) -> Order | None:
    order_id = (entity.get("notes") or {}).get("order_id")
    if order_id and str(order_id).isdigit():
        order = Order.objects.filter(pk=int(order_id)).first()
        if order is not None:
            return order
    if entity.get("order_id"):
        return Order.objects.filter(gateway_order_id=entity["order_id"]).first()
    return None


def _on_payment_captured(payload: dict) -> str:
    entity = payload["payload"]["payment"]["entity"]
    order = _order_from_payment_entity(entity)
    if order is None:
        logger.warning("webhook_order_not_found", extra={"payment_id": entity.get("id")})
        return "ignored"
    order, applied = apply_successful_payment(
        order,
        PaymentDetails(gateway_order_id=entity.get("order_id") or "", payment_id=entity["id"]),
    )
    if applied:
        transaction.on_commit(lambda: emails.send_payment_received_email(order))
        return "processed"
    return "duplicate"


def _on_payment_failed(payload: dict) -> str:
    entity = payload["payload"]["payment"]["entity"]
    order = _order_from_payment_entity(entity)
    if order is None:
        logger.warning("webhook_order_not_found", extra={"payment_id": entity.get("id")})
        return "ignored"
    return "processed" if mark_payment_failed(order) else "duplicate"


def _on_refund_processed(payload: dict) -> str:
    entity = payload["payload"]["refund"]["entity"]
    order = Order.objects.filter(gateway_payment_id=entity["payment_id"]).first() if entity.get("payment_id") else None
    if order is None:
        logger.warning("webhook_order_not_found", extra={"refund_id": entity.get("id")})
        return "ignored"
    order, applied = apply_refund(order, refund_id=entity["id"], reason="Refund processed")
    if applied:
        transaction.on_commit(lambda: emails.send_refund_email(order))
        return "processed"
    return "duplicate"


def _claim_event(event_id: str) -> bool:
    """Record a webhook event id; False if it was already seen."""
    try:
        with transaction.atomic():
            IdempotencyKey.objects.create(
                key=event_id,
                scope="razorpay",
                path="payments/webhook",
                method="POST",
                response_code=200,
                expires_at=timezone.now() + WEBHOOK_EVENT_TTL,
            )
    except IntegrityError:
        return False
    return True


WEBHOOK_HANDLERS = {
    "payment.captured": _on_payment_captured,
    "payment.failed": _on_payment_failed,
    "refund.processed": _on_refund_processed,
}


def handle_webhook(raw_body: bytes, signature: str | None, *, event_id: str | None = None) -> str:
    """Authenticate and dispatch one gateway event.

    Returns the outcome: ``processed``, ``duplicate`` or ``ignored``. Nothing
    is read from the payload before the signature over the raw bytes checks
    out.
    """
    if not get_gateway().verify_webhook_signature(raw_body, signature):
        logger.warning("webhook_invalid_signature", extra={"event_id": event_id})
        raise PaymentVerificationError("Invalid webhook signature")

    try:
        payload = json.loads(raw_body)
    except (TypeError, ValueError):
        raise ValidationError("Malformed webhook payload")
    event = payload.get("event") if isinstance(payload, dict) else None
    handler = WEBHOOK_HANDLERS.get(event)
    if handler is None:
        logger.info("webhook_event_ignored", extra={"event": event, "event_id": event_id})
        return "ignored"

    try:
        with transaction.atomic():
            if event_id and not _claim_event(event_id):
                logger.info("webhook_event_duplicate", extra={"event": event, "event_id": event_id})
                return "duplicate"
            outcome = handler(payload)
    except (KeyError, TypeError, AttributeError) as exc:
        logger.warning("webhook_malformed", extra={"event": event, "event_id": event_id, "error": repr(exc)})
        return "ignored"

    logger.info("webhook_processed", extra={"event": event, "event_id": event_id, "outcome": outcome})
    return outcome
