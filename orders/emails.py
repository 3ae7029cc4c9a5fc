"""Email utilities for the orders app.

Uses Django's email backend, with links composed from FRONTEND_URL. Every
sender is best-effort: delivery problems are logged and never propagate to
the caller, so a notification can not undo an order transition.
"""

import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger("lakshmi.orders")


def order_url(order) -> str:
    frontend = getattr(settings, "FRONTEND_URL", "")
    return f"{frontend.rstrip('/')}/orders/{order.id}"


def _recipient(order) -> str | None:
    return order.email or getattr(order.user, "email", None)


def deliver(order, subject: str, body: str) -> None:
    """Send one notification for ``order``; silently no-ops without an address."""
    to_email = _recipient(order)
    if not to_email:
        return
    try:
        send_mail(subject, body, getattr(settings, "DEFAULT_FROM_EMAIL", None), [to_email], fail_silently=False)
    except Exception:
        logger.warning("order_email_failed", extra={"order_id": order.id, "subject": subject}, exc_info=True)


def send_order_created_email(order) -> None:
    body = (
        "Your order has been created successfully.\n\n"
        f"Order: {order.number}\n"
        f"Total amount: Rs. {order.total}\n"
        f"Payment method: {order.get_payment_method_display()}\n\n"
        "Please complete the payment to confirm your order.\n"
        f"You can view your order here: {order_url(order)}\n"
    )
    deliver(order, f"Order created - {order.number}", body)


def send_order_status_email(order, note: str = "") -> None:
    lines = [
        f"Your order {order.number} status has been updated.",
        "",
        f"New status: {order.get_status_display()}",
    ]
    if note:
        lines.append(f"Note: {note}")
    if order.tracking_number:
        lines.append(f"Tracking number: {order.tracking_number}")
    if order.tracking_courier:
        lines.append(f"Courier: {order.tracking_courier}")
    lines.extend(["", f"You can view your order here: {order_url(order)}", ""])
    deliver(order, f"Order update - {order.number}", "\n".join(lines))


def send_order_cancelled_email(order) -> None:
    body = (
        f"Your order {order.number} has been cancelled.\n\n"
        f"Reason: {order.cancellation_reason}\n\n"
        "If payment was made, the refund will be processed within 5-7 business days.\n"
    )
    deliver(order, f"Order cancelled - {order.number}", body)
