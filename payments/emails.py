"""Payment notifications. Best-effort, like every order email."""

from orders.emails import deliver, order_url


def send_payment_success_email(order) -> None:
    body = (
        "Thank you for your payment. Your order has been confirmed.\n\n"
        f"Order: {order.number}\n"
        f"Total amount: Rs. {order.total}\n"
        f"Payment ID: {order.gateway_payment_id}\n\n"
        "We will send you a shipping update soon.\n"
        f"You can view your order here: {order_url(order)}\n"
    )
    deliver(order, f"Payment successful - Order {order.number}", body)


def send_payment_received_email(order) -> None:
    body = (
        f"We have received your payment of Rs. {order.total}.\n\n"
        f"Order: {order.number}\n"
        f"Payment ID: {order.gateway_payment_id}\n"
    )
    deliver(order, f"Payment received - {order.number}", body)


def send_refund_email(order, reason: str = "") -> None:
    lines = [
        f"A refund of Rs. {order.total} has been processed for your order.",
        "",
        f"Order: {order.number}",
        f"Refund ID: {order.refund_id}",
        "The amount will be credited to your account within 5-7 business days.",
    ]
    if reason:
        lines.append(f"Reason: {reason}")
    deliver(order, f"Refund processed - {order.number}", "\n".join(lines) + "\n")
