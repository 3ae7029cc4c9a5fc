"""Payment endpoints: gateway intents, client verification, webhooks, status and refunds."""

from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.views import APIView

from common.responses import api_response
from orders.models import Order
from orders.selectors import get_order_for_user
from orders.serializers import OrderSerializer

from . import services
from .serializers import (
    CreatePaymentOrderSerializer,
    PaymentIntentSerializer,
    PaymentStatusSerializer,
    RefundSerializer,
    VerifyPaymentSerializer,
)


def _own_order(request, order_id) -> Order:
    order = Order.objects.filter(pk=order_id, user_id=request.user.id).first()
    if order is None:
        raise NotFound("Order not found")
    return order


class CreatePaymentOrderView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "payments_write"

    @extend_schema(
        tags=["Payments"],
        summary="Create gateway payment order",
        description=(
            "Creates a Razorpay order for the given pending order. The response carries what the client "
            "checkout widget needs.\n\nErrors: 409 when already paid or cancelled; 502 when the gateway fails."
        ),
        request=CreatePaymentOrderSerializer,
        responses=PaymentIntentSerializer,
        examples=[OpenApiExample("Create", value={"order_id": 42}, request_only=True)],
    )
    def post(self, request):
        serializer = CreatePaymentOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = _own_order(request, serializer.validated_data["order_id"])
        intent = services.create_payment_intent(order)
        data = PaymentIntentSerializer(
            {
                "order_id": order.id,
                "order_number": order.number,
                "razorpay_order_id": intent.intent_id,
                "amount": intent.amount,
                "currency": intent.currency,
                "key_id": settings.RAZORPAY_KEY_ID,
            }
        ).data
        return api_response(data, "Payment order created successfully")


class VerifyPaymentView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "payments_write"

    @extend_schema(
        tags=["Payments"],
        summary="Verify payment",
        description=(
            "Verifies the gateway signature and confirms the order. Safe to call after the webhook already "
            "confirmed the payment.\n\nErrors: 400 when the signature does not verify."
        ),
        request=VerifyPaymentSerializer,
        responses=OrderSerializer,
    )
    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = _own_order(request, data["order_id"])
        order = services.verify_payment(
            order,
            gateway_order_id=data["razorpay_order_id"],
            payment_id=data["razorpay_payment_id"],
            signature=data["razorpay_signature"],
        )
        order = get_order_for_user(user=request.user, order_id=order.id)
        return api_response(OrderSerializer(order).data, "Payment verified and order confirmed successfully")


class PaymentWebhookView(APIView):
    """Razorpay webhook receiver.

    The signature covers the exact request bytes, so the body is read raw
    and never through DRF's parsers.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = []

    @extend_schema(
        tags=["Payments"],
        summary="Payment gateway webhook",
        parameters=[
            OpenApiParameter("X-Razorpay-Signature", OpenApiTypes.STR, location=OpenApiParameter.HEADER),
            OpenApiParameter("X-Razorpay-Event-Id", OpenApiTypes.STR, location=OpenApiParameter.HEADER),
        ],
        request=OpenApiTypes.OBJECT,
        responses=OpenApiTypes.OBJECT,
    )
    def post(self, request):
        raw_body = request.body
        outcome = services.handle_webhook(
            raw_body,
            request.headers.get("X-Razorpay-Signature"),
            event_id=request.headers.get("X-Razorpay-Event-Id"),
        )
        return api_response({"status": "ok", "outcome": outcome})


class PaymentStatusView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "payments"

    @extend_schema(tags=["Payments"], summary="Get payment status", responses=PaymentStatusSerializer)
    def get(self, request, order_id: int):
        order = get_order_for_user(user=request.user, order_id=order_id)
        return api_response(PaymentStatusSerializer(order).data, "Payment status fetched successfully")


class RefundView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        tags=["Payments"],
        summary="Refund an order",
        description=(
            "Refunds the full order total through the gateway, cancels the order and restores stock.\n\n"
            "Errors: 409 when the order is not paid, already refunded or not captured at the gateway; "
            "502 when the gateway fails."
        ),
        request=RefundSerializer,
        responses=OrderSerializer,
        examples=[OpenApiExample("Refund", value={"order_id": 42, "reason": "Damaged in transit"}, request_only=True)],
    )
    def post(self, request):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = Order.objects.filter(pk=serializer.validated_data["order_id"]).first()
        if order is None:
            raise NotFound("Order not found")
        order, result = services.refund_order(order, actor=request.user, reason=serializer.validated_data["reason"])
        order = get_order_for_user(user=request.user, order_id=order.id)
        data = {"refund": {"id": result.refund_id, "amount": result.amount, "status": result.status}}
        data["order"] = OrderSerializer(order).data
        return api_response(data, "Refund initiated successfully")
