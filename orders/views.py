"""Orders API endpoints.

Customers list, create (checkout), view and cancel their own orders. Staff
list every order and drive status transitions through the admin views.
"""

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from rest_framework import generics, status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.views import APIView

from common.responses import api_response

from . import selectors
from .serializers import CancelOrderSerializer, CheckoutSerializer, OrderSerializer, OrderStatusUpdateSerializer
from .services import cancel_order, checkout, compute_request_hash, update_order_status, with_idempotency

IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Makes the request idempotent within scope+path+method",
    type=str,
)

CHECKOUT_EXAMPLE = {
    "shipping_address": {
        "name": "Asha Rao",
        "phone": "9876543210",
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
    },
    "payment_method": "razorpay",
    "coupon_code": "SILVER10",
}

ORDER_EXAMPLE = {
    "id": 42,
    "number": "LS20250101000042",
    "status": "pending",
    "items": [{"id": 1, "product": 7, "name": "Silver Anklet", "quantity": 2, "price": "1000.00"}],
    "pricing": {
        "subtotal": "2000.00",
        "making_charges": "100.00",
        "gst": "63.00",
        "shipping_charges": "100.00",
        "discount": "0.00",
        "total": "2263.00",
    },
    "payment": {"method": "razorpay", "status": "pending"},
}


class OrderListCreateView(generics.ListAPIView):
    """List the authenticated user's orders, or check out the cart into a new order.

    Filters:
    - `status`: one of the OrderStatus values
    - `number`: exact match of order number
    - `start`: ISO date/time string; filters `created_at >= start`
    - `end`: ISO date/time string; filters `created_at <= end`
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer

    def get_throttles(self):
        self.throttle_scope = "orders_write" if self.request.method == "POST" else "orders"
        return super().get_throttles()

    def get_queryset(self):
        params = self.request.query_params
        return selectors.list_orders_for_user(
            user=self.request.user,
            status=params.get("status"),
            number=params.get("number"),
            start=params.get("start"),
            end=params.get("end"),
        )

    @extend_schema(
        tags=["Orders"],
        summary="List orders",
        description="List current user's orders with optional filters and pagination.",
        parameters=[
            OpenApiParameter(name="status", description="Order status filter", required=False, type=str),
            OpenApiParameter(name="number", description="Order number exact match", required=False, type=str),
            OpenApiParameter(name="start", description="Created at >= start (ISO)", required=False, type=str),
            OpenApiParameter(name="end", description="Created at <= end (ISO)", required=False, type=str),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="limit", description="Items per page", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        tags=["Orders"],
        summary="Create order from cart",
        description=(
            "Converts the cart into a pending order with computed pricing. Stock and the cart are left "
            "untouched until payment is confirmed. Idempotent when Idempotency-Key header is set.\n\n"
            "Errors: 400 for an empty cart or an invalid coupon; 409 when a product is unavailable or "
            "out of stock, or an Idempotency-Key is reused with a different payload."
        ),
        parameters=[IDEMPOTENCY_HEADER],
        request=CheckoutSerializer,
        responses={201: OrderSerializer},
        examples=[
            OpenApiExample("Checkout", value=CHECKOUT_EXAMPLE, request_only=True),
            OpenApiExample("Created", value=ORDER_EXAMPLE, response_only=True),
        ],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        def _handler():
            order = checkout(user=request.user, **serializer.validated_data)
            return OrderSerializer(order).data, status.HTTP_201_CREATED

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=request.user,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=_handler,
            )
        else:
            body, code = _handler()
        return api_response(body, "Order created successfully", code)


class OrderDetailView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="Get order detail",
        description="Retrieve a single order. Owners see their own orders; staff see any order.",
        responses=OrderSerializer,
    )
    def get(self, request, order_id: int):
        order = selectors.get_order_for_user(user=request.user, order_id=order_id)
        return api_response(OrderSerializer(order).data)


class OrderCancelView(APIView):
    """Cancel an order for the authenticated owner."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        description=(
            "Cancels the order unless it has shipped, been delivered, or is already closed. "
            "Stock committed for a confirmed order is restored."
        ),
        request=CancelOrderSerializer,
        responses=OrderSerializer,
        examples=[OpenApiExample("Cancel", value={"reason": "Ordered by mistake"}, request_only=True)],
    )
    def post(self, request, order_id: int):
        order = selectors.get_order_for_user(user=request.user, order_id=order_id)
        if order.user_id != request.user.id:
            # Staff use the admin status endpoint instead
            raise NotFound("Order not found")
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = cancel_order(order, user=request.user, reason=serializer.validated_data["reason"])
        order = selectors.get_order_for_user(user=request.user, order_id=order.id)
        return api_response(OrderSerializer(order).data, "Order cancelled successfully")


class AdminOrderListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    serializer_class = OrderSerializer

    @extend_schema(
        tags=["Orders Admin"],
        summary="List all orders",
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, location="query"),
            OpenApiParameter("search", OpenApiTypes.STR, location="query", description="Order number or name"),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        params = self.request.query_params
        return selectors.list_all_orders(status=params.get("status"), search=params.get("search"))


class AdminOrderStatusView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        tags=["Orders Admin"],
        summary="Update order status",
        description=(
            "Moves the order along pending, confirmed, processing, shipped and delivered, or closes it as "
            "cancelled or returned. Confirming a pending order commits stock and clears the customer's cart; "
            "cancelling or returning restores committed stock.\n\nErrors: 409 for a disallowed transition."
        ),
        request=OrderStatusUpdateSerializer,
        responses=OrderSerializer,
        examples=[
            OpenApiExample(
                "Ship",
                value={"status": "shipped", "courier": "BlueDart", "tracking_number": "BD123"},
                request_only=True,
            )
        ],
    )
    def post(self, request, order_id: int):
        order = selectors.get_order_for_user(user=request.user, order_id=order_id)
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        update_order_status(
            order,
            status=serializer.validated_data["status"],
            actor=request.user,
            note=serializer.validated_data["note"],
            tracking=serializer.tracking(),
        )
        order = selectors.get_order_for_user(user=request.user, order_id=order.id)
        return api_response(OrderSerializer(order).data, "Order status updated successfully")
