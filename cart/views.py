"""DRF views for cart operations.

Every mutation responds with the full, refreshed cart.
"""

from drf_spectacular.utils import OpenApiExample, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from common.responses import api_response

from .selectors import get_cart_for_user
from .serializers import AddItemSerializer, CartReadSerializer, UpdateItemQuantitySerializer
from .services import add_item, clear_cart, remove_item, update_item_quantity

CART_EXAMPLE = {
    "id": 1,
    "items": [
        {
            "id": 10,
            "product": {"id": 7, "name": "Silver Anklet", "slug": "silver-anklet", "selling_price": "1000.00"},
            "quantity": 2,
            "unit_price": "1000.00",
            "line_total": "2000.00",
        }
    ],
    "item_count": 2,
    "total_amount": "2000.00",
    "expires_at": "2025-02-01T10:00:00+05:30",
}


def _cart_payload(user):
    return CartReadSerializer.from_cart(cart=get_cart_for_user(user=user)).data


class CartDetailView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart",
        description="Returns the authenticated user's cart including items and the derived total.",
        responses=CartReadSerializer,
        examples=[OpenApiExample("Cart", value=CART_EXAMPLE, response_only=True)],
    )
    def get(self, request):
        return api_response(_cart_payload(request.user))


class CartAddItemView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        description=(
            "Adds a product to the cart. Adding a product already in the cart increases its quantity.\n\n"
            "Errors: 404 when the product is missing or inactive; 409 when stock is insufficient."
        ),
        request=AddItemSerializer,
        responses={201: CartReadSerializer},
        examples=[OpenApiExample("Add", value={"product_id": 7, "quantity": 2}, request_only=True)],
    )
    def post(self, request):
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        add_item(user=request.user, **serializer.validated_data)
        return api_response(_cart_payload(request.user), "Item added to cart", status.HTTP_201_CREATED)


class CartItemView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Update cart item quantity",
        description="Errors: 404 unknown item; 409 when the product is unavailable or stock is insufficient.",
        request=UpdateItemQuantitySerializer,
        responses=CartReadSerializer,
    )
    def patch(self, request, item_id: int):
        serializer = UpdateItemQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        update_item_quantity(user=request.user, item_id=item_id, quantity=serializer.validated_data["quantity"])
        return api_response(_cart_payload(request.user), "Cart updated")

    @extend_schema(tags=["Cart Endpoints"], summary="Remove cart item", responses=CartReadSerializer)
    def delete(self, request, item_id: int):
        remove_item(user=request.user, item_id=item_id)
        return api_response(_cart_payload(request.user), "Item removed from cart")


class CartClearView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(tags=["Cart Endpoints"], summary="Clear cart", request=None, responses=CartReadSerializer)
    def delete(self, request):
        clear_cart(user=request.user)
        return api_response(_cart_payload(request.user), "Cart cleared")
