"""Cart serializers for read and write operations."""

from rest_framework import serializers

from catalog.models import Product

from .models import Cart, CartItem
from .selectors import cart_totals


class CartProductSerializer(serializers.ModelSerializer):
    image = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ["id", "name", "slug", "selling_price", "stock_quantity", "is_in_stock", "is_active", "image"]

    def get_image(self, obj) -> str | None:
        image = obj.primary_image
        return image.url if image else None


class CartItemReadSerializer(serializers.ModelSerializer):
    product = CartProductSerializer(read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = ["id", "product", "quantity", "unit_price", "line_total", "created_at"]


class CartReadSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    items = CartItemReadSerializer(many=True)
    item_count = serializers.IntegerField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    expires_at = serializers.DateTimeField()

    @classmethod
    def from_cart(cls, *, cart: Cart):
        totals = cart_totals(cart=cart)
        return cls(
            {
                "id": cart.id,
                "items": list(cart.items.select_related("product").prefetch_related("product__images")),
                "item_count": totals["item_count"],
                "total_amount": totals["total_amount"],
                "expires_at": cart.expires_at,
            }
        )


class AddItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class UpdateItemQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
