"""Read serializers for the public catalog API."""

from rest_framework import serializers

from .models import Category, Product, ProductImage, Review


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "slug", "description", "image_url", "parent", "display_order"]


class ProductImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = ["id", "url", "alt_text", "is_primary", "sort_order"]


class ProductListSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)
    primary_image = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "slug",
            "category",
            "metal",
            "purity",
            "weight",
            "base_price",
            "selling_price",
            "discount_percent",
            "is_in_stock",
            "is_featured",
            "rating_average",
            "rating_count",
            "primary_image",
        ]

    def get_primary_image(self, obj) -> dict | None:
        image = obj.primary_image
        return ProductImageSerializer(image).data if image else None


class ProductDetailSerializer(ProductListSerializer):
    images = ProductImageSerializer(many=True, read_only=True)

    class Meta(ProductListSerializer.Meta):
        fields = ProductListSerializer.Meta.fields + [
            "description",
            "sub_category",
            "making_charges",
            "stock_quantity",
            "is_low_stock",
            "tags",
            "views",
            "images",
            "seo_title",
            "seo_description",
            "seo_keywords",
        ]


class ReviewSerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = [
            "id",
            "rating",
            "title",
            "comment",
            "user_name",
            "is_verified_purchase",
            "is_approved",
            "helpful_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_user_name(self, obj) -> str:
        return obj.user.get_full_name() or obj.user.email.split("@")[0]


class ReviewCreateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    title = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    comment = serializers.CharField(max_length=1000)
