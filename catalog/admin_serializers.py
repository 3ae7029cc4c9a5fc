"""Admin serializers for catalog write endpoints.

Field lists are explicit allow-lists: computed fields (slug when derived,
``is_in_stock``, views and the rating block) can never be mass-assigned.
"""

from rest_framework import serializers

from .models import Category, Product, ProductImage, Review


class CategoryAdminSerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = [
            "id",
            "name",
            "slug",
            "description",
            "image_url",
            "parent",
            "is_active",
            "display_order",
        ]
        extra_kwargs = {"slug": {"required": False}}


class ProductImageAdminSerializer(serializers.ModelSerializer):
    # Explicit field: primary-image uniqueness is kept by the service layer
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())

    class Meta:
        model = ProductImage
        fields = ["id", "product", "url", "alt_text", "is_primary", "public_id", "sort_order"]


class ProductImageInlineSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = ["url", "alt_text", "is_primary", "public_id"]


class ProductAdminSerializer(serializers.ModelSerializer):
    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())
    images = ProductImageInlineSerializer(many=True, required=False, write_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "slug",
            "description",
            "category",
            "sub_category",
            "metal",
            "purity",
            "weight",
            "making_charges",
            "base_price",
            "selling_price",
            "discount_percent",
            "stock_quantity",
            "low_stock_threshold",
            "tags",
            "is_active",
            "is_featured",
            "seo_title",
            "seo_description",
            "seo_keywords",
            "images",
            # read-only
            "is_in_stock",
            "views",
            "rating_average",
            "rating_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["is_in_stock", "views", "rating_average", "rating_count", "created_at", "updated_at"]
        extra_kwargs = {"slug": {"required": False}}

    def validate(self, attrs):
        base = attrs.get("base_price", getattr(self.instance, "base_price", None))
        selling = attrs.get("selling_price", getattr(self.instance, "selling_price", None))
        if base is not None and selling is not None and selling > base:
            raise serializers.ValidationError({"selling_price": "Selling price cannot exceed base price."})
        return attrs


class ReviewAdminSerializer(serializers.ModelSerializer):
    class Meta:
        model = Review
        fields = [
            "id",
            "product",
            "user",
            "order",
            "rating",
            "title",
            "comment",
            "is_verified_purchase",
            "is_approved",
            "helpful_count",
            "created_at",
        ]
        read_only_fields = fields
