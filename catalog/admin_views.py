"""Admin viewsets for catalog write endpoints.

Restricted to staff users. Writes go through :mod:`catalog.services` so
derived fields stay consistent; products are soft-deleted.
"""

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action

from common.responses import api_response

from . import services
from .admin_serializers import (
    CategoryAdminSerializer,
    ProductAdminSerializer,
    ProductImageAdminSerializer,
    ReviewAdminSerializer,
)
from .models import Category, Product, ProductImage, Review


class AdminBaseViewSet(viewsets.ModelViewSet):
    permission_classes = [permissions.IsAdminUser]


@extend_schema_view(
    list=extend_schema(tags=["Admin Endpoints"], summary="List categories (admin)"),
    retrieve=extend_schema(tags=["Admin Endpoints"], summary="Get category (admin)"),
    create=extend_schema(tags=["Admin Endpoints"], summary="Create category"),
    update=extend_schema(tags=["Admin Endpoints"], summary="Update category"),
    partial_update=extend_schema(tags=["Admin Endpoints"], summary="Partial update category"),
    destroy=extend_schema(
        tags=["Admin Endpoints"],
        summary="Delete category",
        description="Refused with 409 while any product still belongs to the category.",
    ),
)
class CategoryAdminViewSet(AdminBaseViewSet):
    queryset = Category.objects.all().order_by("display_order", "name")
    serializer_class = CategoryAdminSerializer

    def perform_create(self, serializer):
        serializer.instance = services.create_category(data=serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = services.update_category(serializer.instance, data=serializer.validated_data)

    def perform_destroy(self, instance):
        services.delete_category(instance)


@extend_schema_view(
    list=extend_schema(tags=["Admin Endpoints"], summary="List products (admin)"),
    retrieve=extend_schema(tags=["Admin Endpoints"], summary="Get product (admin)"),
    create=extend_schema(tags=["Admin Endpoints"], summary="Create product"),
    update=extend_schema(tags=["Admin Endpoints"], summary="Update product"),
    partial_update=extend_schema(tags=["Admin Endpoints"], summary="Partial update product"),
    destroy=extend_schema(tags=["Admin Endpoints"], summary="Deactivate product"),
)
class ProductAdminViewSet(AdminBaseViewSet):
    queryset = Product.objects.select_related("category").order_by("-created_at")
    serializer_class = ProductAdminSerializer
    filterset_fields = ["category", "metal", "is_active", "is_featured", "is_in_stock"]
    search_fields = ["name", "slug"]

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        images = data.pop("images", [])
        serializer.instance = services.create_product(data=data, images=images)

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        data.pop("images", None)
        serializer.instance = services.update_product(serializer.instance, data=data)

    def destroy(self, request, *args, **kwargs):
        services.deactivate_product(self.get_object())
        return api_response(None, "Product deleted successfully")


@extend_schema_view(
    list=extend_schema(tags=["Admin Endpoints"], summary="List product images (admin)"),
    retrieve=extend_schema(tags=["Admin Endpoints"], summary="Get product image (admin)"),
    create=extend_schema(tags=["Admin Endpoints"], summary="Add product image"),
    update=extend_schema(tags=["Admin Endpoints"], summary="Update product image"),
    partial_update=extend_schema(tags=["Admin Endpoints"], summary="Partial update product image"),
    destroy=extend_schema(tags=["Admin Endpoints"], summary="Delete product image"),
)
class ProductImageAdminViewSet(AdminBaseViewSet):
    queryset = ProductImage.objects.select_related("product").order_by("product_id", "sort_order", "id")
    serializer_class = ProductImageAdminSerializer
    filterset_fields = ["product"]

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        product = data.pop("product")
        serializer.instance = services.add_product_image(product=product, data=data)

    def perform_update(self, serializer):
        serializer.instance = services.update_product_image(serializer.instance, data=serializer.validated_data)


@extend_schema_view(
    list=extend_schema(tags=["Admin Endpoints"], summary="List reviews (admin)"),
    retrieve=extend_schema(tags=["Admin Endpoints"], summary="Get review (admin)"),
    destroy=extend_schema(tags=["Admin Endpoints"], summary="Delete review"),
)
class ReviewAdminViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [permissions.IsAdminUser]
    queryset = Review.objects.select_related("product", "user").order_by("-created_at")
    serializer_class = ReviewAdminSerializer
    filterset_fields = ["product", "is_approved", "is_verified_purchase"]

    def perform_destroy(self, instance):
        services.delete_review(instance)

    @extend_schema(tags=["Admin Endpoints"], summary="Approve review", request=None)
    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        review = services.approve_review(self.get_object())
        return api_response(ReviewAdminSerializer(review).data, "Review approved", status.HTTP_200_OK)
