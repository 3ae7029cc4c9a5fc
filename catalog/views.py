"""Public read endpoints for the catalog plus customer reviews."""

from django_filters import rest_framework as filters
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import filters as drf_filters
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.throttling import AnonRateThrottle, UserRateThrottle

from common.pagination import EnvelopePagination
from common.responses import api_response
from common.throttling import SettingsScopedRateThrottle

from . import selectors, services
from .models import Product
from .serializers import (
    CategorySerializer,
    ProductDetailSerializer,
    ProductListSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
)

PRODUCT_EXAMPLE = {
    "id": 7,
    "name": "Oxidised Jhumka Earrings",
    "slug": "oxidised-jhumka-earrings",
    "category": {"id": 2, "name": "Earrings", "slug": "earrings"},
    "metal": "silver",
    "purity": "92.5%",
    "weight": "12.500",
    "base_price": "2400.00",
    "selling_price": "1999.00",
    "discount_percent": "16.71",
    "is_in_stock": True,
    "is_featured": True,
    "rating_average": "4.5",
    "rating_count": 12,
    "primary_image": {"id": 3, "url": "https://cdn.example.com/jhumka.jpg", "is_primary": True},
}


@extend_schema_view(
    list=extend_schema(
        summary="List categories",
        description="Returns active categories ordered by display_order then name",
        tags=["Catalog Endpoints"],
    ),
    retrieve=extend_schema(summary="Get category", tags=["Catalog Endpoints"]),
)
class CategoryViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = CategorySerializer
    pagination_class = None
    throttle_scope = "catalog"
    throttle_classes = [SettingsScopedRateThrottle, UserRateThrottle, AnonRateThrottle]

    def get_queryset(self):
        return selectors.list_categories()

    @extend_schema(
        tags=["Catalog Endpoints"],
        summary="List products in category",
        responses=ProductListSerializer(many=True),
    )
    @action(detail=True, methods=["get"], url_path="products")
    def products(self, request, pk=None):
        category = self.get_object()
        paginator = EnvelopePagination()
        page = paginator.paginate_queryset(selectors.list_products_in_category(category), request, view=self)
        return paginator.get_paginated_response(ProductListSerializer(page, many=True).data)


class ProductFilterSet(filters.FilterSet):
    category = filters.CharFilter(field_name="category__slug")
    metal = filters.CharFilter(field_name="metal")
    min_price = filters.NumberFilter(field_name="selling_price", lookup_expr="gte")
    max_price = filters.NumberFilter(field_name="selling_price", lookup_expr="lte")
    is_featured = filters.BooleanFilter(field_name="is_featured")
    in_stock = filters.BooleanFilter(field_name="is_in_stock")

    class Meta:
        model = Product
        fields = ["category", "metal", "min_price", "max_price", "is_featured", "in_stock"]


@extend_schema_view(
    list=extend_schema(
        summary="List products",
        description=(
            "Returns active products. Filters: `category` (slug), `metal`, `min_price`, `max_price`, "
            "`is_featured`, `in_stock`. Ordering via `ordering` on `selling_price`, `created_at`, "
            "`rating_average` or `name`. Text search via `search`."
        ),
        tags=["Catalog Endpoints"],
        parameters=[
            OpenApiParameter("category", OpenApiTypes.STR, location="query", description="Filter by category slug"),
            OpenApiParameter("min_price", OpenApiTypes.NUMBER, location="query"),
            OpenApiParameter("max_price", OpenApiTypes.NUMBER, location="query"),
            OpenApiParameter("ordering", OpenApiTypes.STR, location="query", description="e.g. `-selling_price`"),
            OpenApiParameter("search", OpenApiTypes.STR, location="query"),
        ],
    ),
    retrieve=extend_schema(
        summary="Get product by id",
        description="Returns an active product with its images. Each fetch increments the view counter.",
        tags=["Catalog Endpoints"],
        examples=[OpenApiExample("Product detail", value=PRODUCT_EXAMPLE, response_only=True)],
    ),
)
class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    filterset_class = ProductFilterSet
    throttle_scope = "catalog"
    throttle_classes = [SettingsScopedRateThrottle, UserRateThrottle, AnonRateThrottle]
    filter_backends = [filters.DjangoFilterBackend, drf_filters.OrderingFilter, drf_filters.SearchFilter]
    ordering_fields = ["selling_price", "created_at", "rating_average", "name"]
    ordering = ["-created_at"]
    search_fields = ["name", "description", "tags"]

    def get_queryset(self):
        return selectors.list_products()

    def get_serializer_class(self):
        if self.action in ("retrieve", "by_slug"):
            return ProductDetailSerializer
        if self.action == "reviews":
            return ReviewSerializer
        return ProductListSerializer

    def retrieve(self, request, *args, **kwargs):
        product = self.get_object()
        services.increment_views(product)
        return api_response(ProductDetailSerializer(product).data)

    @extend_schema(tags=["Catalog Endpoints"], summary="Get product by slug")
    @action(detail=False, methods=["get"], url_path=r"slug/(?P<slug>[-\w]+)", url_name="by-slug")
    def by_slug(self, request, slug=None):
        product = selectors.get_active_product(slug=slug)
        if product is None:
            raise NotFound("Product not found")
        services.increment_views(product)
        return api_response(ProductDetailSerializer(product).data)

    @extend_schema(
        tags=["Catalog Endpoints"],
        summary="Featured products",
        description="Up to 10 newest featured products",
        responses=ProductListSerializer(many=True),
    )
    @action(detail=False, methods=["get"], url_path="featured")
    def featured(self, request):
        qs = selectors.list_featured_products()
        return api_response(ProductListSerializer(qs, many=True).data)

    @extend_schema(
        tags=["Catalog Endpoints"],
        summary="Search products",
        parameters=[OpenApiParameter("q", OpenApiTypes.STR, location="query", required=True)],
        responses=ProductListSerializer(many=True),
    )
    @action(detail=False, methods=["get"], url_path="search")
    def search(self, request):
        query = (request.query_params.get("q") or "").strip()
        if not query:
            raise ValidationError({"q": "Search query is required"})
        qs = selectors.search_products(query)
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(ProductListSerializer(page, many=True).data)

    @extend_schema(
        methods=["GET"],
        tags=["Catalog Endpoints"],
        summary="List approved reviews",
        responses=ReviewSerializer(many=True),
    )
    @extend_schema(
        methods=["POST"],
        tags=["Catalog Endpoints"],
        summary="Review a product",
        request=ReviewCreateSerializer,
        responses={201: ReviewSerializer},
    )
    @action(detail=True, methods=["get", "post"], url_path="reviews")
    def reviews(self, request, pk=None):
        product = self.get_object()
        if request.method == "GET":
            page = self.paginate_queryset(selectors.list_approved_reviews(product))
            return self.get_paginated_response(ReviewSerializer(page, many=True).data)

        if not request.user.is_authenticated:
            self.permission_denied(request, message="Authentication required")
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = services.create_review(user=request.user, product=product, **serializer.validated_data)
        return api_response(
            ReviewSerializer(review).data,
            "Review submitted and awaiting approval",
            status.HTTP_201_CREATED,
        )

    def get_throttles(self):
        if self.action == "reviews" and self.request.method == "POST":
            self.throttle_scope = "reviews_write"
        return super().get_throttles()
