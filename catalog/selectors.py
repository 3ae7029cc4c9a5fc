"""Read-only query helpers for the catalog domain."""

from typing import Iterable, Optional

from django.db.models import Prefetch, Q, QuerySet

from .models import Category, Product, ProductImage, Review

FEATURED_LIMIT = 10


def list_categories(ordering: Optional[Iterable[str]] = None) -> QuerySet[Category]:
    """Return active categories, by ``display_order`` then ``name`` unless told otherwise."""
    ordering = list(ordering or ("display_order", "name"))
    return Category.objects.filter(is_active=True).order_by(*ordering)


def get_active_category(pk) -> Optional[Category]:
    return Category.objects.filter(pk=pk, is_active=True).first()


def list_products(*, include_inactive: bool = False) -> QuerySet[Product]:
    """Return products with category and images prefetched to avoid N+1."""
    qs = Product.objects.select_related("category").prefetch_related(
        Prefetch("images", queryset=ProductImage.objects.order_by("sort_order", "id"))
    )
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return qs


def list_products_in_category(category: Category) -> QuerySet[Product]:
    return list_products().filter(category=category)


def list_featured_products(limit: int = FEATURED_LIMIT) -> QuerySet[Product]:
    return list_products().filter(is_featured=True).order_by("-created_at")[:limit]


def search_products(query: str) -> QuerySet[Product]:
    """Match name, description or tags case-insensitively."""
    query = query.strip()
    return list_products().filter(
        Q(name__icontains=query) | Q(description__icontains=query) | Q(tags__icontains=query)
    )


def get_active_product(*, pk=None, slug: Optional[str] = None) -> Optional[Product]:
    lookup = {"pk": pk} if pk is not None else {"slug": slug}
    return list_products().filter(**lookup).first()


def list_approved_reviews(product: Product) -> QuerySet[Review]:
    return product.reviews.filter(is_approved=True).select_related("user").order_by("-created_at")
