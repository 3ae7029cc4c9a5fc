"""Write-side operations for the catalog.

Derived fields live here rather than in model ``save()`` hooks: slugs are
generated from names, ``is_in_stock`` follows ``stock_quantity``, and the
rating block is recomputed whenever the set of approved reviews changes.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import Avg, Count, F
from django.utils.text import slugify

from common.choices import OrderStatus
from common.exceptions import ConflictError
from orders.models import Order

from .models import Category, Product, ProductImage, Review

logger = logging.getLogger("lakshmi.catalog")


def unique_slug(model, value: str, *, exclude_pk=None) -> str:
    """Slugify `value`, suffixing ``-2``, ``-3``... until unused for `model`."""
    base = slugify(value)[:200] or "item"
    slug = base
    suffix = 2
    qs = model.objects.exclude(pk=exclude_pk) if exclude_pk else model.objects.all()
    while qs.filter(slug=slug).exists():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def apply_stock_quantity(product: Product, quantity: int) -> None:
    product.stock_quantity = quantity
    product.is_in_stock = quantity > 0


def build_product(**fields) -> Product:
    """Return an unsaved product with slug and stock flag derived."""
    product = Product(**fields)
    if not product.slug:
        product.slug = unique_slug(Product, product.name)
    apply_stock_quantity(product, product.stock_quantity or 0)
    return product


def _set_primary(image: ProductImage) -> None:
    if image.is_primary:
        ProductImage.objects.filter(product_id=image.product_id, is_primary=True).exclude(pk=image.pk).update(
            is_primary=False
        )


@transaction.atomic
def create_product(*, data: dict, images: list[dict] | None = None) -> Product:
    product = build_product(**data)
    product.save()
    for index, image_data in enumerate(images or []):
        add_product_image(product=product, data={"sort_order": index, **image_data})
    logger.info("product_created", extra={"product_id": product.id, "slug": product.slug})
    return product


@transaction.atomic
def update_product(product: Product, *, data: dict) -> Product:
    for field, value in data.items():
        if field == "stock_quantity":
            continue
        setattr(product, field, value)
    if "name" in data and "slug" not in data:
        product.slug = unique_slug(Product, product.name, exclude_pk=product.pk)
    if "stock_quantity" in data:
        apply_stock_quantity(product, data["stock_quantity"])
    product.save()
    return product


def deactivate_product(product: Product) -> Product:
    """Soft delete: order history keeps referencing the row."""
    product.is_active = False
    product.save(update_fields=["is_active", "updated_at"])
    logger.info("product_deactivated", extra={"product_id": product.id})
    return product


def increment_views(product: Product) -> None:
    Product.objects.filter(pk=product.pk).update(views=F("views") + 1)
    product.refresh_from_db(fields=["views"])


@transaction.atomic
def add_product_image(*, product: Product, data: dict) -> ProductImage:
    if data.get("is_primary"):
        product.images.filter(is_primary=True).update(is_primary=False)
    return ProductImage.objects.create(product=product, **data)


@transaction.atomic
def update_product_image(image: ProductImage, *, data: dict) -> ProductImage:
    for field, value in data.items():
        setattr(image, field, value)
    _set_primary(image)
    image.save()
    return image


def create_category(*, data: dict) -> Category:
    category = Category(**data)
    if not category.slug:
        category.slug = unique_slug(Category, category.name)
    category.save()
    return category


def update_category(category: Category, *, data: dict) -> Category:
    for field, value in data.items():
        setattr(category, field, value)
    if "name" in data and "slug" not in data:
        category.slug = unique_slug(Category, category.name, exclude_pk=category.pk)
    category.save()
    return category


def delete_category(category: Category) -> None:
    if category.products.exists():
        raise ConflictError("Cannot delete category with products. Move or delete products first.")
    category.delete()


def recompute_product_rating(product_id: int) -> None:
    """Average (1 decimal) and count over approved reviews only."""
    agg = Review.objects.filter(product_id=product_id, is_approved=True).aggregate(avg=Avg("rating"), count=Count("id"))
    average = Decimal(str(agg["avg"] or 0)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    Product.objects.filter(pk=product_id).update(rating_average=average, rating_count=agg["count"])


@transaction.atomic
def create_review(*, user, product: Product, rating: int, comment: str, title: str = "") -> Review:
    """Create a pending review; approval is a separate moderation step.

    The review is a verified purchase when the user has a delivered order
    containing the product.
    """
    if Review.objects.filter(product=product, user=user).exists():
        raise ConflictError("You have already reviewed this product")

    order = (
        Order.objects.filter(user=user, status=OrderStatus.DELIVERED, items__product=product)
        .order_by("-created_at")
        .first()
    )
    return Review.objects.create(
        product=product,
        user=user,
        order=order,
        rating=rating,
        title=title,
        comment=comment,
        is_verified_purchase=order is not None,
    )


@transaction.atomic
def approve_review(review: Review) -> Review:
    review.is_approved = True
    review.save(update_fields=["is_approved", "updated_at"])
    recompute_product_rating(review.product_id)
    return review


@transaction.atomic
def delete_review(review: Review) -> None:
    product_id = review.product_id
    review.delete()
    recompute_product_rating(product_id)
