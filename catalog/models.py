"""Catalog app models.

Defines the jewellery catalog: categories, products with their pricing and
stock blocks, product images, and customer reviews.

Derived fields (``slug``, ``is_in_stock``, the rating block) are maintained
by :mod:`catalog.services`, never by ``save()`` overrides.
"""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from common.choices import MetalType


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Category(TimeStampedModel):
    """Product categorization, optionally nested under a parent."""

    name = models.CharField(max_length=120, unique=True)
    slug = models.SlugField(max_length=140, unique=True)
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        related_name="children",
        on_delete=models.SET_NULL,
    )
    is_active = models.BooleanField(default=True, db_index=True)
    display_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["display_order", "name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Product(TimeStampedModel):
    """A sellable jewellery item.

    Products referenced by orders are never deleted; deactivation
    (``is_active=False``) hides them from the storefront instead.
    """

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True)
    description = models.TextField()
    category = models.ForeignKey(Category, related_name="products", on_delete=models.PROTECT)
    sub_category = models.CharField(max_length=120, blank=True)
    metal = models.CharField(max_length=16, choices=MetalType.choices, default=MetalType.SILVER, db_index=True)
    purity = models.CharField(max_length=16, default="92.5%")
    weight = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        validators=[MinValueValidator(0)],
        help_text="Unit weight used for shipping tiers",
    )
    making_charges = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])

    # Price block
    base_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )

    # Stock block
    stock_quantity = models.IntegerField(default=0)
    is_in_stock = models.BooleanField(default=False, db_index=True)
    low_stock_threshold = models.PositiveIntegerField(default=5)

    tags = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    is_featured = models.BooleanField(default=False, db_index=True)
    views = models.PositiveIntegerField(default=0)

    # Rating block, recomputed from approved reviews
    rating_average = models.DecimalField(max_digits=2, decimal_places=1, default=0)
    rating_count = models.PositiveIntegerField(default=0)

    seo_title = models.CharField(max_length=200, blank=True)
    seo_description = models.TextField(blank=True)
    seo_keywords = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                name="product_prices_non_negative",
                condition=models.Q(base_price__gte=0, selling_price__gte=0),
            ),
            models.CheckConstraint(
                name="product_discount_percent_range",
                condition=models.Q(discount_percent__gte=0, discount_percent__lte=100),
            ),
        ]
        indexes = [
            models.Index(fields=["category", "is_active"]),
            models.Index(fields=["is_active", "is_featured"]),
            models.Index(fields=["selling_price"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    @property
    def primary_image(self):
        images = list(self.images.all())
        for image in images:
            if image.is_primary:
                return image
        return images[0] if images else None

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.stock_quantity <= self.low_stock_threshold


class ProductImage(TimeStampedModel):
    """Product imagery referenced by URL."""

    product = models.ForeignKey(Product, related_name="images", on_delete=models.CASCADE)
    url = models.URLField()
    alt_text = models.CharField(max_length=200, blank=True)
    is_primary = models.BooleanField(default=False)
    public_id = models.CharField(max_length=200, blank=True, help_text="Identifier at the image host")
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product"],
                condition=models.Q(is_primary=True),
                name="unique_primary_image_per_product",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.url


class Review(TimeStampedModel):
    """A customer's rating of a product; one per user and product."""

    product = models.ForeignKey(Product, related_name="reviews", on_delete=models.CASCADE)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="reviews", on_delete=models.CASCADE)
    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        related_name="reviews",
        on_delete=models.SET_NULL,
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    title = models.CharField(max_length=100, blank=True)
    comment = models.TextField(max_length=1000)
    is_verified_purchase = models.BooleanField(default=False)
    is_approved = models.BooleanField(default=False, db_index=True)
    helpful_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["product", "user"], name="unique_review_per_user_product"),
            models.CheckConstraint(name="review_rating_range", condition=models.Q(rating__gte=1, rating__lte=5)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.product_id}:{self.user_id} ({self.rating})"
