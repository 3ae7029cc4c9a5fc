from django.contrib import admin

from .models import Category, Product, ProductImage, Review
from .services import apply_stock_quantity, recompute_product_rating


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "parent", "is_active", "display_order")
    search_fields = ("name", "slug")
    list_filter = ("is_active",)
    prepopulated_fields = {"slug": ("name",)}


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "category", "metal", "selling_price", "stock_quantity", "is_in_stock", "is_active")
    search_fields = ("name", "slug", "tags")
    list_filter = ("is_active", "is_featured", "metal", "category")
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ("is_in_stock", "views", "rating_average", "rating_count")
    inlines = [ProductImageInline]

    def save_model(self, request, obj, form, change):
        apply_stock_quantity(obj, obj.stock_quantity)
        super().save_model(request, obj, form, change)


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("product", "user", "rating", "is_verified_purchase", "is_approved", "created_at")
    list_filter = ("is_approved", "is_verified_purchase", "rating")
    search_fields = ("product__name", "user__email", "title")
    actions = ["approve_selected"]

    @admin.action(description="Approve selected reviews")
    def approve_selected(self, request, queryset):
        product_ids = set(queryset.values_list("product_id", flat=True))
        queryset.update(is_approved=True)
        for product_id in product_ids:
            recompute_product_rating(product_id)
