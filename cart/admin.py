from django.contrib import admin, messages

from .models import Cart, CartItem
from .services import clear_cart


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    fields = ("product", "quantity", "unit_price", "created_at", "updated_at")
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("product",)


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "expires_at", "updated_at", "created_at")
    search_fields = ("user__username", "user__email")
    ordering = ("-updated_at",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [CartItemInline]
    list_select_related = ("user",)
    actions = ["action_clear_cart"]

    @admin.action(description="Clear cart")
    def action_clear_cart(self, request, queryset):
        count = 0
        for cart in queryset.select_related("user"):
            clear_cart(user=cart.user)
            count += 1
        messages.success(request, f"Cleared {count} cart(s).")
