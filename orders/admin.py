from django.contrib import admin

from .models import IdempotencyKey, Order, OrderItem, OrderStatusHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "name", "quantity", "price", "making_charges", "weight")
    can_delete = False


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ("status", "note", "updated_by", "timestamp")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "status", "payment_method", "payment_status", "total", "user", "created_at")
    list_filter = ("status", "payment_status", "payment_method", "created_at")
    search_fields = ("number", "email", "gateway_order_id", "gateway_payment_id")
    date_hierarchy = "created_at"
    inlines = [OrderItemInline, OrderStatusHistoryInline]
    readonly_fields = (
        "subtotal",
        "making_charges",
        "gst",
        "shipping_charges",
        "discount",
        "total",
        "stock_committed_at",
        "stock_restored_at",
    )


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(admin.ModelAdmin):
    list_display = ("id", "key", "scope", "path", "method", "response_code", "created_at")
    list_filter = ("method", "response_code", "created_at")
    search_fields = ("key", "scope", "path")
    date_hierarchy = "created_at"
