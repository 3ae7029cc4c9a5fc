from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("email", "phone", "email_verified", "is_staff", "order_count", "locked_until", "date_joined")
    list_filter = ("is_staff", "is_active", "email_verified")
    search_fields = ("email", "phone", "first_name", "last_name")
    ordering = ("-date_joined",)
    readonly_fields = ("last_login", "date_joined", "failed_login_attempts")
    actions = ["unlock_accounts"]

    fieldsets = (
        ("Account", {"fields": ("email", "username", "password")}),
        ("Contact", {"fields": ("first_name", "last_name", "phone", "email_verified")}),
        ("Sign-in lockout", {"fields": ("failed_login_attempts", "locked_until")}),
        ("Access", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Dates", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = ((None, {"classes": ("wide",), "fields": ("email", "username", "password1", "password2")}),)

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(_order_count=Count("orders"))

    @admin.display(description="Orders", ordering="_order_count")
    def order_count(self, obj) -> int:
        return obj._order_count

    @admin.action(description="Unlock selected accounts")
    def unlock_accounts(self, request, queryset):
        updated = queryset.update(failed_login_attempts=0, locked_until=None)
        self.message_user(request, f"Unlocked {updated} account(s).")
