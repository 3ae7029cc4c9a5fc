"""Admin router for catalog write endpoints."""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .admin_views import CategoryAdminViewSet, ProductAdminViewSet, ProductImageAdminViewSet, ReviewAdminViewSet

router = SimpleRouter()
router.register(r"categories", CategoryAdminViewSet, basename="admin-category")
router.register(r"products", ProductAdminViewSet, basename="admin-product")
router.register(r"images", ProductImageAdminViewSet, basename="admin-product-image")
router.register(r"reviews", ReviewAdminViewSet, basename="admin-review")

urlpatterns = [path("", include(router.urls))]
