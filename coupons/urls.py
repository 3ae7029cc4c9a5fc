from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import CouponAdminViewSet, CouponValidateView

router = SimpleRouter()
router.register(r"admin", CouponAdminViewSet, basename="admin-coupon")

urlpatterns = [
    path("validate/", CouponValidateView.as_view(), name="coupon-validate"),
    path("", include(router.urls)),
]
