from drf_spectacular.utils import OpenApiExample, extend_schema, extend_schema_view
from rest_framework import permissions, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from common.responses import api_response

from . import services
from .models import Coupon
from .serializers import CouponAdminSerializer, CouponPreviewSerializer, CouponValidateSerializer


@extend_schema_view(
    list=extend_schema(tags=["Admin Endpoints"], summary="List coupons"),
    retrieve=extend_schema(tags=["Admin Endpoints"], summary="Get coupon"),
    create=extend_schema(tags=["Admin Endpoints"], summary="Create coupon"),
    update=extend_schema(tags=["Admin Endpoints"], summary="Update coupon"),
    partial_update=extend_schema(tags=["Admin Endpoints"], summary="Partial update coupon"),
    destroy=extend_schema(tags=["Admin Endpoints"], summary="Delete coupon"),
)
class CouponAdminViewSet(viewsets.ModelViewSet):
    permission_classes = [permissions.IsAdminUser]
    queryset = Coupon.objects.all().order_by("-created_at")
    serializer_class = CouponAdminSerializer
    filterset_fields = ["is_active", "discount_type"]
    search_fields = ["code", "description"]

    def perform_create(self, serializer):
        serializer.instance = services.create_coupon(data=serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = services.update_coupon(serializer.instance, data=serializer.validated_data)


class CouponValidateView(APIView):
    """Preview a coupon against an amount without redeeming it."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "coupons"

    @extend_schema(
        tags=["Coupon Endpoints"],
        summary="Validate coupon",
        request=CouponValidateSerializer,
        responses=CouponPreviewSerializer,
        examples=[OpenApiExample("Validate", value={"code": "SILVER10", "amount": "2263.00"}, request_only=True)],
    )
    def post(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        coupon, discount = services.preview_coupon(data["code"], data["amount"])
        data = CouponPreviewSerializer(
            {
                "code": coupon.code,
                "description": coupon.description,
                "discount_type": coupon.discount_type,
                "discount": discount,
            }
        ).data
        return api_response(data, "Coupon is valid")
