"""Staff-only inventory endpoints: movement ledger, low stock and manual adjustments."""

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from rest_framework import generics, permissions, status
from rest_framework.views import APIView

from common.responses import api_response

from . import selectors, services
from .serializers import LowStockProductSerializer, StockAdjustmentSerializer, StockMovementSerializer


class MovementListView(generics.ListAPIView):
    permission_classes = [permissions.IsAdminUser]
    serializer_class = StockMovementSerializer

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock movements",
        description="Filters: product_id, order_id, movement_type (in/out/adjust), created_after (ISO).",
        parameters=[
            OpenApiParameter("product_id", OpenApiTypes.INT, location="query"),
            OpenApiParameter("order_id", OpenApiTypes.INT, location="query"),
            OpenApiParameter("movement_type", OpenApiTypes.STR, location="query"),
            OpenApiParameter("created_after", OpenApiTypes.DATETIME, location="query"),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        params = self.request.query_params
        return selectors.list_movements(
            product_id=params.get("product_id"),
            order_id=params.get("order_id"),
            movement_type=params.get("movement_type"),
            created_after=params.get("created_after"),
        )


class LowStockListView(generics.ListAPIView):
    permission_classes = [permissions.IsAdminUser]
    serializer_class = LowStockProductSerializer

    @extend_schema(tags=["Inventory Endpoints"], summary="List low-stock products")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return selectors.list_low_stock_products()


class StockAdjustView(APIView):
    permission_classes = [permissions.IsAdminUser]

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Adjust stock",
        description="Apply a signed stock correction. Negative quantities cannot take stock below zero.",
        request=StockAdjustmentSerializer,
        responses={201: StockMovementSerializer},
        examples=[
            OpenApiExample(
                "Restock",
                value={"product": 12, "quantity": 25, "reason": "Supplier delivery", "reference": "PO-1042"},
                request_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        movement = services.adjust_stock(
            product_id=data["product"],
            quantity=data["quantity"],
            reason=data["reason"],
            reference=data["reference"],
        )
        return api_response(StockMovementSerializer(movement).data, "Stock adjusted", status.HTTP_201_CREATED)
