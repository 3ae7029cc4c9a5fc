from django.urls import path

from .views import LowStockListView, MovementListView, StockAdjustView

app_name = "inventory"

urlpatterns = [
    path("movements/", MovementListView.as_view(), name="movements"),
    path("low-stock/", LowStockListView.as_view(), name="low-stock"),
    path("adjust/", StockAdjustView.as_view(), name="adjust"),
]
