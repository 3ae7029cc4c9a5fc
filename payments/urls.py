"""URL routes for the payments app (v1)."""

from django.urls import path

from .views import CreatePaymentOrderView, PaymentStatusView, PaymentWebhookView, RefundView, VerifyPaymentView

app_name = "payments"

urlpatterns = [
    path("create-order/", CreatePaymentOrderView.as_view(), name="create-order"),
    path("verify/", VerifyPaymentView.as_view(), name="verify"),
    path("webhook/", PaymentWebhookView.as_view(), name="webhook"),
    path("refund/", RefundView.as_view(), name="refund"),
    path("<int:order_id>/status/", PaymentStatusView.as_view(), name="status"),
]
