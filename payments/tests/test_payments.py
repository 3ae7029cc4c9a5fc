import json
from unittest.mock import Mock, patch

import pytest
import requests
from django.core import mail
from rest_framework.test import APIClient

from cart.models import CartItem
from cart.tests.factories import CartItemFactory
from catalog.tests.factories import ProductFactory
from common.choices import OrderStatus, PaymentMethod, PaymentStatus
from inventory.models import StockMovement
from orders.models import IdempotencyKey
from orders.services import apply_confirmation_effects, update_order_status
from orders.tests.factories import OrderFactory, OrderItemFactory
from payments.gateway import hmac_sha256_hex
from payments.services import handle_webhook
from users.tests.factories import AdminUserFactory, UserFactory

pytestmark = pytest.mark.django_db

WEBHOOK_URL = "/api/v1/payments/webhook/"
VERIFY_URL = "/api/v1/payments/verify/"


@pytest.fixture
def product():
    return ProductFactory(stock_quantity=10)


@pytest.fixture
def order(product):
    user = UserFactory()
    CartItemFactory(cart__user=user, product=product, quantity=2)
    order = OrderFactory(user=user, gateway_order_id="order_RZP1")
    OrderItemFactory(order=order, product=product, quantity=2)
    return order


def _client(user):
    client = APIClient()
    client.force_authenticate(user)
    return client


def _gateway_response(payload, status_code=200):
    resp = Mock(status_code=status_code, text="")
    resp.json.return_value = payload
    return resp


def _verify_payload(order, payment_id="pay_1", signature=None):
    if signature is None:
        signature = hmac_sha256_hex("test-key-secret", f"{order.gateway_order_id}|{payment_id}".encode())
    return {
        "order_id": order.id,
        "razorpay_order_id": order.gateway_order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature,
    }


def _captured_body(order, payment_id="pay_1"):
    payload = {
        "event": "payment.captured",
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": order.gateway_order_id,
                    "amount": 226300,
                    "notes": {"order_id": str(order.id)},
                }
            }
        },
    }
    return json.dumps(payload).encode()


def _post_webhook(body, *, event_id=None, signature=None):
    headers = {"HTTP_X_RAZORPAY_SIGNATURE": signature or hmac_sha256_hex("test-webhook-secret", body)}
    if event_id:
        headers["HTTP_X_RAZORPAY_EVENT_ID"] = event_id
    return APIClient().post(WEBHOOK_URL, data=body, content_type="application/json", **headers)


class TestCreatePaymentOrder:
    def test_returns_checkout_details(self, order):
        resp_payload = {"id": "order_RZP9", "amount": 226300, "currency": "INR", "receipt": order.number}
        with patch.object(requests.Session, "request", return_value=_gateway_response(resp_payload)):
            resp = _client(order.user).post("/api/v1/payments/create-order/", {"order_id": order.id}, format="json")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["razorpay_order_id"] == "order_RZP9"
        assert data["amount"] == 226300
        assert data["currency"] == "INR"
        assert data["key_id"] == "rzp_test_key"
        order.refresh_from_db()
        assert order.gateway_order_id == "order_RZP9"

    def test_gateway_failure_returns_502(self, order):
        with patch.object(requests.Session, "request", return_value=_gateway_response({}, status_code=503)):
            resp = _client(order.user).post("/api/v1/payments/create-order/", {"order_id": order.id}, format="json")
        assert resp.status_code == 502
        assert resp.json()["success"] is False

    def test_paid_order_conflicts(self, order):
        order.payment_status = PaymentStatus.COMPLETED
        order.save(update_fields=["payment_status"])
        resp = _client(order.user).post("/api/v1/payments/create-order/", {"order_id": order.id}, format="json")
        assert resp.status_code == 409

    def test_cod_order_is_rejected(self, order):
        order.payment_method = PaymentMethod.COD
        order.save(update_fields=["payment_method"])
        resp = _client(order.user).post("/api/v1/payments/create-order/", {"order_id": order.id}, format="json")
        assert resp.status_code == 400

    def test_foreign_order_is_404(self, order):
        resp = _client(UserFactory()).post("/api/v1/payments/create-order/", {"order_id": order.id}, format="json")
        assert resp.status_code == 404


class TestVerifyPayment:
    def test_valid_signature_confirms_order(self, order, product):
        resp = _client(order.user).post(VERIFY_URL, _verify_payload(order), format="json")

        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Payment verified and order confirmed successfully"
        assert body["data"]["status"] == OrderStatus.CONFIRMED
        assert body["data"]["payment"]["status"] == PaymentStatus.COMPLETED
        assert body["data"]["payment"]["gateway_payment_id"] == "pay_1"
        product.refresh_from_db()
        assert product.stock_quantity == 8
        assert not CartItem.objects.filter(cart__user=order.user).exists()
        assert len(mail.outbox) == 1

    def test_invalid_signature_marks_payment_failed(self, order, product):
        resp = _client(order.user).post(VERIFY_URL, _verify_payload(order, signature="bad"), format="json")

        assert resp.status_code == 400
        assert resp.json()["message"] == "Payment verification failed. Invalid signature."
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.PENDING
        product.refresh_from_db()
        assert product.stock_quantity == 10

    def test_mismatched_gateway_order_is_rejected(self, order):
        payload = _verify_payload(order)
        payload["razorpay_order_id"] = "order_OTHER"
        resp = _client(order.user).post(VERIFY_URL, payload, format="json")
        assert resp.status_code == 400

    def test_retry_after_failure_succeeds(self, order, product):
        client = _client(order.user)
        client.post(VERIFY_URL, _verify_payload(order, signature="bad"), format="json")
        resp = client.post(VERIFY_URL, _verify_payload(order), format="json")
        assert resp.status_code == 200
        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_cod_order_cannot_be_verified(self, order):
        order.payment_method = PaymentMethod.COD
        order.gateway_order_id = ""
        order.save(update_fields=["payment_method", "gateway_order_id"])

        resp = _client(order.user).post(VERIFY_URL, _verify_payload(order, signature="bogus"), format="json")

        assert resp.status_code == 400
        assert resp.json()["message"] == "This order does not use Razorpay as payment method"
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PENDING

        update_order_status(order, status=OrderStatus.DELIVERED, actor=AdminUserFactory())
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.COMPLETED

    def test_verify_before_payment_initiated_keeps_payment_pending(self, order):
        order.gateway_order_id = ""
        order.save(update_fields=["gateway_order_id"])
        payload = _verify_payload(order, signature="bogus")
        payload["razorpay_order_id"] = "order_ANY"

        resp = _client(order.user).post(VERIFY_URL, payload, format="json")

        assert resp.status_code == 400
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PENDING

    def test_repeated_verify_applies_once(self, order, product):
        client = _client(order.user)
        client.post(VERIFY_URL, _verify_payload(order), format="json")
        resp = client.post(VERIFY_URL, _verify_payload(order), format="json")
        assert resp.status_code == 200
        product.refresh_from_db()
        assert product.stock_quantity == 8
        assert StockMovement.objects.filter(order=order).count() == 1


class TestWebhook:
    def test_captured_confirms_order(self, order, product):
        resp = _post_webhook(_captured_body(order), event_id="evt_1")

        assert resp.status_code == 200
        assert resp.json()["data"] == {"status": "ok", "outcome": "processed"}
        order.refresh_from_db()
        assert order.status == OrderStatus.CONFIRMED
        assert order.payment_status == PaymentStatus.COMPLETED
        assert order.status_history.filter(note="Payment received").exists()
        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_duplicate_delivery_decrements_once(self, order, product):
        body = _captured_body(order)
        _post_webhook(body)
        resp = _post_webhook(body)

        assert resp.json()["data"]["outcome"] == "duplicate"
        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_repeated_event_id_is_short_circuited(self, order):
        body = _captured_body(order)
        _post_webhook(body, event_id="evt_2")
        resp = _post_webhook(body, event_id="evt_2")
        assert resp.json()["data"]["outcome"] == "duplicate"
        assert IdempotencyKey.objects.filter(key="evt_2", scope="razorpay").count() == 1

    def test_webhook_then_verify_applies_once(self, order, product):
        _post_webhook(_captured_body(order))
        resp = _client(order.user).post(VERIFY_URL, _verify_payload(order), format="json")

        assert resp.status_code == 200
        product.refresh_from_db()
        assert product.stock_quantity == 8
        assert StockMovement.objects.filter(order=order).count() == 1

    def test_invalid_signature_changes_nothing(self, order, product):
        resp = _post_webhook(_captured_body(order), event_id="evt_3", signature="forged")

        assert resp.status_code == 400
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PENDING
        assert not IdempotencyKey.objects.filter(key="evt_3").exists()
        product.refresh_from_db()
        assert product.stock_quantity == 10

    def test_failed_event_marks_payment_failed(self, order):
        body = json.dumps(
            {
                "event": "payment.failed",
                "payload": {"payment": {"entity": {"id": "pay_9", "order_id": order.gateway_order_id, "notes": {}}}},
            }
        ).encode()
        resp = _post_webhook(body)
        assert resp.json()["data"]["outcome"] == "processed"
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.PENDING

    def test_unknown_event_is_ignored(self):
        body = json.dumps({"event": "order.paid", "payload": {}}).encode()
        resp = _post_webhook(body)
        assert resp.status_code == 200
        assert resp.json()["data"]["outcome"] == "ignored"

    def test_malformed_payload_is_ignored_and_releases_event(self):
        body = json.dumps({"event": "payment.captured", "payload": {}}).encode()
        outcome = handle_webhook(body, hmac_sha256_hex("test-webhook-secret", body), event_id="evt_4")
        assert outcome == "ignored"
        assert not IdempotencyKey.objects.filter(key="evt_4").exists()

    def test_non_object_entity_is_ignored(self):
        body = json.dumps({"event": "payment.captured", "payload": {"payment": {"entity": "pay_1"}}}).encode()
        resp = _post_webhook(body, event_id="evt_5")
        assert resp.status_code == 200
        assert resp.json()["data"]["outcome"] == "ignored"
        assert not IdempotencyKey.objects.filter(key="evt_5").exists()

    def test_capture_on_cancelled_order_keeps_it_cancelled(self, order, product):
        order.status = OrderStatus.CANCELLED
        order.save(update_fields=["status"])
        resp = _post_webhook(_captured_body(order))

        assert resp.json()["data"]["outcome"] == "processed"
        order.refresh_from_db()
        assert order.status == OrderStatus.CANCELLED
        assert order.payment_status == PaymentStatus.COMPLETED
        product.refresh_from_db()
        assert product.stock_quantity == 10

    def test_refund_processed_event(self, order, product):
        _post_webhook(_captured_body(order))
        body = json.dumps(
            {
                "event": "refund.processed",
                "payload": {"refund": {"entity": {"id": "rfnd_7", "payment_id": "pay_1", "amount": 226300}}},
            }
        ).encode()
        resp = _post_webhook(body)

        assert resp.json()["data"]["outcome"] == "processed"
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.REFUNDED
        assert order.status == OrderStatus.CANCELLED
        assert order.refund_id == "rfnd_7"
        product.refresh_from_db()
        assert product.stock_quantity == 10


class TestRefund:
    @pytest.fixture
    def paid_order(self, order):
        order.status = OrderStatus.CONFIRMED
        order.payment_status = PaymentStatus.COMPLETED
        order.gateway_payment_id = "pay_1"
        order.save(update_fields=["status", "payment_status", "gateway_payment_id"])
        apply_confirmation_effects(order)
        return order

    def _refund(self, order, reason="Damaged in transit", payment_status="captured"):
        responses = [
            _gateway_response({"id": "pay_1", "amount": 226300, "status": payment_status}),
            _gateway_response({"id": "rfnd_1", "amount": 226300, "status": "processed"}),
        ]
        with patch.object(requests.Session, "request", side_effect=responses):
            return _client(AdminUserFactory()).post(
                "/api/v1/payments/refund/", {"order_id": order.id, "reason": reason}, format="json"
            )

    def test_payment_not_captured_at_gateway_conflicts(self, paid_order, product):
        resp = self._refund(paid_order, payment_status="authorized")

        assert resp.status_code == 409
        assert resp.json()["message"] == "Payment is not refundable at the gateway (status: authorized)"
        paid_order.refresh_from_db()
        assert paid_order.payment_status == PaymentStatus.COMPLETED
        assert paid_order.status == OrderStatus.CONFIRMED
        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_refund_cancels_and_restores_stock(self, paid_order, product):
        product.refresh_from_db()
        assert product.stock_quantity == 8

        resp = self._refund(paid_order)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["refund"]["id"] == "rfnd_1"
        assert data["order"]["status"] == OrderStatus.CANCELLED
        assert data["order"]["payment"]["status"] == PaymentStatus.REFUNDED
        assert data["order"]["cancellation_reason"] == "Damaged in transit"
        product.refresh_from_db()
        assert product.stock_quantity == 10
        assert len(mail.outbox) == 1

    def test_second_refund_conflicts(self, paid_order):
        self._refund(paid_order)
        resp = self._refund(paid_order)
        assert resp.status_code == 409
        assert resp.json()["message"] == "Order is already refunded"

    def test_unpaid_order_cannot_be_refunded(self, order):
        resp = self._refund(order)
        assert resp.status_code == 409
        assert resp.json()["message"] == "Cannot refund order that is not paid"

    def test_customer_cannot_refund(self, paid_order):
        resp = _client(paid_order.user).post("/api/v1/payments/refund/", {"order_id": paid_order.id}, format="json")
        assert resp.status_code == 403


class TestPaymentStatus:
    def test_owner_sees_status(self, order):
        resp = _client(order.user).get(f"/api/v1/payments/{order.id}/status/")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["statusCode"] == 200
        assert body["data"]["payment_status"] == PaymentStatus.PENDING
        assert body["data"]["amount"] == "2263.00"
        assert body["data"]["razorpay_order_id"] == "order_RZP1"

    def test_stranger_gets_404(self, order):
        resp = _client(UserFactory()).get(f"/api/v1/payments/{order.id}/status/")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
