from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
import requests

from common.exceptions import ExternalServiceError
from orders.tests.factories import OrderFactory
from payments.gateway import RazorpayGateway, hmac_sha256_hex, to_paise


def _response(status_code=200, payload=None):
    resp = Mock(status_code=status_code, text="")
    resp.json.return_value = payload or {}
    return resp


def _gateway(**kwargs):
    defaults = {
        "key_id": "rzp_test_key",
        "key_secret": "test-key-secret",
        "webhook_secret": "test-webhook-secret",
        "base_url": "https://api.example.test/v1",
        "max_retries": 0,
    }
    defaults.update(kwargs)
    return RazorpayGateway(**defaults)


def test_to_paise_rounds_half_up():
    assert to_paise(Decimal("2263.00")) == 226300
    assert to_paise(Decimal("0.005")) == 1
    assert to_paise("19.99") == 1999


class TestSignatures:
    def test_payment_signature_matches(self):
        sig = hmac_sha256_hex("test-key-secret", b"order_1|pay_1")
        assert _gateway().verify_payment_signature("order_1", "pay_1", sig) is True

    def test_payment_signature_rejects_tampering(self):
        sig = hmac_sha256_hex("test-key-secret", b"order_1|pay_1")
        assert _gateway().verify_payment_signature("order_1", "pay_2", sig) is False
        assert _gateway().verify_payment_signature("order_1", "pay_1", sig[:-1] + "0") is False

    def test_payment_signature_fails_closed(self):
        sig = hmac_sha256_hex("", b"order_1|pay_1")
        assert _gateway(key_secret="").verify_payment_signature("order_1", "pay_1", sig) is False
        assert _gateway().verify_payment_signature("order_1", "pay_1", "") is False
        assert _gateway().verify_payment_signature("", "pay_1", "abc") is False

    def test_webhook_signature_covers_raw_bytes(self):
        body = b'{"event": "payment.captured"}'
        sig = hmac_sha256_hex("test-webhook-secret", body)
        assert _gateway().verify_webhook_signature(body, sig) is True
        assert _gateway().verify_webhook_signature(body.replace(b" ", b""), sig) is False
        assert _gateway().verify_webhook_signature(body, None) is False


@pytest.mark.django_db
class TestGatewayCalls:
    def test_create_intent_posts_amount_in_paise(self):
        order = OrderFactory()
        resp = _response(payload={"id": "order_RZP1", "amount": 226300, "currency": "INR", "receipt": order.number})
        with patch.object(requests.Session, "request", return_value=resp) as request:
            intent = _gateway().create_intent(order)

        assert intent.intent_id == "order_RZP1"
        assert intent.amount == 226300
        method, url = request.call_args.args
        assert method == "POST"
        assert url == "https://api.example.test/v1/orders"
        payload = request.call_args.kwargs["json"]
        assert payload["amount"] == 226300
        assert payload["currency"] == "INR"
        assert payload["notes"]["order_id"] == str(order.id)

    def test_gateway_error_status_raises(self):
        order = OrderFactory()
        with patch.object(requests.Session, "request", return_value=_response(status_code=500)):
            with pytest.raises(ExternalServiceError):
                _gateway().create_intent(order)

    def test_connection_error_raises(self):
        order = OrderFactory()
        with patch.object(requests.Session, "request", side_effect=requests.ConnectionError("down")):
            with pytest.raises(ExternalServiceError):
                _gateway().create_intent(order)

    def test_fetch_payment_gets_payment(self):
        resp = _response(payload={"id": "pay_1", "status": "captured", "amount": 226300})
        with patch.object(requests.Session, "request", return_value=resp) as request:
            payment = _gateway().fetch_payment("pay_1")

        assert payment["status"] == "captured"
        assert request.call_args.args[0] == "GET"
        assert request.call_args.args[1].endswith("/payments/pay_1")

    def test_refund_posts_to_payment(self):
        resp = _response(payload={"id": "rfnd_1", "amount": 226300, "status": "processed"})
        with patch.object(requests.Session, "request", return_value=resp) as request:
            result = _gateway().refund("pay_1", Decimal("2263.00"), "Damaged")

        assert result.refund_id == "rfnd_1"
        assert result.status == "processed"
        assert request.call_args.args[1].endswith("/payments/pay_1/refund")
        assert request.call_args.kwargs["json"]["notes"]["reason"] == "Damaged"
