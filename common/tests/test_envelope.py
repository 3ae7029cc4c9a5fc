import pytest
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APIClient

from common.exceptions import InsufficientStockError, ProductUnavailableError, envelope_exception_handler

pytestmark = pytest.mark.django_db


def test_health_is_enveloped():
    resp = APIClient().get("/health/")
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "statusCode": 200,
        "data": {"status": "ok", "database": "ok"},
        "message": "",
    }


def test_field_errors_are_flattened():
    exc = ValidationError({"shipping_address": {"pincode": ["Pincode must be 6 digits."]}, "quantity": ["Required"]})
    resp = envelope_exception_handler(exc, {})

    assert resp.status_code == 400
    assert resp.data["success"] is False
    assert resp.data["message"] == "Validation failed"
    assert resp.data["errors"] == [
        {"field": "shipping_address.pincode", "message": "Pincode must be 6 digits."},
        {"field": "quantity", "message": "Required"},
    ]


def test_non_field_validation_uses_first_message():
    resp = envelope_exception_handler(ValidationError("Malformed webhook payload"), {})
    assert resp.data["message"] == "Malformed webhook payload"


def test_api_exception_carries_detail_as_message():
    resp = envelope_exception_handler(NotFound("Order not found"), {})
    assert resp.status_code == 404
    assert resp.data == {"success": False, "statusCode": 404, "message": "Order not found", "errors": []}


def test_conflict_family_messages():
    assert str(InsufficientStockError("Anklet", 1).detail) == "Insufficient stock for Anklet. Available: 1"
    assert str(InsufficientStockError("Anklet", -3).detail) == "Insufficient stock for Anklet. Available: 0"
    assert str(ProductUnavailableError("Anklet").detail) == "Anklet is no longer available"
    assert InsufficientStockError().status_code == 409


def test_unhandled_exception_becomes_500():
    resp = envelope_exception_handler(RuntimeError("boom"), {"view": None})
    assert resp.status_code == 500
    assert resp.data["message"] == "Internal server error"


def test_unauthenticated_request_is_enveloped():
    client = APIClient()
    resp = client.get("/api/v1/orders/999999/")
    assert resp.status_code == 401
    assert resp.json()["success"] is False
