"""API error taxonomy and the envelope exception handler.

Every error leaves the API as::

    {"success": false, "statusCode": <int>, "message": <str>, "errors": [...]}

Field-level validation errors are flattened into ``{"field", "message"}``
objects so clients can bind them to form inputs.
"""

import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger("lakshmi.api")


class ConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state of the resource."
    default_code = "conflict"


class ProductUnavailableError(ConflictError):
    default_detail = "Product is no longer available."
    default_code = "product_unavailable"

    def __init__(self, product_name: str | None = None):
        detail = f"{product_name} is no longer available" if product_name else None
        super().__init__(detail)


class InsufficientStockError(ConflictError):
    default_detail = "Insufficient stock."
    default_code = "insufficient_stock"

    def __init__(self, product_name: str | None = None, available: int | None = None):
        detail = None
        if product_name is not None:
            detail = f"Insufficient stock for {product_name}. Available: {max(available or 0, 0)}"
        super().__init__(detail)


class EmptyCartError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Cart is empty"
    default_code = "empty_cart"


class InvalidCouponError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid coupon code"
    default_code = "invalid_coupon"


class PaymentVerificationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Payment verification failed"
    default_code = "payment_verification_failed"


class AccountLockedError(APIException):
    status_code = status.HTTP_423_LOCKED
    default_detail = "Account is temporarily locked due to too many failed login attempts."
    default_code = "account_locked"


class ExternalServiceError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment gateway is unavailable. Please try again."
    default_code = "external_service_error"


def _flatten_errors(detail, field: str | None = None) -> list[dict]:
    errors: list[dict] = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            if key == "non_field_errors":
                name = field
            else:
                name = f"{field}.{key}" if field else str(key)
            errors.extend(_flatten_errors(value, name))
    elif isinstance(detail, list):
        for item in detail:
            errors.extend(_flatten_errors(item, field))
    else:
        errors.append({"field": field, "message": str(detail)})
    return errors


def envelope_exception_handler(exc, context):
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(
            "unhandled_exception",
            extra={"view": view.__class__.__name__ if view is not None else None},
        )
        return Response(
            {
                "success": False,
                "statusCode": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "message": "Internal server error",
                "errors": [],
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, ValidationError):
        errors = _flatten_errors(response.data)
        if errors and all(e["field"] is None for e in errors):
            message = errors[0]["message"]
        else:
            message = "Validation failed"
    else:
        errors = []
        data = response.data
        if isinstance(data, dict) and "detail" in data:
            message = str(data["detail"])
        else:
            message = str(getattr(exc, "detail", exc))

    response.data = {
        "success": False,
        "statusCode": response.status_code,
        "message": message,
        "errors": errors,
    }
    return response
