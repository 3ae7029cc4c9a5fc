"""Razorpay gateway adapter.

A narrow client over Razorpay's REST API using ``requests``. Intent creation
retries on connection errors and 502/503/504; refunds only retry when the
request never reached the gateway, so a refund is not issued twice. Calls
that still fail surface as :class:`common.exceptions.ExternalServiceError`.

Signature checks are pure and fail closed: a missing secret, a missing
signature or any error while computing the digest means "not verified".
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import requests
from django.conf import settings
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from common.exceptions import ExternalServiceError

logger = logging.getLogger("lakshmi.payments")

CURRENCY = "INR"


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    amount: int
    currency: str
    receipt: str = ""


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    amount: int
    status: str = ""
    raw: dict = field(default_factory=dict, compare=False)


def to_paise(amount) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _signatures_match(secret: str | None, message: bytes, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    try:
        expected = hmac_sha256_hex(secret, message)
        return hmac.compare_digest(expected, str(signature))
    except Exception:
        logger.warning("signature_check_error", exc_info=True)
        return False


class RazorpayGateway:
    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.RAZORPAY_WEBHOOK_SECRET
        self.base_url = (base_url or settings.RAZORPAY_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PAYMENT_GATEWAY_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else settings.PAYMENT_GATEWAY_MAX_RETRIES

    def _session(self, *, retry_statuses: tuple[int, ...]) -> requests.Session:
        retry = Retry(
            total=self.max_retries,
            connect=self.max_retries,
            read=self.max_retries if retry_statuses else 0,
            status=self.max_retries if retry_statuses else 0,
            backoff_factor=0.5,
            status_forcelist=retry_statuses,
            allowed_methods=frozenset({"GET", "POST"}),
            raise_on_status=False,
        )
        session = requests.Session()
        session.auth = (self.key_id or "", self.key_secret or "")
        session.mount("https://", HTTPAdapter(max_retries=retry))
        session.mount("http://", HTTPAdapter(max_retries=retry))
        return session

    def _request(self, method: str, path: str, *, operation: str, retry_statuses=(), **kwargs) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        with self._session(retry_statuses=tuple(retry_statuses)) as session:
            try:
                resp = session.request(method, url, timeout=self.timeout, **kwargs)
            except requests.RequestException as exc:
                logger.error("gateway_unreachable", extra={"operation": operation, "error": str(exc)})
                raise ExternalServiceError()
        if resp.status_code >= 400:
            logger.error(
                "gateway_error",
                extra={"operation": operation, "status_code": resp.status_code, "body": resp.text[:500]},
            )
            raise ExternalServiceError()
        try:
            return resp.json()
        except ValueError:
            logger.error("gateway_bad_response", extra={"operation": operation})
            raise ExternalServiceError()

    def create_intent(self, order) -> PaymentIntent:
        """Create a Razorpay order for ``order.total``, in paise."""
        payload = {
            "amount": to_paise(order.total),
            "currency": CURRENCY,
            "receipt": order.number,
            "notes": {
                "order_id": str(order.id),
                "user_id": str(order.user_id),
                "order_number": order.number,
            },
        }
        data = self._request("POST", "orders", operation="create_intent", retry_statuses=(502, 503, 504), json=payload)
        logger.info("gateway_intent_created", extra={"order_id": order.id, "gateway_order_id": data.get("id")})
        return PaymentIntent(
            intent_id=data["id"],
            amount=int(data.get("amount", payload["amount"])),
            currency=data.get("currency", CURRENCY),
            receipt=data.get("receipt", order.number),
        )

    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        if not gateway_order_id or not payment_id:
            return False
        message = f"{gateway_order_id}|{payment_id}".encode("utf-8")
        return _signatures_match(self.key_secret, message, signature)

    def verify_webhook_signature(self, raw_body: bytes, signature: str | None) -> bool:
        if raw_body is None:
            return False
        if isinstance(raw_body, str):
            raw_body = raw_body.encode("utf-8")
        return _signatures_match(self.webhook_secret, raw_body, signature)

    def refund(self, payment_id: str, amount, reason: str = "") -> RefundResult:
        payload = {
            "amount": to_paise(amount),
            "speed": "normal",
            "notes": {"reason": reason or "Customer requested refund"},
        }
        data = self._request("POST", f"payments/{payment_id}/refund", operation="refund", json=payload)
        logger.info("gateway_refund_created", extra={"payment_id": payment_id, "refund_id": data.get("id")})
        return RefundResult(
            refund_id=data["id"],
            amount=int(data.get("amount", payload["amount"])),
            status=data.get("status", ""),
            raw=data,
        )

    def fetch_payment(self, payment_id: str) -> dict:
        return self._request("GET", f"payments/{payment_id}", operation="fetch_payment", retry_statuses=(502, 503, 504))


def get_gateway() -> RazorpayGateway:
    return RazorpayGateway()
