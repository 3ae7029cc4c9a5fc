import sentry_sdk
from decouple import Csv, config
from sentry_sdk.integrations.django import DjangoIntegration

from .base import *  # noqa

DEBUG = False

SECRET_KEY = config("SECRET_KEY")
ALLOWED_HOSTS = config("ALLOWED_HOSTS", cast=Csv())

# The storefront is the only browser client
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = config("CORS_ALLOWED_ORIGINS", default=FRONTEND_URL, cast=Csv())  # noqa: F405
CSRF_TRUSTED_ORIGINS = config("CSRF_TRUSTED_ORIGINS", default=FRONTEND_URL, cast=Csv())  # noqa: F405
CORS_ALLOW_CREDENTIALS = config("CORS_ALLOW_CREDENTIALS", default=True, cast=bool)

# No fallback for live gateway credentials
RAZORPAY_KEY_ID = config("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = config("RAZORPAY_KEY_SECRET")
RAZORPAY_WEBHOOK_SECRET = config("RAZORPAY_WEBHOOK_SECRET")

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=True, cast=bool)
# Load balancer probes arrive over plain HTTP
SECURE_REDIRECT_EXEMPT = [r"^health/$"]
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_HSTS_SECONDS = config("SECURE_HSTS_SECONDS", default=31536000, cast=int)
SECURE_HSTS_INCLUDE_SUBDOMAINS = True

EMAIL_BACKEND = config("EMAIL_BACKEND", default="django.core.mail.backends.smtp.EmailBackend")

_REDIS_URL = config("REDIS_URL", default="")
if _REDIS_URL:
    CACHES = {"default": {"BACKEND": "django.core.cache.backends.redis.RedisCache", "LOCATION": _REDIS_URL}}
    SESSION_ENGINE = "django.contrib.sessions.backends.cached_db"

# Domain loggers; orders and payments INFO output may be sampled
_PLAIN_LOGGERS = ("auth", "lakshmi.api", "lakshmi.cart", "lakshmi.catalog", "lakshmi.inventory")
_SAMPLED_LOGGERS = ("lakshmi.orders", "lakshmi.payments")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"json": {"()": "config.logging.JsonFormatter"}},
    "filters": {
        "transition_safe_sample": {
            "()": "config.logging.SamplingFilter",
            "rate": config("ORDERS_LOG_SAMPLE_RATE", default=1.0, cast=float),
            "levels": ["INFO"],
            "allow_events": ["order_status_changed", "payment_status_changed"],
        },
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "json"},
        "sampled_console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["transition_safe_sample"],
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        **{name: {"handlers": ["console"], "level": "INFO", "propagate": False} for name in _PLAIN_LOGGERS},
        **{name: {"handlers": ["sampled_console"], "level": "INFO", "propagate": False} for name in _SAMPLED_LOGGERS},
        "django.request": {"handlers": ["console"], "level": "ERROR", "propagate": False},
    },
}

_SCRUBBED_HEADERS = {"authorization", "x-razorpay-signature", "cookie"}


def _scrub_event(event, hint):
    """Drop credentials and gateway signatures from Sentry request data."""
    headers = (event.get("request") or {}).get("headers") or {}
    for key in list(headers):
        if key.lower() in _SCRUBBED_HEADERS:
            headers[key] = "[Filtered]"
    return event


SENTRY_DSN = config("SENTRY_DSN", default="")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=config("SENTRY_ENV", default="production"),
        integrations=[DjangoIntegration()],
        traces_sample_rate=config("SENTRY_TRACES_SAMPLE_RATE", default=0.0, cast=float),
        # Orders carry customer addresses and phone numbers
        send_default_pii=config("SENTRY_SEND_DEFAULT_PII", default=False, cast=bool),
        before_send=_scrub_event,
    )
