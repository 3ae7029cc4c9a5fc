from decouple import config as _config

from .base import REST_FRAMEWORK as BASE_REST_FRAMEWORK
from .base import *  # noqa

DEBUG = True

CORS_ALLOW_ALL_ORIGINS = True

# Order and payment notifications print to the runserver console
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# Razorpay test-mode keys only; webhook deliveries need a tunnel such as ngrok
RAZORPAY_KEY_ID = _config("RAZORPAY_KEY_ID", default="rzp_test_local")
PAYMENT_GATEWAY_MAX_RETRIES = _config("PAYMENT_GATEWAY_MAX_RETRIES", default=0, cast=int)

_REDIS_URL = _config("REDIS_URL", default="")
if _REDIS_URL:
    CACHES = {"default": {"BACKEND": "django.core.cache.backends.redis.RedisCache", "LOCATION": _REDIS_URL}}

REST_FRAMEWORK = {
    **BASE_REST_FRAMEWORK,
    "DEFAULT_RENDERER_CLASSES": [
        *BASE_REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"],
        "rest_framework.renderers.BrowsableAPIRenderer",
    ],
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"events": {"format": "%(levelname)s %(name)s %(message)s"}},
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "events"}},
    "root": {"handlers": ["console"], "level": "INFO"},
    "loggers": {
        "lakshmi": {"handlers": ["console"], "level": "DEBUG", "propagate": False},
        "auth": {"handlers": ["console"], "level": "DEBUG", "propagate": False},
    },
}
