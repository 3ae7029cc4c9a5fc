"""Scoped throttle that reads rates from settings at request time.

DRF caches ``THROTTLE_RATES`` on the class when settings load, so
``override_settings`` in tests would otherwise have no effect.
"""

from django.conf import settings
from rest_framework.throttling import ScopedRateThrottle


class SettingsScopedRateThrottle(ScopedRateThrottle):
    def get_rate(self):
        rates = getattr(settings, "REST_FRAMEWORK", {}).get("DEFAULT_THROTTLE_RATES", {})
        return rates.get(self.scope)
