import logging

logger = logging.getLogger("auth")

FAILURE_STATUSES = {"failed", "invalid", "invalid_password", "invalid_token"}


def client_ip(request) -> str | None:
    """First hop of X-Forwarded-For when behind the proxy, else the socket address."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def log_auth_event(action: str, request, user=None, status: str = "success", extra: dict | None = None):
    payload = {"action": action, "ip": client_ip(request), "status": status}
    if user is not None:
        payload["user_id"] = getattr(user, "id", None)
    if extra:
        payload.update(extra)
    level = logging.WARNING if status in FAILURE_STATUSES else logging.INFO
    logger.log(level, f"auth.{action}", extra=payload)
