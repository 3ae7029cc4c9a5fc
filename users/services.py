"""Account services: notification emails and the sign-in lockout policy."""

import logging
from urllib.parse import urlencode

from django.conf import settings
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail
from django.utils import timezone
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode

from .models import User
from .tokens import email_verification_token

logger = logging.getLogger("auth")


def build_frontend_url(path: str, query: dict | None = None) -> str:
    """Construct a full frontend URL for the given path and query."""
    base = (getattr(settings, "FRONTEND_URL", None) or "").rstrip("/")
    url = f"{base}{path}"
    if query:
        url = f"{url}?{urlencode(query)}"
    return url


def resolve_uid(uidb64: str) -> User | None:
    try:
        return User.objects.get(pk=force_str(urlsafe_base64_decode(uidb64)))
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        return None


def send_password_reset_email(user):
    """Send a password reset link carrying uid/token to the user's address."""
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    link = build_frontend_url("/reset-password", {"uid": uid, "token": token})
    send_mail(
        subject="Reset your Lakshmi Silver password",
        message=f"Use this link to reset your password: {link}",
        from_email=None,
        recipient_list=[user.email],
        fail_silently=True,
    )
    return uid, token


def send_email_verification(user):
    """Send an email verification link to the user's current email."""
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = email_verification_token.make_token(user)
    link = build_frontend_url("/verify-email", {"uid": uid, "token": token})
    send_mail(
        subject="Verify your Lakshmi Silver email",
        message=f"Confirm your email with this link: {link}",
        from_email=None,
        recipient_list=[user.email],
        fail_silently=True,
    )
    return uid, token


def record_failed_signin(user: User) -> None:
    """Count a failed sign-in and lock the account once the limit is hit."""
    user.failed_login_attempts += 1
    fields = ["failed_login_attempts"]
    if user.failed_login_attempts >= settings.LOGIN_MAX_ATTEMPTS:
        user.lock_for(settings.LOGIN_LOCK_MINUTES)
        user.failed_login_attempts = 0
        fields.append("locked_until")
        logger.warning("auth.account_locked", extra={"user_id": user.id, "locked_until": user.locked_until.isoformat()})
    user.save(update_fields=fields)


def record_successful_signin(user: User) -> None:
    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login = timezone.now()
    user.save(update_fields=["failed_login_attempts", "locked_until", "last_login"])
