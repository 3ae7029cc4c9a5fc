"""User model for authentication and account management."""

from datetime import timedelta

from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    """Custom user with unique email, verification state and sign-in lockout.

    Fields:
    - email: the primary email, unique at the database level (normalized).
    - email_verified: whether the primary email has been verified.
    - failed_login_attempts / locked_until: consecutive failed sign-ins and the
      time until which sign-in is refused.
    """

    email = models.EmailField(unique=True)
    email_verified = models.BooleanField(default=False)
    phone = models.CharField(
        max_length=16,
        blank=True,
        validators=[RegexValidator(r"^\+?[1-9]\d{1,14}$", message="Use E.164 format (e.g., +919876543210)")],
        help_text="Primary contact number for the account in E.164 format",
    )
    failed_login_attempts = models.PositiveIntegerField(default=0)
    locked_until = models.DateTimeField(null=True, blank=True)

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        if self.phone:
            self.phone = self.phone.strip()
        super().save(*args, **kwargs)

    @property
    def is_locked(self) -> bool:
        return bool(self.locked_until and self.locked_until > timezone.now())

    def lock_for(self, minutes: int) -> None:
        self.locked_until = timezone.now() + timedelta(minutes=minutes)
