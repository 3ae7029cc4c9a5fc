"""Account routes: profile, registration, password and email verification flows."""

from django.urls import path

from .views import (
    change_password,
    current_user,
    email_verification_confirm,
    email_verification_request,
    password_reset_confirm,
    password_reset_request,
    register,
)

urlpatterns = [
    path("profile/", current_user, name="profile"),
    path("register/", register, name="register"),
    path("change-password/", change_password, name="change_password"),
    path("password-reset/", password_reset_request, name="password_reset_request"),
    path("password-reset/confirm/", password_reset_confirm, name="password_reset_confirm"),
    path("email-verify/", email_verification_request, name="email_verification_request"),
    path("email-verify/confirm/", email_verification_confirm, name="email_verification_confirm"),
]
