"""Users app API views.

Endpoints include:
- register: creates a customer account, returns tokens and sends verification.
- signin / refresh / verify / signout: JWT lifecycle (signout blacklists).
- profile: read or update the current user's profile.
- change-password: authenticated password change.
- password-reset (+ confirm): reset without revealing account existence.
- email-verify (+ confirm): email verification tokens.
"""

from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken, TokenError
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView, TokenVerifyView

from common.responses import api_response

from .logging import log_auth_event
from .models import User
from .serializers import (
    ChangePasswordSerializer,
    EmailOrPhoneTokenObtainPairSerializer,
    PasswordResetConfirmSerializer,
    ProfileUpdateSerializer,
    RegistrationSerializer,
    SignOutSerializer,
    UserMeSerializer,
)
from .services import resolve_uid, send_email_verification, send_password_reset_email
from .tokens import email_verification_token

GENERIC_RESET_MESSAGE = "If the email exists, a reset link will be sent."
GENERIC_VERIFY_MESSAGE = "If the account exists, a verification link will be sent."


@extend_schema(
    operation_id="users_profile",
    summary="Get or update current user profile",
    description=(
        "GET returns the authenticated user's profile. PATCH updates the "
        "allow-listed fields first_name, last_name and phone.\n\n"
        "Errors: 401 if authentication credentials are missing or invalid."
    ),
    tags=["User Endpoints"],
    request=ProfileUpdateSerializer,
    responses={
        200: OpenApiResponse(description="User profile", response=UserMeSerializer),
        401: OpenApiResponse(description="Unauthorized"),
    },
)
@api_view(["GET", "PATCH"])
@permission_classes([IsAuthenticated])
@throttle_classes([ScopedRateThrottle])
def current_user(request):
    if request.method == "PATCH":
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        log_auth_event("profile_update", request, user=request.user)
        return api_response(UserMeSerializer(request.user).data, "Profile updated successfully")
    return api_response(UserMeSerializer(request.user).data)


current_user.throttle_scope = "profile"


@extend_schema(tags=["User Endpoints"], request=RegistrationSerializer, summary="Register a customer account")
@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def register(request):
    serializer = RegistrationSerializer(data=request.data)
    if not serializer.is_valid():
        log_auth_event("register", request, status="invalid")
        raise ValidationError(serializer.errors)
    user = serializer.save()
    send_email_verification(user)
    log_auth_event("register", request, user=user, status="success")
    refresh = RefreshToken.for_user(user)
    data = {
        "user": UserMeSerializer(user).data,
        "access": str(refresh.access_token),
        "refresh": str(refresh),
    }
    return api_response(
        data,
        "Registration successful. Please verify your email.",
        status.HTTP_201_CREATED,
    )


register.throttle_scope = "register"


@extend_schema(tags=["User Endpoints"], request=ChangePasswordSerializer, summary="Change password")
@api_view(["POST"])
@permission_classes([IsAuthenticated])
@throttle_classes([ScopedRateThrottle])
def change_password(request):
    serializer = ChangePasswordSerializer(data=request.data, context={"request": request})
    if not serializer.is_valid():
        log_auth_event("change_password", request, user=request.user, status="invalid")
        raise ValidationError(serializer.errors)
    request.user.set_password(serializer.validated_data["new_password"])
    request.user.save(update_fields=["password"])
    log_auth_event("change_password", request, user=request.user)
    return api_response(None, "Password changed successfully")


change_password.throttle_scope = "profile"


@extend_schema(tags=["User Endpoints"], summary="Request a password reset link")
@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def password_reset_request(request):
    """Response is identical whether or not the account exists."""
    email = (request.data.get("email") or "").strip().lower()
    user = User.objects.filter(email=email).first() if email else None
    if user is None:
        log_auth_event("password_reset_request", request, status="not_found")
        return api_response(None, GENERIC_RESET_MESSAGE)

    uid, _ = send_password_reset_email(user)
    log_auth_event("password_reset_request", request, user=user, status="sent", extra={"uid": uid})
    return api_response(None, GENERIC_RESET_MESSAGE)


password_reset_request.throttle_scope = "password_reset"


@extend_schema(tags=["User Endpoints"], request=PasswordResetConfirmSerializer, summary="Reset password")
@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def password_reset_confirm(request):
    serializer = PasswordResetConfirmSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    user = resolve_uid(data["uid"])
    if user is None:
        log_auth_event("password_reset_confirm", request, status="invalid")
        raise ValidationError("Invalid link.")
    if not default_token_generator.check_token(user, data["token"]):
        log_auth_event("password_reset_confirm", request, user=user, status="invalid_token")
        raise ValidationError("Invalid or expired token.")
    try:
        validate_password(data["new_password"], user=user)
    except DjangoValidationError as exc:
        log_auth_event("password_reset_confirm", request, user=user, status="invalid_password")
        raise ValidationError({"new_password": exc.messages})

    user.set_password(data["new_password"])
    user.failed_login_attempts = 0
    user.locked_until = None
    user.save(update_fields=["password", "failed_login_attempts", "locked_until"])
    log_auth_event("password_reset_confirm", request, user=user, status="success")
    return api_response(None, "Password has been reset.")


password_reset_confirm.throttle_scope = "password_reset"


@extend_schema(tags=["User Endpoints"], summary="Request an email verification link")
@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def email_verification_request(request):
    if request.user and request.user.is_authenticated:
        user = request.user
    else:
        email = (request.data.get("email") or "").strip().lower()
        user = User.objects.filter(email=email).first() if email else None

    if user is None:
        log_auth_event("email_verification_request", request, status="not_found")
        return api_response(None, GENERIC_VERIFY_MESSAGE)

    uid, _ = send_email_verification(user)
    log_auth_event("email_verification_request", request, user=user, status="sent", extra={"uid": uid})
    return api_response(None, GENERIC_VERIFY_MESSAGE)


email_verification_request.throttle_scope = "email_verify"


@extend_schema(tags=["User Endpoints"], summary="Confirm email verification")
@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def email_verification_confirm(request):
    uidb64 = request.data.get("uid")
    token = request.data.get("token")
    if not uidb64 or not token:
        raise ValidationError("uid and token are required.")

    user = resolve_uid(uidb64)
    if user is None:
        log_auth_event("email_verification_confirm", request, status="invalid")
        raise ValidationError("Invalid link.")
    if not email_verification_token.check_token(user, token):
        log_auth_event("email_verification_confirm", request, user=user, status="invalid_token")
        raise ValidationError("Invalid or expired token.")

    user.email_verified = True
    user.save(update_fields=["email_verified"])
    log_auth_event("email_verification_confirm", request, user=user, status="success")
    return api_response(None, "Email verified successfully")


email_verification_confirm.throttle_scope = "email_verify"


class SignOutView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "signout"
    permission_classes = [AllowAny]

    @extend_schema(tags=["User Endpoints"], request=SignOutSerializer, summary="Sign out")
    def post(self, request):
        serializer = SignOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            RefreshToken(serializer.validated_data["refresh"]).blacklist()
        except TokenError:
            log_auth_event("signout", request, status="invalid_token")
            raise ValidationError("Invalid token.")
        log_auth_event("signout", request, status="success")
        return api_response(None, "Logged out successfully")


class SignInView(TokenObtainPairView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "signin"
    serializer_class = EmailOrPhoneTokenObtainPairSerializer

    def get_authenticate_header(self, request):
        # Keeps bad credentials at 401; DRF downgrades to 403 without a header
        return 'Bearer realm="api"'

    @extend_schema(tags=["User Endpoints"], summary="Sign in with email or phone")
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except Exception:
            log_auth_event("signin", request, status="failed")
            raise
        log_auth_event("signin", request, user=serializer.user, status="success")
        data = {**serializer.validated_data, "user": UserMeSerializer(serializer.user).data}
        return api_response(data, "Login successful")


class RefreshView(TokenRefreshView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "token_refresh"

    @extend_schema(tags=["User Endpoints"])
    def post(self, request, *args, **kwargs):
        resp = super().post(request, *args, **kwargs)
        log_auth_event("token_refresh", request, status="success" if resp.status_code == 200 else "failed")
        return resp


class VerifyView(TokenVerifyView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "token_verify"

    @extend_schema(tags=["User Endpoints"])
    def post(self, request, *args, **kwargs):
        resp = super().post(request, *args, **kwargs)
        log_auth_event("token_verify", request, status="success" if resp.status_code == 200 else "failed")
        return resp
