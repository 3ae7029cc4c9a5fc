"""Serializers for user profile, registration, sign-in and password flows."""

from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied
from rest_framework_simplejwt.tokens import RefreshToken

from common.exceptions import AccountLockedError

from .models import User
from .services import record_failed_signin, record_successful_signin


class UserMeSerializer(serializers.ModelSerializer):
    """Profile fields returned for the current user."""

    class Meta:
        model = User
        fields = ["id", "email", "first_name", "last_name", "phone", "email_verified", "is_staff", "date_joined"]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Allow-listed profile fields a user may change about themselves."""

    class Meta:
        model = User
        fields = ["first_name", "last_name", "phone"]


class RegistrationSerializer(serializers.Serializer):
    """Register a new customer account.

    The email doubles as the username. Django's password validators run
    against the provided password before the user is created.
    """

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone = serializers.RegexField(r"^\+?[1-9]\d{1,14}$", required=False, allow_blank=True)

    def validate_email(self, value: str) -> str:
        value = value.strip().lower()
        if User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email is already registered.")
        return value

    def validate_password(self, value: str) -> str:
        user = User(username=self.initial_data.get("email", ""), email=self.initial_data.get("email", ""))
        validate_password(value, user=user)
        return value

    def create(self, validated_data):
        user = User(
            username=validated_data["email"],
            email=validated_data["email"],
            first_name=validated_data["first_name"],
            last_name=validated_data.get("last_name", ""),
            phone=validated_data.get("phone", ""),
        )
        user.set_password(validated_data["password"])
        user.save()
        return user


class SignOutSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True)

    def validate_current_password(self, value: str) -> str:
        if not self.context["request"].user.check_password(value):
            raise serializers.ValidationError("Current password is incorrect.")
        return value

    def validate_new_password(self, value: str) -> str:
        validate_password(value, user=self.context["request"].user)
        return value


class PasswordResetConfirmSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    new_password = serializers.CharField(write_only=True)


class EmailOrPhoneTokenObtainPairSerializer(serializers.Serializer):
    """Obtain JWTs by authenticating with either email or phone.

    `identifier` may be an email address (case-insensitive) or an E.164 phone
    number. Consecutive failures lock the account for a while; a locked
    account is refused with 423 even when the password is right.
    """

    identifier = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        identifier = attrs["identifier"].strip()
        password = attrs["password"]

        lookup = {"email": identifier.lower()} if "@" in identifier else {"phone": identifier}
        user = User.objects.filter(**lookup).first()
        if user is None or not user.is_active:
            raise AuthenticationFailed("Invalid credentials.")
        if user.is_locked:
            raise AccountLockedError()
        if not user.check_password(password):
            record_failed_signin(user)
            raise AuthenticationFailed("Invalid credentials.")
        if settings.REQUIRE_VERIFIED_EMAIL and not user.email_verified:
            raise PermissionDenied("Please verify your email before signing in.")

        record_successful_signin(user)
        refresh = RefreshToken.for_user(user)
        self.user = user
        return {"access": str(refresh.access_token), "refresh": str(refresh)}
