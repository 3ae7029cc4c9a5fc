from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase


class AuthFlowTests(APITestCase):
    def setUp(self):
        self.User = get_user_model()
        self.password = "StrongPass123!"
        self.user = self.User.objects.create_user(
            username="jdoe@example.com",
            email="jdoe@example.com",
            password=self.password,
            first_name="John",
            last_name="Doe",
        )

    def signin(self, identifier=None, password=None):
        return self.client.post(
            "/api/v1/auth/signin/",
            {"identifier": identifier or self.user.email, "password": password or self.password},
            format="json",
        )

    def test_login_returns_tokens_and_user(self):
        resp = self.signin()
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Login successful")
        self.assertIn("access", body["data"])
        self.assertIn("refresh", body["data"])
        self.assertEqual(body["data"]["user"]["email"], self.user.email)

    def test_login_is_case_insensitive_on_email(self):
        resp = self.signin(identifier="JDoe@Example.com")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    def test_login_with_phone_returns_tokens(self):
        self.user.phone = "+919876543210"
        self.user.save(update_fields=["phone"])
        resp = self.signin(identifier="+919876543210")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    def test_wrong_password_is_unauthorized_envelope(self):
        resp = self.signin(password="nope")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
        body = resp.json()
        self.assertEqual(body, {"success": False, "statusCode": 401, "message": "Invalid credentials.", "errors": []})

    @override_settings(LOGIN_MAX_ATTEMPTS=3, LOGIN_LOCK_MINUTES=60)
    def test_repeated_failures_lock_the_account(self):
        for _ in range(3):
            self.assertEqual(self.signin(password="wrong").status_code, status.HTTP_401_UNAUTHORIZED)

        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.locked_until)
        self.assertGreater(self.user.locked_until, timezone.now() + timedelta(minutes=59))

        resp = self.signin()
        self.assertEqual(resp.status_code, status.HTTP_423_LOCKED)

    def test_successful_login_resets_failure_counter(self):
        self.signin(password="wrong")
        self.signin(password="wrong")
        self.assertEqual(self.signin().status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.failed_login_attempts, 0)
        self.assertIsNotNone(self.user.last_login)

    def test_expired_lock_allows_login(self):
        self.user.locked_until = timezone.now() - timedelta(minutes=1)
        self.user.save(update_fields=["locked_until"])
        self.assertEqual(self.signin().status_code, status.HTTP_200_OK)

    @override_settings(REQUIRE_VERIFIED_EMAIL=True)
    def test_unverified_email_is_refused_when_required(self):
        resp = self.signin()
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_profile_requires_auth(self):
        resp = self.client.get("/api/v1/account/profile/")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(resp.json()["success"])

    def test_profile_with_access_token(self):
        access = self.signin().json()["data"]["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        resp = self.client.get("/api/v1/account/profile/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()["data"]["email"], self.user.email)

    def test_profile_update_ignores_non_allow_listed_fields(self):
        self.client.force_authenticate(self.user)
        resp = self.client.patch(
            "/api/v1/account/profile/",
            {"first_name": "Jane", "is_staff": True, "email": "other@example.com"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, "Jane")
        self.assertFalse(self.user.is_staff)
        self.assertEqual(self.user.email, "jdoe@example.com")

    def test_logout_blacklists_refresh(self):
        refresh = self.signin().json()["data"]["refresh"]
        resp = self.client.post("/api/v1/auth/signout/", {"refresh": refresh}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        resp2 = self.client.post("/api/v1/auth/refresh/", {"refresh": refresh}, format="json")
        self.assertEqual(resp2.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_returns_new_access(self):
        refresh = self.signin().json()["data"]["refresh"]
        resp = self.client.post("/api/v1/auth/refresh/", {"refresh": refresh}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn("access", resp.json()["data"])

    def test_change_password(self):
        self.client.force_authenticate(self.user)
        bad = self.client.post(
            "/api/v1/account/change-password/",
            {"current_password": "wrong", "new_password": "EvenStronger456!"},
            format="json",
        )
        self.assertEqual(bad.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(bad.json()["errors"][0]["field"], "current_password")

        ok = self.client.post(
            "/api/v1/account/change-password/",
            {"current_password": self.password, "new_password": "EvenStronger456!"},
            format="json",
        )
        self.assertEqual(ok.status_code, status.HTTP_200_OK)
        self.client.force_authenticate(None)
        self.assertEqual(self.signin(password="EvenStronger456!").status_code, status.HTTP_200_OK)
