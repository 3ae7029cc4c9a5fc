from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from rest_framework import status
from rest_framework.test import APITestCase


class PasswordResetTests(APITestCase):
    def setUp(self):
        self.User = get_user_model()
        self.user = self.User.objects.create_user(
            username="resetme@example.com",
            email="resetme@example.com",
            password="OldPass123!",
        )

    def test_request_does_not_reveal_account_existence(self):
        known = self.client.post("/api/v1/account/password-reset/", {"email": self.user.email}, format="json")
        unknown = self.client.post("/api/v1/account/password-reset/", {"email": "ghost@example.com"}, format="json")
        self.assertEqual(known.status_code, status.HTTP_200_OK)
        self.assertEqual(known.json(), unknown.json())
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("/reset-password?uid=", mail.outbox[0].body)

    def test_confirm_sets_new_password(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        token = default_token_generator.make_token(self.user)
        confirm = self.client.post(
            "/api/v1/account/password-reset/confirm/",
            {"uid": uid, "token": token, "new_password": "NewPass123!"},
            format="json",
        )
        self.assertEqual(confirm.status_code, status.HTTP_200_OK)

        signin = self.client.post(
            "/api/v1/auth/signin/",
            {"identifier": self.user.email, "password": "NewPass123!"},
            format="json",
        )
        self.assertEqual(signin.status_code, status.HTTP_200_OK)

    def test_confirm_rejects_bad_token(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        resp = self.client.post(
            "/api/v1/account/password-reset/confirm/",
            {"uid": uid, "token": "bad-token", "new_password": "NewPass123!"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["message"], "Invalid or expired token.")

    def test_confirm_rejects_weak_password(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        token = default_token_generator.make_token(self.user)
        resp = self.client.post(
            "/api/v1/account/password-reset/confirm/",
            {"uid": uid, "token": token, "new_password": "123"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.json()["errors"][0]["field"], "new_password")
