from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone
from rest_framework.test import APIClient

from cart.models import Cart, CartItem
from cart.services import clear_cart_for_user, purge_expired_carts
from cart.tests.factories import CartFactory, CartItemFactory
from catalog.tests.factories import ProductFactory
from users.tests.factories import UserFactory

pytestmark = pytest.mark.django_db

CART_URL = "/api/v1/cart/"
ITEMS_URL = "/api/v1/cart/items/"


@pytest.fixture
def user():
    return UserFactory()


@pytest.fixture
def client(user):
    client = APIClient()
    client.force_authenticate(user)
    return client


def test_get_creates_empty_cart(client, user):
    resp = client.get(CART_URL)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["items"] == []
    assert data["item_count"] == 0
    assert data["total_amount"] == "0.00"
    assert Cart.objects.filter(user=user).count() == 1


def test_add_item_returns_cart_with_totals(client):
    product = ProductFactory()
    resp = client.post(ITEMS_URL, {"product_id": product.id, "quantity": 2}, format="json")

    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Item added to cart"
    data = body["data"]
    assert data["item_count"] == 2
    assert data["total_amount"] == "2000.00"
    assert data["items"][0]["unit_price"] == "1000.00"
    assert data["items"][0]["line_total"] == "2000.00"


def test_adding_same_product_merges_lines(client, user):
    product = ProductFactory()
    client.post(ITEMS_URL, {"product_id": product.id, "quantity": 1}, format="json")
    client.post(ITEMS_URL, {"product_id": product.id, "quantity": 3}, format="json")

    items = CartItem.objects.filter(cart__user=user)
    assert items.count() == 1
    assert items.get().quantity == 4


def test_add_beyond_stock_conflicts(client, user):
    product = ProductFactory(stock_quantity=3)
    client.post(ITEMS_URL, {"product_id": product.id, "quantity": 2}, format="json")
    resp = client.post(ITEMS_URL, {"product_id": product.id, "quantity": 2}, format="json")

    assert resp.status_code == 409
    assert resp.json()["message"] == f"Insufficient stock for {product.name}. Available: 3"
    assert CartItem.objects.get(cart__user=user).quantity == 2


def test_add_inactive_product_is_404(client):
    product = ProductFactory(is_active=False)
    resp = client.post(ITEMS_URL, {"product_id": product.id}, format="json")
    assert resp.status_code == 404


def test_add_zero_quantity_is_rejected(client):
    product = ProductFactory()
    resp = client.post(ITEMS_URL, {"product_id": product.id, "quantity": 0}, format="json")
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "quantity"


def test_add_refreshes_price_snapshot(client, user):
    product = ProductFactory()
    client.post(ITEMS_URL, {"product_id": product.id}, format="json")
    product.selling_price = Decimal("900.00")
    product.save(update_fields=["selling_price"])
    client.post(ITEMS_URL, {"product_id": product.id}, format="json")
    assert str(CartItem.objects.get(cart__user=user).unit_price) == "900.00"


def test_update_quantity(client, user):
    item = CartItemFactory(cart__user=user)
    resp = client.patch(f"{ITEMS_URL}{item.id}/", {"quantity": 5}, format="json")
    assert resp.status_code == 200
    assert resp.json()["data"]["item_count"] == 5


def test_update_beyond_stock_conflicts(client, user):
    item = CartItemFactory(cart__user=user, product=ProductFactory(stock_quantity=2))
    resp = client.patch(f"{ITEMS_URL}{item.id}/", {"quantity": 3}, format="json")
    assert resp.status_code == 409


def test_update_inactive_product_conflicts(client, user):
    item = CartItemFactory(cart__user=user, product=ProductFactory(is_active=False))
    resp = client.patch(f"{ITEMS_URL}{item.id}/", {"quantity": 1}, format="json")
    assert resp.status_code == 409


def test_cannot_touch_another_users_item(client):
    item = CartItemFactory()
    assert client.patch(f"{ITEMS_URL}{item.id}/", {"quantity": 2}, format="json").status_code == 404
    assert client.delete(f"{ITEMS_URL}{item.id}/").status_code == 404
    assert CartItem.objects.filter(pk=item.pk).exists()


def test_remove_item(client, user):
    item = CartItemFactory(cart__user=user)
    resp = client.delete(f"{ITEMS_URL}{item.id}/")
    assert resp.status_code == 200
    assert resp.json()["data"]["items"] == []


def test_clear_cart(client, user):
    cart = CartFactory(user=user)
    CartItemFactory.create_batch(2, cart=cart)
    resp = client.delete(f"{CART_URL}clear/")
    assert resp.status_code == 200
    assert resp.json()["data"]["item_count"] == 0
    assert not CartItem.objects.filter(cart=cart).exists()


def test_mutation_extends_expiry(client, user):
    cart = CartFactory(user=user, expires_at=timezone.now() + timedelta(hours=1))
    client.post(ITEMS_URL, {"product_id": ProductFactory().id}, format="json")
    cart.refresh_from_db()
    assert cart.expires_at > timezone.now() + timedelta(days=29)


def test_requires_authentication():
    assert APIClient().get(CART_URL).status_code == 401


def test_clear_cart_for_user_returns_removed_lines(user):
    cart = CartFactory(user=user)
    CartItemFactory.create_batch(3, cart=cart)
    assert clear_cart_for_user(user.id) == 3
    assert Cart.objects.filter(pk=cart.pk).exists()


def test_purge_expired_carts():
    expired = CartFactory(expires_at=timezone.now() - timedelta(days=1))
    CartItemFactory(cart=expired)
    live = CartFactory()

    assert purge_expired_carts() == 1
    assert not Cart.objects.filter(pk=expired.pk).exists()
    assert Cart.objects.filter(pk=live.pk).exists()


def test_purge_command_reports_count():
    CartFactory(expires_at=timezone.now() - timedelta(days=1))
    out = StringIO()
    call_command("purge_expired_carts", stdout=out)
    assert "Purged 1 expired cart(s)." in out.getvalue()
