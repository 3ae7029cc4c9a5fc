from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from catalog.models import Category, Product, ProductImage
from catalog.services import delete_review, recompute_product_rating, unique_slug
from catalog.tests.factories import CategoryFactory, ProductFactory, ProductImageFactory, ReviewFactory
from users.tests.factories import AdminUserFactory, UserFactory

pytestmark = pytest.mark.django_db

ADMIN_URL = "/api/v1/admin/catalog/"


@pytest.fixture
def admin_client():
    client = APIClient()
    client.force_authenticate(AdminUserFactory())
    return client


def _product_payload(category, **overrides):
    payload = {
        "name": "Peacock Pendant",
        "description": "Hand-finished 92.5 silver pendant",
        "category": category.id,
        "weight": "8.500",
        "making_charges": "150.00",
        "base_price": "2500.00",
        "selling_price": "2100.00",
        "stock_quantity": 4,
        "tags": ["pendant"],
    }
    payload.update(overrides)
    return payload


def test_create_product_derives_slug_and_stock_flag(admin_client):
    category = CategoryFactory()
    payload = _product_payload(category, images=[{"url": "https://cdn.example.com/p.jpg", "is_primary": True}])

    resp = admin_client.post(f"{ADMIN_URL}products/", payload, format="json")

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["slug"] == "peacock-pendant"
    assert data["is_in_stock"] is True
    assert ProductImage.objects.filter(product_id=data["id"], is_primary=True).count() == 1


def test_duplicate_names_get_unique_slugs(admin_client):
    category = CategoryFactory()
    admin_client.post(f"{ADMIN_URL}products/", _product_payload(category), format="json")
    resp = admin_client.post(f"{ADMIN_URL}products/", _product_payload(category), format="json")
    assert resp.json()["data"]["slug"] == "peacock-pendant-2"


def test_selling_price_above_base_is_rejected(admin_client):
    category = CategoryFactory()
    resp = admin_client.post(
        f"{ADMIN_URL}products/", _product_payload(category, selling_price="3000.00"), format="json"
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "selling_price"


def test_computed_fields_cannot_be_assigned(admin_client):
    product = ProductFactory()
    resp = admin_client.patch(
        f"{ADMIN_URL}products/{product.id}/",
        {"rating_average": "5.0", "views": 999, "is_in_stock": False},
        format="json",
    )
    assert resp.status_code == 200
    product.refresh_from_db()
    assert product.views == 0
    assert product.rating_average == Decimal("0")
    assert product.is_in_stock is True


def test_zero_stock_update_flips_in_stock(admin_client):
    product = ProductFactory()
    admin_client.patch(f"{ADMIN_URL}products/{product.id}/", {"stock_quantity": 0}, format="json")
    product.refresh_from_db()
    assert product.is_in_stock is False


def test_delete_product_deactivates(admin_client):
    product = ProductFactory()
    resp = admin_client.delete(f"{ADMIN_URL}products/{product.id}/")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Product deleted successfully"
    assert Product.objects.get(pk=product.pk).is_active is False


def test_delete_category_with_products_conflicts(admin_client):
    category = CategoryFactory()
    ProductFactory(category=category)
    resp = admin_client.delete(f"{ADMIN_URL}categories/{category.id}/")
    assert resp.status_code == 409
    assert Category.objects.filter(pk=category.pk).exists()


def test_delete_empty_category(admin_client):
    category = CategoryFactory()
    resp = admin_client.delete(f"{ADMIN_URL}categories/{category.id}/")
    assert resp.status_code == 204
    assert not Category.objects.filter(pk=category.pk).exists()


def test_create_category_derives_slug(admin_client):
    resp = admin_client.post(f"{ADMIN_URL}categories/", {"name": "Toe Rings"}, format="json")
    assert resp.status_code == 201
    assert resp.json()["data"]["slug"] == "toe-rings"


def test_only_one_primary_image(admin_client):
    product = ProductFactory()
    first = ProductImageFactory(product=product, is_primary=True)
    resp = admin_client.post(
        f"{ADMIN_URL}images/",
        {"product": product.id, "url": "https://cdn.example.com/b.jpg", "is_primary": True},
        format="json",
    )
    assert resp.status_code == 201
    first.refresh_from_db()
    assert first.is_primary is False


def test_non_staff_is_forbidden():
    client = APIClient()
    client.force_authenticate(UserFactory())
    assert client.get(f"{ADMIN_URL}products/").status_code == 403


def test_unique_slug_suffixes():
    CategoryFactory(name="Rings", slug="rings")
    assert unique_slug(Category, "Rings") == "rings-2"


def test_deleting_review_recomputes_rating():
    product = ProductFactory()
    ReviewFactory(product=product, rating=4)
    review = ReviewFactory(product=product, rating=1)
    recompute_product_rating(product.id)

    delete_review(review)

    product.refresh_from_db()
    assert product.rating_count == 1
    assert product.rating_average == Decimal("4.0")
