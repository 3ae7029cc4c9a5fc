from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from catalog.tests.factories import CategoryFactory, ProductFactory, ProductImageFactory, ReviewFactory
from common.choices import OrderStatus
from orders.tests.factories import OrderFactory, OrderItemFactory
from users.tests.factories import UserFactory

pytestmark = pytest.mark.django_db

PRODUCTS_URL = "/api/v1/catalog/products/"


@pytest.fixture
def client():
    return APIClient()


def test_list_hides_inactive_products(client):
    active = ProductFactory()
    ProductFactory(is_active=False)

    resp = client.get(PRODUCTS_URL)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [p["id"] for p in data["results"]] == [active.id]
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}


def test_limit_param_controls_page_size(client):
    ProductFactory.create_batch(3)
    data = client.get(PRODUCTS_URL, {"limit": 2, "page": 2}).json()["data"]
    assert len(data["results"]) == 1
    assert data["pagination"]["pages"] == 2


def test_filter_by_category_slug_and_price(client):
    rings = CategoryFactory(name="Rings")
    cheap = ProductFactory(category=rings, selling_price=Decimal("500"), base_price=Decimal("600"))
    ProductFactory(category=rings, selling_price=Decimal("5000"), base_price=Decimal("6000"))
    ProductFactory(selling_price=Decimal("500"), base_price=Decimal("600"))

    resp = client.get(PRODUCTS_URL, {"category": "rings", "max_price": "1000"})

    assert [p["id"] for p in resp.json()["data"]["results"]] == [cheap.id]


def test_ordering_by_price(client):
    low = ProductFactory(selling_price=Decimal("100"), base_price=Decimal("100"))
    high = ProductFactory(selling_price=Decimal("900"), base_price=Decimal("900"))
    ids = [p["id"] for p in client.get(PRODUCTS_URL, {"ordering": "-selling_price"}).json()["data"]["results"]]
    assert ids == [high.id, low.id]


def test_search_matches_name_and_tags(client):
    anklet = ProductFactory(name="Payal Anklet")
    tagged = ProductFactory(tags=["bridal", "anklet"])
    ProductFactory(name="Plain Ring")

    resp = client.get(f"{PRODUCTS_URL}search/", {"q": "anklet"})

    ids = {p["id"] for p in resp.json()["data"]["results"]}
    assert ids == {anklet.id, tagged.id}


def test_search_requires_query(client):
    resp = client.get(f"{PRODUCTS_URL}search/")
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "q"


def test_detail_increments_views(client):
    product = ProductFactory()
    ProductImageFactory(product=product, is_primary=True)

    resp = client.get(f"{PRODUCTS_URL}{product.id}/")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["views"] == 1
    assert data["primary_image"]["is_primary"] is True
    assert len(data["images"]) == 1
    product.refresh_from_db()
    assert product.views == 1


def test_detail_by_slug(client):
    product = ProductFactory(name="Silver Chain")
    resp = client.get(f"{PRODUCTS_URL}slug/{product.slug}/")
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == product.id


def test_inactive_product_detail_is_404(client):
    product = ProductFactory(is_active=False)
    assert client.get(f"{PRODUCTS_URL}{product.id}/").status_code == 404
    assert client.get(f"{PRODUCTS_URL}slug/{product.slug}/").status_code == 404


def test_featured_lists_only_featured(client):
    featured = ProductFactory(is_featured=True)
    ProductFactory()
    resp = client.get(f"{PRODUCTS_URL}featured/")
    assert [p["id"] for p in resp.json()["data"]] == [featured.id]


def test_categories_list_active_in_display_order(client):
    second = CategoryFactory(name="Bangles", display_order=2)
    first = CategoryFactory(name="Anklets", display_order=1)
    CategoryFactory(name="Hidden", is_active=False)

    resp = client.get("/api/v1/catalog/categories/")

    assert [c["id"] for c in resp.json()["data"]] == [first.id, second.id]


def test_category_products(client):
    category = CategoryFactory()
    product = ProductFactory(category=category)
    ProductFactory()
    resp = client.get(f"/api/v1/catalog/categories/{category.id}/products/")
    assert [p["id"] for p in resp.json()["data"]["results"]] == [product.id]


class TestReviews:
    def test_review_is_pending_until_approved(self):
        product = ProductFactory()
        user = UserFactory()
        client = APIClient()
        client.force_authenticate(user)

        resp = client.post(f"{PRODUCTS_URL}{product.id}/reviews/", {"rating": 4, "comment": "Lovely"}, format="json")

        assert resp.status_code == 201
        assert resp.json()["data"]["is_approved"] is False
        assert resp.json()["data"]["is_verified_purchase"] is False
        listed = APIClient().get(f"{PRODUCTS_URL}{product.id}/reviews/").json()["data"]
        assert listed["results"] == []

    def test_delivered_order_marks_verified_purchase(self):
        product = ProductFactory()
        order = OrderFactory(status=OrderStatus.DELIVERED)
        OrderItemFactory(order=order, product=product)
        client = APIClient()
        client.force_authenticate(order.user)

        resp = client.post(f"{PRODUCTS_URL}{product.id}/reviews/", {"rating": 5, "comment": "Great"}, format="json")

        assert resp.json()["data"]["is_verified_purchase"] is True

    def test_second_review_conflicts(self):
        review = ReviewFactory()
        client = APIClient()
        client.force_authenticate(review.user)
        resp = client.post(
            f"{PRODUCTS_URL}{review.product_id}/reviews/", {"rating": 3, "comment": "Again"}, format="json"
        )
        assert resp.status_code == 409

    def test_rating_out_of_range_is_rejected(self):
        product = ProductFactory()
        client = APIClient()
        client.force_authenticate(UserFactory())
        resp = client.post(f"{PRODUCTS_URL}{product.id}/reviews/", {"rating": 6, "comment": "x"}, format="json")
        assert resp.status_code == 400

    def test_anonymous_cannot_review(self):
        product = ProductFactory()
        resp = APIClient().post(f"{PRODUCTS_URL}{product.id}/reviews/", {"rating": 5, "comment": "x"}, format="json")
        assert resp.status_code in (401, 403)

    def test_approval_recomputes_rating(self):
        product = ProductFactory()
        ReviewFactory(product=product, rating=5, is_approved=True)
        pending = ReviewFactory(product=product, rating=2, is_approved=False)
        admin = UserFactory(is_staff=True)
        client = APIClient()
        client.force_authenticate(admin)

        resp = client.post(f"/api/v1/admin/catalog/reviews/{pending.id}/approve/")

        assert resp.status_code == 200
        product.refresh_from_db()
        assert product.rating_count == 2
        assert product.rating_average == Decimal("3.5")
