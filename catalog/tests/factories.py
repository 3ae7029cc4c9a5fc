from decimal import Decimal

import factory
from factory import Faker
from factory.django import DjangoModelFactory

from catalog.models import Category, Product, ProductImage, Review


class CategoryFactory(DjangoModelFactory):
    class Meta:
        model = Category

    name = factory.Sequence(lambda n: f"Category {n}")
    slug = factory.LazyAttribute(lambda o: o.name.lower().replace(" ", "-"))
    description = Faker("sentence")
    is_active = True
    display_order = 0


class ProductFactory(DjangoModelFactory):
    class Meta:
        model = Product

    name = factory.Sequence(lambda n: f"Silver Piece {n}")
    slug = factory.LazyAttribute(lambda o: o.name.lower().replace(" ", "-"))
    description = Faker("paragraph")
    category = factory.SubFactory(CategoryFactory)
    weight = Decimal("10.000")
    making_charges = Decimal("50.00")
    base_price = Decimal("1200.00")
    selling_price = Decimal("1000.00")
    stock_quantity = 10
    is_in_stock = factory.LazyAttribute(lambda o: o.stock_quantity > 0)
    is_active = True


class ProductImageFactory(DjangoModelFactory):
    class Meta:
        model = ProductImage

    product = factory.SubFactory(ProductFactory)
    url = Faker("image_url")
    alt_text = Faker("sentence")
    is_primary = False
    sort_order = 0


class ReviewFactory(DjangoModelFactory):
    class Meta:
        model = Review

    product = factory.SubFactory(ProductFactory)
    user = factory.SubFactory("users.tests.factories.UserFactory")
    rating = 5
    title = Faker("sentence", nb_words=3)
    comment = Faker("paragraph")
    is_approved = True
