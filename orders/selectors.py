"""Selectors for read-only order queries."""

from django.db.models import Q, QuerySet
from rest_framework.exceptions import NotFound

from .models import Order


def _with_relations(qs: QuerySet) -> QuerySet:
    return qs.select_related("user").prefetch_related("items", "status_history")


def list_orders_for_user(*, user, status=None, number=None, start=None, end=None) -> QuerySet:
    """List a user's own orders, newest first.

    ``start`` and ``end`` are ISO date/time strings bounding ``created_at``.
    """
    qs = Order.objects.filter(user_id=user.id)
    if status:
        qs = qs.filter(status=status)
    if number:
        qs = qs.filter(number=number)
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end)
    return _with_relations(qs.order_by("-created_at", "-id"))


def list_all_orders(*, status=None, search=None) -> QuerySet:
    qs = Order.objects.all()
    if status:
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(Q(number__icontains=search) | Q(shipping_address__name__icontains=search))
    return _with_relations(qs.order_by("-created_at", "-id"))


def get_order_for_user(*, user, order_id) -> Order:
    """Return the order if ``user`` owns it or is staff; 404 otherwise."""
    qs = Order.objects.all() if user.is_staff else Order.objects.filter(user_id=user.id)
    order = _with_relations(qs).filter(pk=order_id).first()
    if order is None:
        raise NotFound("Order not found")
    return order
