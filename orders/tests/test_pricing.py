from decimal import Decimal

import pytest

from orders.pricing import PricingLine, apply_discount, compute_pricing, shipping_for_weight


def _line(price="1000", making="50", weight="10", qty=2):
    return PricingLine(
        unit_price=Decimal(price),
        making_charges=Decimal(making),
        weight=Decimal(weight),
        quantity=qty,
    )


def test_worked_example():
    pricing = compute_pricing([_line()])
    assert pricing.subtotal == Decimal("2000.00")
    assert pricing.making_charges == Decimal("100.00")
    assert pricing.gst == Decimal("63.00")
    assert pricing.shipping_charges == Decimal("100.00")
    assert pricing.discount == Decimal("0.00")
    assert pricing.total == Decimal("2263.00")


@pytest.mark.parametrize(
    "weight,expected",
    [("0", "100"), ("50", "100"), ("50.001", "150"), ("100", "150"), ("100.5", "200")],
)
def test_shipping_tiers(weight, expected):
    assert shipping_for_weight(Decimal(weight)) == Decimal(expected)


def test_total_weight_spans_lines_and_quantities():
    pricing = compute_pricing([_line(weight="20", qty=2), _line(weight="15", qty=1)])
    # 55 total weight
    assert pricing.shipping_charges == Decimal("150.00")


def test_gst_rounds_half_up():
    # (10.05 + 0) * 3% = 0.3015 -> 0.30 ; (16.50) * 3% = 0.495 -> 0.50
    assert compute_pricing([_line(price="10.05", making="0", qty=1)]).gst == Decimal("0.30")
    assert compute_pricing([_line(price="16.50", making="0", qty=1)]).gst == Decimal("0.50")


def test_total_is_sum_of_rounded_components():
    pricing = compute_pricing([_line(price="333.33", making="11.11", weight="1", qty=3)])
    assert pricing.total == pricing.subtotal + pricing.making_charges + pricing.gst + pricing.shipping_charges


def test_apply_discount_reduces_total():
    pricing = apply_discount(compute_pricing([_line()]), Decimal("226.30"))
    assert pricing.discount == Decimal("226.30")
    assert pricing.total == Decimal("2036.70")


def test_apply_discount_never_goes_below_zero():
    pricing = apply_discount(compute_pricing([_line()]), Decimal("99999"))
    assert pricing.discount == Decimal("2263.00")
    assert pricing.total == Decimal("0.00")
