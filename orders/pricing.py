"""Order pricing.

Pure functions over ``Decimal``: no database access, so checkout and tests
can call them directly. Every component is rounded half-up to two places and
the total is the sum of the rounded components, so the stored pricing block
always adds up.
"""

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

GST_RATE = Decimal("0.03")
CENTS = Decimal("0.01")

# (max total weight, charge); weights above the last bound use SHIPPING_OVER_MAX
SHIPPING_TIERS = (
    (Decimal("50"), Decimal("100")),
    (Decimal("100"), Decimal("150")),
)
SHIPPING_OVER_MAX = Decimal("200")


def quantize(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingLine:
    unit_price: Decimal
    making_charges: Decimal
    weight: Decimal
    quantity: int


@dataclass(frozen=True)
class Pricing:
    subtotal: Decimal
    making_charges: Decimal
    gst: Decimal
    shipping_charges: Decimal
    discount: Decimal
    total: Decimal

    @property
    def pre_discount_total(self) -> Decimal:
        return self.subtotal + self.making_charges + self.gst + self.shipping_charges

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "making_charges": self.making_charges,
            "gst": self.gst,
            "shipping_charges": self.shipping_charges,
            "discount": self.discount,
            "total": self.total,
        }


def shipping_for_weight(weight: Decimal) -> Decimal:
    for bound, charge in SHIPPING_TIERS:
        if weight <= bound:
            return charge
    return SHIPPING_OVER_MAX


def compute_pricing(lines: Iterable[PricingLine]) -> Pricing:
    subtotal = Decimal("0")
    making = Decimal("0")
    weight = Decimal("0")
    for line in lines:
        qty = Decimal(int(line.quantity))
        subtotal += Decimal(line.unit_price) * qty
        making += Decimal(line.making_charges) * qty
        weight += Decimal(line.weight) * qty

    subtotal = quantize(subtotal)
    making = quantize(making)
    gst = quantize((subtotal + making) * GST_RATE)
    shipping = quantize(shipping_for_weight(weight))
    return Pricing(
        subtotal=subtotal,
        making_charges=making,
        gst=gst,
        shipping_charges=shipping,
        discount=Decimal("0.00"),
        total=subtotal + making + gst + shipping,
    )


def apply_discount(pricing: Pricing, discount: Decimal) -> Pricing:
    """Return a copy with ``discount`` applied; never drives the total below zero."""
    discount = min(quantize(discount), pricing.pre_discount_total)
    return replace(pricing, discount=discount, total=pricing.pre_discount_total - discount)
