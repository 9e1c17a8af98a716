# Overview: Line, transaction-level and manual discount arithmetic (pure functions).

"""
Discount Engine

Line discount = offer portion + customer portion, never more than the line
subtotal. Offer amounts are per unit and come from the offer resolver;
customer discounts are a percentage of the line subtotal rounded to the
currency's precision.

When a non-combinable offer meets a customer discount on the same line the
NON_COMBINABLE_OFFER_POLICY setting decides:
- "offer": the offer suppresses the customer discount
- "best":  the larger of the two applies, the other is dropped
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .offer_resolution import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, OfferApplication
from ..exceptions import ValidationError
from posengine.money import ZERO, floor_zero, parse_money, percent_of, quantize, to_decimal

POLICY_OFFER = "offer"
POLICY_BEST = "best"
VALID_POLICIES = {POLICY_OFFER, POLICY_BEST}

MANUAL_PERCENTAGE = "percentage"
MANUAL_FIXED = "fixed"
VALID_MANUAL_TYPES = {MANUAL_PERCENTAGE, MANUAL_FIXED}


@dataclass(frozen=True)
class LineDiscount:
    line_subtotal: Decimal
    offer_discount: Decimal
    customer_discount: Decimal

    @property
    def line_discount(self) -> Decimal:
        return self.offer_discount + self.customer_discount

    @property
    def line_total(self) -> Decimal:
        return floor_zero(self.line_subtotal - self.line_discount)


def offer_unit_discount(unit_price, offer: OfferApplication | None) -> Decimal:
    """Per-unit discount an offer grants on a line priced at unit_price."""
    if offer is None:
        return ZERO
    unit_price = to_decimal(unit_price)
    amount = to_decimal(offer.discount_amount)
    if amount <= ZERO:
        return ZERO
    if offer.discount_type == DISCOUNT_PERCENTAGE:
        discount = quantize(percent_of(unit_price, amount))
    else:
        discount = quantize(amount)
    if offer.max_discount is not None:
        discount = min(discount, to_decimal(offer.max_discount))
    return min(discount, unit_price)


def compute_line_discount(
    item,
    customer_discount_percentage,
    *,
    decimal_places: int = 2,
    policy: str = POLICY_OFFER,
) -> LineDiscount:
    """
    Effective discounts for one line.

    item needs unit_price, quantity, offer_discount_amount (per unit) and
    offer_is_combinable; both model rows and plain snapshots qualify.
    """
    if policy not in VALID_POLICIES:
        raise ValueError(f"Unknown non-combinable offer policy: {policy}")

    quantity = int(item.quantity)
    line_subtotal = quantize(to_decimal(item.unit_price) * quantity)

    offer = quantize(to_decimal(item.offer_discount_amount) * quantity)

    customer = ZERO
    pct = to_decimal(customer_discount_percentage)
    if pct > ZERO:
        customer = quantize(percent_of(line_subtotal, pct), decimal_places)

    if offer > ZERO and customer > ZERO and not item.offer_is_combinable:
        if policy == POLICY_OFFER or offer >= customer:
            customer = ZERO
        else:
            offer = ZERO

    # Cap at the subtotal, trimming the customer portion first
    offer = min(offer, line_subtotal)
    customer = min(customer, line_subtotal - offer)

    return LineDiscount(line_subtotal=line_subtotal, offer_discount=offer, customer_discount=customer)


def transaction_offer_discount(base, offer: OfferApplication | None) -> Decimal:
    """Discount from a bundle or minimum-spend offer on the after-line-discount total."""
    base = floor_zero(base)
    if offer is None or base <= ZERO:
        return ZERO
    amount = to_decimal(offer.discount_amount)
    if offer.discount_type == DISCOUNT_PERCENTAGE:
        discount = quantize(percent_of(base, amount))
    elif offer.discount_type == DISCOUNT_FIXED:
        discount = quantize(amount)
    else:
        return ZERO
    if offer.max_discount is not None:
        discount = min(discount, to_decimal(offer.max_discount))
    return min(floor_zero(discount), base)


def validate_manual_discount(discount_type: str, value) -> Decimal:
    if discount_type not in VALID_MANUAL_TYPES:
        raise ValidationError(
            f"Invalid manual discount type: {discount_type}. Must be one of {sorted(VALID_MANUAL_TYPES)}"
        )
    value = parse_money(value, "value")
    if value < ZERO:
        raise ValidationError("Manual discount value cannot be negative")
    if discount_type == MANUAL_PERCENTAGE and value > Decimal("100"):
        raise ValidationError("Manual discount percentage cannot exceed 100")
    return value


def manual_discount_amount(base, discount_type: str | None, value) -> Decimal:
    """Manual discount on what is left after line and offer discounts, clamped to it."""
    base = floor_zero(base)
    if not discount_type or value is None:
        return ZERO
    if discount_type == MANUAL_PERCENTAGE:
        discount = quantize(percent_of(base, value))
    else:
        discount = quantize(value)
    return min(floor_zero(discount), base)
