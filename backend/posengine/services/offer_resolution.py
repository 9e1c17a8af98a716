# Overview: Contract for the external offer resolution collaborator.

"""
Offer Resolution

Offers are authored and evaluated outside the transaction engine. The engine
hands the resolver a description of the cart and applies whatever comes back;
it never reads offer tables itself.

SCOPES:
- line:           per-unit discount on one product (product_id set)
- bundle:         transaction-level discount for a satisfied bundle
- minimum_spend:  transaction-level discount once the cart passes a threshold

Resolvers must be pure: no writes, no side effects. Install one with
register_offer_resolver(app, resolver); without one, no offers apply.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

SCOPE_LINE = "line"
SCOPE_BUNDLE = "bundle"
SCOPE_MINIMUM_SPEND = "minimum_spend"
VALID_SCOPES = {SCOPE_LINE, SCOPE_BUNDLE, SCOPE_MINIMUM_SPEND}

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
VALID_DISCOUNT_TYPES = {DISCOUNT_PERCENTAGE, DISCOUNT_FIXED}

EXTENSION_KEY = "posengine.offer_resolver"


@dataclass(frozen=True)
class CartLine:
    """What the resolver sees of one active line."""
    product_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class OfferApplication:
    scope: str
    offer_id: int | None
    offer_name: str | None
    discount_type: str
    discount_amount: Decimal
    is_combinable: bool = False
    product_id: int | None = None
    max_discount: Decimal | None = None

    def __post_init__(self):
        if self.scope not in VALID_SCOPES:
            raise ValueError(f"Invalid offer scope: {self.scope}")
        if self.discount_type not in VALID_DISCOUNT_TYPES:
            raise ValueError(f"Invalid offer discount type: {self.discount_type}")
        if self.scope == SCOPE_LINE and self.product_id is None:
            raise ValueError("Line offers must reference a product_id")


class OfferResolver:
    """Base resolver: applies no offers."""

    def resolve_applicable_offers(
        self,
        lines: list[CartLine],
        *,
        store_id: int,
        currency_id: int,
        customer_id: int | None,
    ) -> list[OfferApplication]:
        return []


def register_offer_resolver(app, resolver: OfferResolver) -> None:
    app.extensions[EXTENSION_KEY] = resolver


def get_offer_resolver() -> OfferResolver:
    resolver = current_app.extensions.get(EXTENSION_KEY)
    if resolver is None:
        resolver = OfferResolver()
        current_app.extensions[EXTENSION_KEY] = resolver
    return resolver


def resolve_offers(transaction) -> tuple[dict[int, OfferApplication], OfferApplication | None, OfferApplication | None]:
    """
    Ask the installed resolver about the transaction's active lines.

    Returns (best line offer per product, bundle offer, minimum-spend offer).
    When several offers target the same slot the first one returned wins; the
    resolver is expected to order by priority.
    """
    lines = [
        CartLine(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
        )
        for item in transaction.active_items
    ]
    if not lines:
        return {}, None, None

    applications = get_offer_resolver().resolve_applicable_offers(
        lines,
        store_id=transaction.store_id,
        currency_id=transaction.currency_id,
        customer_id=transaction.customer_id,
    )

    line_offers: dict[int, OfferApplication] = {}
    bundle = None
    minimum_spend = None
    for application in applications:
        if application.scope == SCOPE_LINE:
            line_offers.setdefault(application.product_id, application)
        elif application.scope == SCOPE_BUNDLE and bundle is None:
            bundle = application
        elif application.scope == SCOPE_MINIMUM_SPEND and minimum_spend is None:
            minimum_spend = application
    return line_offers, bundle, minimum_spend
