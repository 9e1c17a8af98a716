# Overview: Resolves the unit and cost price of a product for a store and currency.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..exceptions import NotFoundError, PriceNotFoundError
from ..models import Product, ProductPrice, ProductStore, ProductStorePrice
from posengine.money import to_decimal

SOURCE_STORE = "store"
SOURCE_BASE = "base"


@dataclass(frozen=True)
class PriceQuote:
    unit_price: Decimal
    cost_price: Decimal | None
    source: str


def _store_price(uow, product_id: int, store_id: int, currency_id: int) -> ProductStorePrice | None:
    return (
        uow.query(ProductStorePrice)
        .join(ProductStore, ProductStore.id == ProductStorePrice.product_store_id)
        .filter(
            ProductStore.product_id == product_id,
            ProductStore.store_id == store_id,
            ProductStore.is_active.is_(True),
            ProductStorePrice.currency_id == currency_id,
            ProductStorePrice.is_active.is_(True),
        )
        .first()
    )


def _base_price(uow, product_id: int, currency_id: int) -> ProductPrice | None:
    return uow.query(ProductPrice).filter_by(product_id=product_id, currency_id=currency_id).first()


def resolve_price(uow, product_id: int, store_id: int, currency_id: int) -> PriceQuote:
    """
    Resolve the price of a product at a store in a currency.

    Precedence: active store override -> base catalog price. The cost price
    falls back independently, so a store may override only the selling price.

    Raises:
        NotFoundError: product does not exist
        PriceNotFoundError: neither an override nor a base price exists
    """
    product = uow.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    store_price = _store_price(uow, product_id, store_id, currency_id)
    base_price = _base_price(uow, product_id, currency_id)

    unit_price = None
    cost_price = None
    source = None

    if store_price is not None and store_price.unit_price is not None:
        unit_price = store_price.unit_price
        source = SOURCE_STORE
    elif base_price is not None and base_price.unit_price is not None:
        unit_price = base_price.unit_price
        source = SOURCE_BASE

    if store_price is not None and store_price.cost_price is not None:
        cost_price = store_price.cost_price
    elif base_price is not None:
        cost_price = base_price.cost_price

    if unit_price is None:
        raise PriceNotFoundError(
            f"No price found for product {product.display_name} in this store/currency",
            details={"product_id": product_id, "store_id": store_id, "currency_id": currency_id},
        )

    return PriceQuote(
        unit_price=to_decimal(unit_price),
        cost_price=to_decimal(cost_price) if cost_price is not None else None,
        source=source,
    )
