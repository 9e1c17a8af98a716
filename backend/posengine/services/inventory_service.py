# Overview: Stock level changes for a product at a store, each paired with an inventory log row.

"""
Inventory Ledger

Invariants:
- ProductStore.quantity only changes through adjust_stock.
- Every change writes exactly one InventoryLog row in the same unit of work,
  with quantity_in/quantity_out split from the signed delta and
  current_quantity equal to the stock level after the change.
- Stock may go negative unless ENFORCE_NON_NEGATIVE_STOCK is set.
- A missing ProductStore row is created at quantity 0 before the change.

Activity codes used by the transaction engine:
- SI: sale on completion (negative delta)
- RI: refunded units returned to stock
- VI: void of a completed transaction
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..exceptions import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryActivityCodes, InventoryLog, Product, ProductStore, Store
from .concurrency import in_unit_of_work


def _locked_product_store(uow, product_id: int, store_id: int) -> ProductStore:
    product_store = uow.locked(
        uow.query(ProductStore).filter_by(product_id=product_id, store_id=store_id)
    ).first()
    if product_store is None:
        product_store = ProductStore(product_id=product_id, store_id=store_id, quantity=0, is_active=True)
        uow.add(product_store)
        uow.flush()
    return product_store


def adjust_stock(
    uow,
    product_id: int,
    store_id: int,
    delta: int,
    activity_code: str,
    *,
    actor: int,
    transaction_id: int | None = None,
    stocktake_id: int | None = None,
    delivery_order_id: int | None = None,
    purchase_order_id: int | None = None,
    notes: str | None = None,
) -> InventoryLog:
    """
    Apply a signed stock change and append its log row.

    Does not commit: the caller's unit of work owns the transaction boundary.
    """
    if isinstance(delta, float) and not delta.is_integer():
        raise ValidationError(f"Stock adjustment delta must be a whole number, got {delta}")
    delta = int(delta)
    if delta == 0:
        raise ValidationError("Stock adjustment delta cannot be zero")
    if not InventoryActivityCodes.is_valid(activity_code):
        raise ValidationError(
            f"Invalid activity code: {activity_code}",
            details={"valid_codes": sorted(InventoryActivityCodes.all())},
        )

    product_store = _locked_product_store(uow, product_id, store_id)
    new_quantity = (product_store.quantity or 0) + delta

    if new_quantity < 0 and current_app.config.get("ENFORCE_NON_NEGATIVE_STOCK", False):
        raise InsufficientStockError(
            f"Insufficient stock for product {product_id} at store {store_id}",
            details={
                "product_id": product_id,
                "store_id": store_id,
                "on_hand": product_store.quantity,
                "requested": -delta,
            },
        )

    product_store.quantity = new_quantity

    log = InventoryLog(
        product_id=product_id,
        store_id=store_id,
        activity_code=activity_code,
        quantity_in=delta if delta > 0 else 0,
        quantity_out=-delta if delta < 0 else 0,
        current_quantity=new_quantity,
        transaction_id=transaction_id,
        stocktake_id=stocktake_id,
        delivery_order_id=delivery_order_id,
        purchase_order_id=purchase_order_id,
        notes=notes,
        created_by=actor,
    )
    uow.add(log)
    uow.flush()

    current_app.logger.info(
        "Stock %s product=%s store=%s delta=%+d now=%d",
        activity_code, product_id, store_id, delta, new_quantity,
    )
    return log


def adjust_inventory(
    *,
    product_id: int,
    store_id: int,
    delta: int,
    activity_code: str,
    actor: int,
    notes: str | None = None,
    stocktake_id: int | None = None,
    delivery_order_id: int | None = None,
    purchase_order_id: int | None = None,
) -> InventoryLog:
    """Standalone adjustment (stocktake, lost/found, deliveries) in its own unit of work."""
    if activity_code not in InventoryActivityCodes.MANUAL_CODES:
        raise ValidationError(
            f"Activity code {activity_code} cannot be used for a manual adjustment",
            details={"valid_codes": sorted(InventoryActivityCodes.MANUAL_CODES)},
        )

    def _op(uow):
        if uow.query(Product).filter_by(id=product_id).first() is None:
            raise NotFoundError(f"Product {product_id} not found")
        if uow.query(Store).filter_by(id=store_id).first() is None:
            raise NotFoundError(f"Store {store_id} not found")
        return adjust_stock(
            uow,
            product_id,
            store_id,
            delta,
            activity_code,
            actor=actor,
            stocktake_id=stocktake_id,
            delivery_order_id=delivery_order_id,
            purchase_order_id=purchase_order_id,
            notes=notes,
        )

    return in_unit_of_work(_op)


def get_stock_level(product_id: int, store_id: int) -> int:
    product_store = db.session.query(ProductStore).filter_by(product_id=product_id, store_id=store_id).first()
    return product_store.quantity if product_store else 0


def get_inventory_logs(
    *,
    store_id: int | None = None,
    product_id: int | None = None,
    transaction_id: int | None = None,
    activity_code: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = 100,
) -> list[InventoryLog]:
    query = db.session.query(InventoryLog)
    if store_id is not None:
        query = query.filter(InventoryLog.store_id == store_id)
    if product_id is not None:
        query = query.filter(InventoryLog.product_id == product_id)
    if transaction_id is not None:
        query = query.filter(InventoryLog.transaction_id == transaction_id)
    if activity_code:
        query = query.filter(InventoryLog.activity_code == activity_code)
    if start_date is not None:
        query = query.filter(InventoryLog.created_at >= start_date)
    if end_date is not None:
        query = query.filter(InventoryLog.created_at <= end_date)
    return query.order_by(InventoryLog.id.desc()).limit(limit).all()
