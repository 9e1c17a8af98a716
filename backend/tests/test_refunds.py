"""Tests for partial and full refunds on completed transactions."""

from decimal import Decimal

import pytest

from posengine.exceptions import NotFoundError, ValidationError
from posengine.models import InventoryActivityCodes, InventoryLog, TransactionChangeType, TransactionStatus
from posengine.services import transaction_service
from posengine.services.offer_resolution import OfferApplication

ACTOR = 7


@pytest.fixture
def sold(store, make_product, cash, new_txn):
    """Completed sale of 3 units at 10.00 from a starting stock of 10."""
    product = make_product("10.00", store=store, stock=10)
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=3, actor=ACTOR)
    transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount=txn.total, actor=ACTOR)
    txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)
    return txn, product


def test_partial_refund(db_session, store, sold, stock_of):
    txn, product = sold
    item_id = txn.items[0].id

    txn = transaction_service.process_refund(
        txn.id, items=[{"item_id": item_id, "quantity": 2, "reason": "Damaged"}], actor=ACTOR
    )

    item = txn.items[0]
    assert stock_of(product, store) == 9
    assert item.quantity == 1
    assert item.refunded_quantity == 2
    assert item.is_refunded is False
    assert item.refund_reason == "Damaged"
    assert txn.total == Decimal("10.00")
    assert txn.refund_amount == Decimal("20.00")
    assert txn.amount_paid == Decimal("30.00")
    assert txn.status == TransactionStatus.COMPLETED

    log = db_session.query(InventoryLog).filter_by(activity_code=InventoryActivityCodes.REFUND_ITEM).one()
    assert log.transaction_id == txn.id
    assert log.quantity_in == 2
    assert log.current_quantity == 9


def test_refund_rest_then_more_fails(db_session, store, sold, stock_of):
    txn, product = sold
    item_id = txn.items[0].id
    transaction_service.process_refund(txn.id, items=[{"item_id": item_id, "quantity": 2}], actor=ACTOR)

    txn = transaction_service.process_refund(txn.id, items=[{"item_id": item_id}], actor=ACTOR)
    item = txn.items[0]
    assert item.is_refunded is True
    assert item.quantity == 1
    assert item.refunded_quantity == 3
    assert txn.total == Decimal("0")
    assert txn.refund_amount == Decimal("30.00")
    assert stock_of(product, store) == 10

    with pytest.raises(ValidationError):
        transaction_service.process_refund(txn.id, items=[{"item_id": item_id, "quantity": 1}], actor=ACTOR)
    assert stock_of(product, store) == 10


def test_over_refund_rejected_without_side_effects(db_session, store, sold, stock_of):
    txn, product = sold

    with pytest.raises(ValidationError):
        transaction_service.process_refund(txn.id, items=[{"item_id": txn.items[0].id, "quantity": 4}], actor=ACTOR)

    txn = transaction_service.get_transaction(txn.id)
    assert stock_of(product, store) == 7
    assert txn.refund_amount == Decimal("0")
    assert txn.version_count == 4


def test_void_after_partial_refund_restores_exactly(db_session, store, sold, stock_of):
    txn, product = sold
    transaction_service.process_refund(txn.id, items=[{"item_id": txn.items[0].id, "quantity": 2}], actor=ACTOR)

    txn = transaction_service.void_transaction(txn.id, actor=ACTOR, reason="Manager override")

    assert txn.status == TransactionStatus.VOIDED
    assert stock_of(product, store) == 10


def test_fully_refunded_line_not_restored_on_void(db_session, store, make_product, cash, new_txn, stock_of):
    kept = make_product("5.00", store=store, stock=4)
    returned = make_product("8.00", store=store, stock=4)
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=kept.id, quantity=1, actor=ACTOR)
    txn = transaction_service.add_item(txn.id, product_id=returned.id, quantity=2, actor=ACTOR)
    transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount=txn.total, actor=ACTOR)
    txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)
    returned_item = next(item for item in txn.items if item.product_id == returned.id)

    txn = transaction_service.process_refund(txn.id, items=[{"item_id": returned_item.id}], actor=ACTOR)
    assert txn.subtotal == Decimal("5.00")
    assert txn.refund_amount == Decimal("16.00")

    transaction_service.void_transaction(txn.id, actor=ACTOR)
    assert stock_of(kept, store) == 4
    assert stock_of(returned, store) == 4


def test_refund_reprices_from_snapshots(db_session, store, make_product, customer, cash, new_txn, offers):
    product = make_product("100.00")
    offers.applications = [
        OfferApplication(scope="line", offer_id=5, offer_name="5 off", discount_type="fixed",
                         discount_amount=Decimal("5"), is_combinable=True, product_id=product.id),
    ]
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=2, actor=ACTOR)
    txn = transaction_service.set_customer(txn.id, customer_id=customer.id, actor=ACTOR)
    # 200 - 10 offer - 20 customer
    assert txn.total == Decimal("170.00")
    transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount=txn.total, actor=ACTOR)
    txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)

    # Offers ending after the sale must not change the refund value
    offers.applications = []
    txn = transaction_service.process_refund(txn.id, items=[{"item_id": txn.items[0].id, "quantity": 1}], actor=ACTOR)

    assert txn.items[0].offer_discount == Decimal("5.00")
    assert txn.total == Decimal("85.00")
    assert txn.refund_amount == Decimal("85.00")


def test_refund_records_version(db_session, sold):
    txn, _ = sold

    txn = transaction_service.process_refund(
        txn.id, items=[{"item_id": txn.items[0].id, "quantity": 1, "reason": "Wrong size"}], actor=ACTOR
    )

    latest = txn.versions.all()[-1]
    assert latest.change_type == TransactionChangeType.REFUND
    assert latest.version_number == txn.version_count
    assert latest.diff_data["refund_amount"] == "10.0000"
    assert latest.diff_data["items"][0]["quantity"] == 1


def test_refund_requires_completed(db_session, store, make_product, new_txn):
    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    with pytest.raises(ValidationError):
        transaction_service.process_refund(txn.id, items=[{"item_id": txn.items[0].id}], actor=ACTOR)


@pytest.mark.parametrize("items", [[], [{"quantity": 1}], [{"item_id": "x"}], ["not-a-dict"]])
def test_refund_rejects_malformed_entries(db_session, sold, items):
    txn, _ = sold
    with pytest.raises(ValidationError):
        transaction_service.process_refund(txn.id, items=items, actor=ACTOR)


def test_refund_unknown_item(db_session, sold):
    txn, _ = sold
    with pytest.raises(NotFoundError):
        transaction_service.process_refund(txn.id, items=[{"item_id": 999999}], actor=ACTOR)
