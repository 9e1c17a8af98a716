"""
Tests for the transaction orchestrator.

Covers the documented POS scenarios, merge semantics, payments, discounts,
offers, lifecycle guards, events and the totals invariant.
"""

from decimal import Decimal

import pytest

from posengine.exceptions import InsufficientStockError, NotFoundError, PriceNotFoundError, ValidationError
from posengine.models import (
    InventoryActivityCodes,
    InventoryLog,
    Store,
    TransactionChangeType,
    TransactionStatus,
    TransactionVersion,
)
from posengine.services import transaction_service
from posengine.services.notification_service import transaction_event
from posengine.services.offer_resolution import OfferApplication

ACTOR = 7


def _assert_totals_invariant(txn):
    discounts = (
        txn.offer_discount + txn.bundle_discount + txn.minimum_spend_discount
        + txn.customer_discount + txn.manual_discount
    )
    expected = txn.subtotal - discounts + (Decimal("0") if txn.tax_inclusive else txn.tax_amount)
    assert abs(txn.total - expected) <= Decimal("0.01")
    assert txn.amount_paid == sum((p.amount for p in txn.payments), Decimal("0"))
    assert txn.balance_due == max(Decimal("0"), txn.total - txn.amount_paid)
    assert txn.change_amount == max(Decimal("0"), txn.amount_paid - txn.total)


def _pay_in_full(txn, cash):
    return transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount=txn.total, actor=ACTOR)


# =============================================================================
# Scenarios
# =============================================================================

def test_scenario_a_no_tax(db_session, store, make_product, new_txn):
    product = make_product("25.00")
    txn = new_txn(store)

    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=2, actor=ACTOR)

    assert txn.subtotal == Decimal("50.00")
    assert txn.tax_amount == Decimal("0")
    assert txn.total == Decimal("50.00")
    assert txn.balance_due == Decimal("50.00")
    _assert_totals_invariant(txn)


def test_scenario_b_exclusive_tax(db_session, make_store, make_product, new_txn):
    store = make_store("TXB", tax_percentage="7")
    product = make_product("100.00")
    txn = new_txn(store)

    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    assert txn.tax_amount == Decimal("7.00")
    assert txn.total == Decimal("107.00")
    _assert_totals_invariant(txn)


def test_scenario_c_inclusive_tax(db_session, make_store, make_product, new_txn):
    store = make_store("TXC", tax_percentage="7", tax_inclusive=True)
    product = make_product("107.00")
    txn = new_txn(store)

    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    assert txn.total == Decimal("107.00")
    assert txn.tax_amount == Decimal("7.00")
    assert txn.tax_inclusive is True


def test_scenario_d_change_due(db_session, store, make_product, cash, new_txn):
    product = make_product("80.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    txn = transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount="100.00", actor=ACTOR)

    assert txn.change_amount == Decimal("20.00")
    assert txn.balance_due == Decimal("0")
    assert txn.payments[0].balance_after == Decimal("-20.00")
    _assert_totals_invariant(txn)


def test_scenario_e_complete_then_void_restores_stock(db_session, store, make_product, cash, new_txn, stock_of):
    product = make_product("10.00", store=store, stock=10)
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=3, actor=ACTOR)
    txn = _pay_in_full(txn, cash)

    txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)
    assert txn.status == TransactionStatus.COMPLETED
    assert txn.checkout_date is not None
    assert stock_of(product, store) == 7

    txn = transaction_service.void_transaction(txn.id, actor=ACTOR, reason="Customer changed mind")
    assert txn.status == TransactionStatus.VOIDED
    assert stock_of(product, store) == 10
    assert txn.voided_by == ACTOR
    assert "Customer changed mind" in txn.comments

    codes = [log.activity_code for log in db_session.query(InventoryLog).order_by(InventoryLog.id)]
    assert codes == [InventoryActivityCodes.SOLD_ITEM, InventoryActivityCodes.VOID_ITEM]


# =============================================================================
# Creation
# =============================================================================

def test_create_copies_store_tax_settings(db_session, make_store, new_txn):
    store = make_store("TXT", tax_percentage="8.25", tax_inclusive=True)

    txn = new_txn(store)

    assert txn.status == TransactionStatus.DRAFT
    assert txn.tax_percentage == Decimal("8.25")
    assert txn.tax_inclusive is True
    assert txn.created_by == ACTOR
    assert txn.employee_id == ACTOR


def test_create_requires_store_to_offer_currency(db_session, currency):
    store = Store(name="No USD", code="NOU", tax_percentage=Decimal("0"), is_active=True)
    db_session.add(store)
    db_session.commit()

    with pytest.raises(ValidationError):
        transaction_service.create_transaction(
            store_id=store.id, employee_id=ACTOR, currency_id=currency.id, actor=ACTOR
        )


def test_create_unknown_store(db_session, currency):
    with pytest.raises(NotFoundError):
        transaction_service.create_transaction(store_id=999999, employee_id=ACTOR, currency_id=currency.id, actor=ACTOR)


# =============================================================================
# Items
# =============================================================================

def test_add_same_product_twice_merges(db_session, store, make_product, new_txn):
    product = make_product("5.00")
    txn = new_txn(store)

    transaction_service.add_item(txn.id, product_id=product.id, quantity=2, actor=ACTOR)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=3, actor=ACTOR)

    assert len(txn.items) == 1
    assert txn.items[0].quantity == 5
    assert txn.subtotal == Decimal("25.00")


def test_add_item_snapshots_product(db_session, store, make_product, new_txn):
    product = make_product("5.00", cost="2.00", name="Widget")
    txn = new_txn(store)

    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    item = txn.items[0]

    assert item.product_name == "Widget"
    assert item.product_number == product.product_number
    assert item.unit_price == Decimal("5.00")
    assert item.cost_price == Decimal("2.00")
    assert item.sort_order == 1


def test_price_not_found_aborts_before_mutation(db_session, store, make_product, new_txn):
    product = make_product(price=None)
    txn = new_txn(store)

    with pytest.raises(PriceNotFoundError):
        transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    txn = transaction_service.get_transaction(txn.id)
    assert txn.items == []
    assert txn.version_count == 1


@pytest.mark.parametrize("quantity", [0, -1, 1.5, "abc", None])
def test_add_item_rejects_bad_quantity(db_session, store, make_product, new_txn, quantity):
    product = make_product("5.00")
    txn = new_txn(store)

    with pytest.raises(ValidationError):
        transaction_service.add_item(txn.id, product_id=product.id, quantity=quantity, actor=ACTOR)


def test_update_item_quantity_and_price(db_session, store, make_product, new_txn):
    product = make_product("5.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    item_id = txn.items[0].id

    txn = transaction_service.update_item(txn.id, item_id, quantity=4, unit_price="4.50", actor=ACTOR)

    assert txn.items[0].quantity == 4
    assert txn.items[0].unit_price == Decimal("4.50")
    assert txn.subtotal == Decimal("18.00")


def test_update_item_not_on_transaction(db_session, store, make_product, new_txn):
    txn = new_txn(store)

    with pytest.raises(NotFoundError):
        transaction_service.update_item(txn.id, 999999, quantity=2, actor=ACTOR)


def test_remove_item_recomputes(db_session, store, make_product, new_txn):
    first = make_product("5.00")
    second = make_product("7.00")
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=first.id, quantity=1, actor=ACTOR)
    txn = transaction_service.add_item(txn.id, product_id=second.id, quantity=1, actor=ACTOR)
    first_item = next(item for item in txn.items if item.product_id == first.id)

    txn = transaction_service.remove_item(txn.id, first_item.id, actor=ACTOR)

    assert [item.product_id for item in txn.items] == [second.id]
    assert txn.total == Decimal("7.00")


def test_edits_allowed_while_suspended(db_session, store, make_product, new_txn):
    product = make_product("5.00")
    txn = new_txn(store)
    transaction_service.suspend_transaction(txn.id, actor=ACTOR)

    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    assert txn.status == TransactionStatus.SUSPENDED
    assert txn.total == Decimal("5.00")


# =============================================================================
# Customer & discounts
# =============================================================================

def test_set_customer_applies_discount_to_all_lines(db_session, store, make_product, customer, new_txn):
    first = make_product("20.00")
    second = make_product("30.00")
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=first.id, quantity=1, actor=ACTOR)
    transaction_service.add_item(txn.id, product_id=second.id, quantity=1, actor=ACTOR)

    txn = transaction_service.set_customer(txn.id, customer_id=customer.id, actor=ACTOR)

    assert txn.customer_id == customer.id
    assert txn.customer_discount == Decimal("5.00")
    assert txn.total == Decimal("45.00")
    assert {item.customer_discount_amount for item in txn.items} == {Decimal("2.00"), Decimal("3.00")}
    _assert_totals_invariant(txn)

    txn = transaction_service.set_customer(txn.id, customer_id=None, actor=ACTOR)
    assert txn.customer_id is None
    assert txn.customer_discount == Decimal("0")
    assert txn.total == Decimal("50.00")


def test_set_unknown_customer(db_session, store, new_txn):
    txn = new_txn(store)
    with pytest.raises(NotFoundError):
        transaction_service.set_customer(txn.id, customer_id=999999, actor=ACTOR)


def test_clear_and_restore_customer_discount(db_session, store, make_product, customer, new_txn):
    product = make_product("100.00")
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    transaction_service.set_customer(txn.id, customer_id=customer.id, actor=ACTOR)

    txn = transaction_service.clear_customer_discount(txn.id, actor=ACTOR)
    assert txn.customer_id == customer.id
    assert txn.customer_discount == Decimal("0")
    assert txn.total == Decimal("100.00")

    txn = transaction_service.restore_customer_discount(txn.id, actor=ACTOR)
    assert txn.customer_discount == Decimal("10.00")
    assert txn.total == Decimal("90.00")

    latest = txn.versions.all()[-1]
    assert latest.change_type == TransactionChangeType.DISCOUNT_APPLIED


def test_restore_customer_discount_requires_customer(db_session, store, new_txn):
    txn = new_txn(store)
    with pytest.raises(ValidationError):
        transaction_service.restore_customer_discount(txn.id, actor=ACTOR)


def test_manual_discount(db_session, store, make_product, new_txn):
    product = make_product("25.00")
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=2, actor=ACTOR)

    txn = transaction_service.apply_manual_discount(txn.id, discount_type="percentage", value="10", actor=ACTOR)
    assert txn.manual_discount == Decimal("5.00")
    assert txn.total == Decimal("45.00")
    _assert_totals_invariant(txn)

    txn = transaction_service.apply_manual_discount(txn.id, discount_type="fixed", value="80", actor=ACTOR)
    assert txn.manual_discount == Decimal("50.00")
    assert txn.total == Decimal("0")

    txn = transaction_service.clear_manual_discount(txn.id, actor=ACTOR)
    assert txn.manual_discount == Decimal("0")
    assert txn.total == Decimal("50.00")


# =============================================================================
# Offers
# =============================================================================

def test_line_offer_snapshotted_and_suppresses_customer_discount(
    db_session, store, make_product, customer, new_txn, offers
):
    product = make_product("50.00")
    offers.applications = [
        OfferApplication(
            scope="line", offer_id=11, offer_name="10% off", discount_type="percentage",
            discount_amount=Decimal("10"), is_combinable=False, product_id=product.id,
        )
    ]
    txn = new_txn(store)

    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=2, actor=ACTOR)
    item = txn.items[0]
    assert item.offer_id == 11
    assert item.offer_discount_amount == Decimal("5.00")
    assert txn.offer_discount == Decimal("10.00")

    txn = transaction_service.set_customer(txn.id, customer_id=customer.id, actor=ACTOR)
    assert txn.customer_discount == Decimal("0")
    assert txn.total == Decimal("90.00")
    _assert_totals_invariant(txn)


def test_best_policy_prefers_larger_customer_discount(
    db_session, store, make_product, customer, new_txn, offers, config
):
    config(NON_COMBINABLE_OFFER_POLICY="best")
    product = make_product("50.00")
    offers.applications = [
        OfferApplication(
            scope="line", offer_id=12, offer_name="1 off", discount_type="fixed",
            discount_amount=Decimal("1"), is_combinable=False, product_id=product.id,
        )
    ]
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    txn = transaction_service.set_customer(txn.id, customer_id=customer.id, actor=ACTOR)

    assert txn.offer_discount == Decimal("0")
    assert txn.customer_discount == Decimal("5.00")


def test_bundle_and_minimum_spend_offers(db_session, store, make_product, new_txn, offers):
    product = make_product("40.00")
    offers.applications = [
        OfferApplication(scope="bundle", offer_id=21, offer_name="Bundle", discount_type="fixed",
                         discount_amount=Decimal("5")),
        OfferApplication(scope="minimum_spend", offer_id=22, offer_name="Spend 50", discount_type="percentage",
                         discount_amount=Decimal("10"), max_discount=Decimal("3")),
    ]
    txn = new_txn(store)

    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=2, actor=ACTOR)

    assert txn.bundle_discount == Decimal("5.00")
    assert txn.bundle_offer_id == 21
    assert txn.minimum_spend_discount == Decimal("3")
    assert txn.minimum_spend_offer_name == "Spend 50"
    assert txn.total == Decimal("72.00")
    _assert_totals_invariant(txn)


def test_refresh_offers_records_offer_applied(db_session, store, make_product, new_txn, offers):
    product = make_product("10.00")
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    offers.applications = [
        OfferApplication(scope="line", offer_id=31, offer_name="Flash", discount_type="fixed",
                         discount_amount=Decimal("2"), product_id=product.id),
    ]

    txn = transaction_service.refresh_offers(txn.id, actor=ACTOR)

    assert txn.offer_discount == Decimal("2.00")
    latest = txn.versions.all()[-1]
    assert latest.change_type == TransactionChangeType.OFFER_APPLIED
    assert latest.diff_data["offer_discount"]["new"] == "2.0000"


# =============================================================================
# Payments
# =============================================================================

def test_payments_running_balance(db_session, store, make_product, cash, new_txn):
    product = make_product("50.00")
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount="20.00", actor=ACTOR)
    txn = transaction_service.add_payment(
        txn.id, payment_mode_id=cash.id, amount="40.00", payment_data={"tendered": "40"}, actor=ACTOR
    )

    assert [p.row_number for p in txn.payments] == [1, 2]
    assert [p.balance_after for p in txn.payments] == [Decimal("30.00"), Decimal("-10.00")]
    assert txn.payments[1].payment_data == {"tendered": "40"}
    assert txn.amount_paid == Decimal("60.00")
    assert txn.change_amount == Decimal("10.00")

    txn = transaction_service.remove_payment(txn.id, txn.payments[1].id, actor=ACTOR)
    assert txn.amount_paid == Decimal("20.00")
    assert txn.balance_due == Decimal("30.00")
    assert txn.change_amount == Decimal("0")
    _assert_totals_invariant(txn)


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_payment_must_be_positive(db_session, store, cash, new_txn, amount):
    txn = new_txn(store)
    with pytest.raises(ValidationError):
        transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount=amount, actor=ACTOR)


def test_payment_unknown_mode(db_session, store, new_txn):
    txn = new_txn(store)
    with pytest.raises(NotFoundError):
        transaction_service.add_payment(txn.id, payment_mode_id=999999, amount="1", actor=ACTOR)


@pytest.mark.parametrize("bad", ["NaN", "sNaN", "Infinity", "-Infinity", float("nan"), "abc", "1e30"])
def test_money_inputs_must_be_finite_numbers(db_session, store, make_product, cash, new_txn, bad):
    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    item_id = txn.items[0].id

    with pytest.raises(ValidationError):
        transaction_service.add_payment(txn.id, payment_mode_id=cash.id, amount=bad, actor=ACTOR)
    with pytest.raises(ValidationError):
        transaction_service.apply_manual_discount(txn.id, discount_type="fixed", value=bad, actor=ACTOR)
    with pytest.raises(ValidationError):
        transaction_service.update_item(txn.id, item_id, unit_price=bad, actor=ACTOR)

    txn = transaction_service.get_transaction(txn.id)
    assert txn.version_count == 2
    assert txn.total == Decimal("10.00")


# =============================================================================
# Lifecycle guards
# =============================================================================

def test_complete_requires_items(db_session, store, new_txn):
    txn = new_txn(store)
    with pytest.raises(ValidationError):
        transaction_service.complete_transaction(txn.id, actor=ACTOR)


def test_complete_requires_full_payment(db_session, store, make_product, new_txn, stock_of):
    product = make_product("10.00", store=store, stock=5)
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    with pytest.raises(ValidationError):
        transaction_service.complete_transaction(txn.id, actor=ACTOR)
    assert stock_of(product, store) == 5


def test_complete_without_payment_when_not_required(db_session, store, make_product, new_txn, config):
    config(REQUIRE_FULL_PAYMENT_ON_COMPLETE=False)
    product = make_product("10.00", store=store, stock=5)
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)

    txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)

    assert txn.status == TransactionStatus.COMPLETED
    assert txn.balance_due == Decimal("10.00")


def test_suspended_must_be_resumed_before_completion(db_session, store, make_product, cash, new_txn):
    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    _pay_in_full(txn, cash)
    transaction_service.suspend_transaction(txn.id, actor=ACTOR)

    with pytest.raises(ValidationError):
        transaction_service.complete_transaction(txn.id, actor=ACTOR)

    transaction_service.resume_transaction(txn.id, actor=ACTOR)
    txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)
    assert txn.status == TransactionStatus.COMPLETED


def test_completed_transaction_is_frozen(db_session, store, make_product, cash, new_txn):
    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    _pay_in_full(txn, cash)
    txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)

    with pytest.raises(ValidationError):
        transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    with pytest.raises(ValidationError):
        transaction_service.remove_payment(txn.id, txn.payments[0].id, actor=ACTOR)
    with pytest.raises(ValidationError):
        transaction_service.suspend_transaction(txn.id, actor=ACTOR)


def test_draft_cannot_be_voided(db_session, store, new_txn):
    txn = new_txn(store)
    with pytest.raises(ValidationError):
        transaction_service.void_transaction(txn.id, actor=ACTOR, reason="oops")


def test_voided_is_terminal(db_session, store, make_product, cash, new_txn):
    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    _pay_in_full(txn, cash)
    transaction_service.complete_transaction(txn.id, actor=ACTOR)
    transaction_service.void_transaction(txn.id, actor=ACTOR)

    with pytest.raises(ValidationError):
        transaction_service.void_transaction(txn.id, actor=ACTOR)
    with pytest.raises(ValidationError):
        transaction_service.complete_transaction(txn.id, actor=ACTOR)
    with pytest.raises(ValidationError):
        transaction_service.process_refund(txn.id, items=[{"item_id": txn.items[0].id}], actor=ACTOR)


def test_unknown_transaction(db_session):
    with pytest.raises(NotFoundError):
        transaction_service.suspend_transaction(999999, actor=ACTOR)


def test_failed_completion_rolls_back_earlier_stock_moves(db_session, store, make_product, cash, new_txn, stock_of, config):
    config(ENFORCE_NON_NEGATIVE_STOCK=True)
    in_stock = make_product("10.00", store=store, stock=5)
    sold_out = make_product("4.00", store=store, stock=0)
    txn = new_txn(store)
    transaction_service.add_item(txn.id, product_id=in_stock.id, quantity=2, actor=ACTOR)
    txn = transaction_service.add_item(txn.id, product_id=sold_out.id, quantity=1, actor=ACTOR)
    _pay_in_full(txn, cash)

    # The first line's SI movement is flushed before the second line fails
    with pytest.raises(InsufficientStockError):
        transaction_service.complete_transaction(txn.id, actor=ACTOR)

    txn = transaction_service.get_transaction(txn.id)
    assert stock_of(in_stock, store) == 5
    assert stock_of(sold_out, store) == 0
    assert txn.status == TransactionStatus.DRAFT
    assert txn.checkout_date is None
    assert txn.version_count == 4
    assert [v.change_type for v in txn.versions.all()][-1] == TransactionChangeType.PAYMENT_ADDED
    assert db_session.query(InventoryLog).filter_by(activity_code=InventoryActivityCodes.SOLD_ITEM).count() == 0


def test_void_reason_is_coerced_to_text(db_session, store, make_product, cash, new_txn):
    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    _pay_in_full(txn, cash)
    transaction_service.complete_transaction(txn.id, actor=ACTOR)

    txn = transaction_service.void_transaction(txn.id, actor=ACTOR, reason=123)

    assert txn.void_reason == "123"
    assert txn.comments == "Voided: 123"


# =============================================================================
# Events
# =============================================================================

def test_events_emitted_after_commit(db_session, store, make_product, cash, new_txn):
    received = []

    def receiver(sender, **payload):
        # The committed state is already visible to receivers
        versions = db_session.query(TransactionVersion).filter_by(transaction_id=payload["transaction_id"]).count()
        received.append((payload["action"], payload["transaction_number"], versions))

    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=2, actor=ACTOR)
    _pay_in_full(txn, cash)

    with transaction_event.connected_to(receiver):
        txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)
        transaction_service.process_refund(txn.id, items=[{"item_id": txn.items[0].id, "quantity": 1}], actor=ACTOR)
        transaction_service.void_transaction(txn.id, actor=ACTOR, reason="test")

    assert [action for action, _, _ in received] == ["completed", "refund", "voided"]
    assert all(number == txn.transaction_number for _, number, _ in received)
    assert [versions for _, _, versions in received] == [4, 5, 6]


def test_failing_receiver_does_not_undo_operation(db_session, store, make_product, cash, new_txn):
    def broken(sender, **payload):
        raise RuntimeError("mailer down")

    product = make_product("10.00")
    txn = new_txn(store)
    txn = transaction_service.add_item(txn.id, product_id=product.id, quantity=1, actor=ACTOR)
    _pay_in_full(txn, cash)

    with transaction_event.connected_to(broken):
        txn = transaction_service.complete_transaction(txn.id, actor=ACTOR)

    assert transaction_service.get_transaction(txn.id).status == TransactionStatus.COMPLETED


# =============================================================================
# Reads
# =============================================================================

def test_get_by_number_and_list(db_session, make_store, customer, new_txn):
    tst = make_store("TST")
    oth = make_store("OTH")
    first = new_txn(tst)
    second = new_txn(tst)
    new_txn(oth)
    transaction_service.set_customer(second.id, customer_id=customer.id, actor=ACTOR)
    transaction_service.suspend_transaction(first.id, actor=ACTOR)

    assert transaction_service.get_transaction_by_number(first.transaction_number).id == first.id
    with pytest.raises(NotFoundError):
        transaction_service.get_transaction_by_number("TXN-NOPE-20260101-0001")

    assert {t.id for t in transaction_service.list_transactions(store_id=tst.id)} == {first.id, second.id}
    assert [t.id for t in transaction_service.list_transactions(status="suspended")] == [first.id]
    assert [t.id for t in transaction_service.list_transactions(search="Reyes")] == [second.id]
    with pytest.raises(ValidationError):
        transaction_service.list_transactions(status="ARCHIVED")
