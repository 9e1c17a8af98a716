# Overview: Transaction orchestrator; every POS mutation runs here in one unit of work.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..exceptions import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Currency,
    Customer,
    InventoryActivityCodes,
    PaymentMode,
    Product,
    Store,
    StoreCurrency,
    Transaction,
    TransactionChangeType,
    TransactionItem,
    TransactionPayment,
    TransactionStatus,
)
from posengine.money import ZERO, floor_zero, money_str, parse_money, quantize, to_decimal
from posengine.time_utils import utcnow
from .concurrency import RETRYABLE_ERRORS, in_unit_of_work
from .discount_service import (
    POLICY_OFFER,
    compute_line_discount,
    manual_discount_amount,
    offer_unit_discount,
    transaction_offer_discount,
    validate_manual_discount,
)
from .inventory_service import adjust_stock
from .lifecycle import assert_mutable, assert_status, assert_transition, is_mutable
from .notification_service import ACTION_COMPLETED, ACTION_REFUND, ACTION_VOIDED, emit_transaction_event
from .offer_resolution import OfferApplication, resolve_offers
from .pricing_service import resolve_price
from .sequence_service import next_transaction_number
from .tax_service import compute_tax
from .version_service import record_version
"""
POS Transaction Invariants (authoritative)

Atomicity:
- Each public operation is one unit of work: header, items, payments, stock
  and the version row commit together or not at all.
- The transaction row is locked (FOR UPDATE + version_id) for the whole unit.
- Each operation appends exactly one TransactionVersion.

Totals (recomputed after every mutation):
- subtotal = sum(line_subtotal) over non-refunded lines
- total = subtotal - offer - bundle - minimum_spend - customer - manual + tax
  (inclusive tax is carved out of the net instead of added)
- balance_due = max(0, total - amount_paid)
- change_amount = max(0, amount_paid - total)
- amount_paid = sum(payment.amount)

Pricing:
- unit_price is resolved once when a product first enters the cart and is
  never re-resolved; update_item may override it explicitly.
- Line offers are re-resolved whenever quantity, price or the customer
  discount changes. Refunded lines are never re-resolved.
- Once COMPLETED, repricing (partial refunds) uses only the stored snapshots.

Events:
- completed / voided / refund events are emitted after commit only.
"""


# =============================================================================
# Internal helpers
# =============================================================================

def _load_locked(uow, transaction_id: int) -> Transaction:
    txn = uow.locked(uow.query(Transaction).filter_by(id=transaction_id)).first()
    if txn is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return txn


def _decimal_places(txn: Transaction) -> int:
    if txn.currency is not None and txn.currency.decimal_places is not None:
        return txn.currency.decimal_places
    return 2


def _offer_policy() -> str:
    return current_app.config.get("NON_COMBINABLE_OFFER_POLICY", POLICY_OFFER)


def _get_item(txn: Transaction, item_id: int) -> TransactionItem:
    for item in txn.items:
        if item.id == item_id:
            return item
    raise NotFoundError(
        f"Item {item_id} not found on transaction {txn.transaction_number}",
        details={"item_id": item_id},
    )


def _get_payment(txn: Transaction, payment_id: int) -> TransactionPayment:
    for payment in txn.payments:
        if payment.id == payment_id:
            return payment
    raise NotFoundError(
        f"Payment {payment_id} not found on transaction {txn.transaction_number}",
        details={"payment_id": payment_id},
    )


def _parse_quantity(value, field: str = "quantity") -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be a whole number")
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number")
    if quantity <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return quantity


def _apply_line_offer(item: TransactionItem, offer: OfferApplication | None) -> None:
    """Snapshot the resolved offer onto the line."""
    if offer is None:
        item.offer_id = None
        item.offer_name = None
        item.offer_discount_type = None
        item.offer_discount_value = None
        item.offer_discount_amount = ZERO
        item.offer_is_combinable = None
        return

    item.offer_id = offer.offer_id
    item.offer_name = offer.offer_name
    item.offer_discount_type = offer.discount_type
    item.offer_discount_value = quantize(offer.discount_amount)
    item.offer_discount_amount = offer_unit_discount(item.unit_price, offer)
    item.offer_is_combinable = bool(offer.is_combinable)


def _reprice_line(txn: Transaction, item: TransactionItem) -> None:
    """Recompute one line's discounts and totals from its snapshots."""
    result = compute_line_discount(
        item,
        txn.customer_discount_percentage,
        decimal_places=_decimal_places(txn),
        policy=_offer_policy(),
    )
    item.line_subtotal = result.line_subtotal
    item.offer_discount = result.offer_discount
    item.customer_discount_amount = result.customer_discount
    item.customer_discount_percentage = (
        txn.customer_discount_percentage if result.customer_discount > ZERO else None
    )
    item.line_discount = result.line_discount
    item.line_total = result.line_total


def _set_transaction_offers(txn: Transaction, bundle, minimum_spend) -> None:
    txn.bundle_offer_id = bundle.offer_id if bundle else None
    txn.bundle_offer_name = bundle.offer_name if bundle else None
    txn.minimum_spend_offer_id = minimum_spend.offer_id if minimum_spend else None
    txn.minimum_spend_offer_name = minimum_spend.offer_name if minimum_spend else None


def _recalculate_payments(txn: Transaction) -> None:
    total = to_decimal(txn.total)
    paid = sum((to_decimal(payment.amount) for payment in txn.payments), ZERO)
    txn.amount_paid = quantize(paid)
    txn.balance_due = quantize(floor_zero(total - paid))
    txn.change_amount = quantize(floor_zero(paid - total))


def _recalculate_totals(txn: Transaction, *, resolve_line_offers: bool = False) -> None:
    """
    Master recalculation of every derived field on the transaction.

    While the transaction is mutable, transaction-level offers are resolved
    afresh and, when resolve_line_offers is set, line offers too. After
    completion only stored snapshots are used.
    """
    active = txn.active_items
    for item in active:
        _reprice_line(txn, item)

    mutable = is_mutable(txn)
    bundle = minimum_spend = None
    if mutable:
        line_offers, bundle, minimum_spend = resolve_offers(txn)
        if resolve_line_offers:
            for item in active:
                _apply_line_offer(item, line_offers.get(item.product_id))
                _reprice_line(txn, item)
        _set_transaction_offers(txn, bundle, minimum_spend)

    subtotal = sum((to_decimal(item.line_subtotal) for item in active), ZERO)
    offer_discount = sum((to_decimal(item.offer_discount) for item in active), ZERO)
    customer_discount = sum((to_decimal(item.customer_discount_amount) for item in active), ZERO)
    remaining = floor_zero(subtotal - offer_discount - customer_discount)

    if mutable:
        bundle_discount = transaction_offer_discount(remaining, bundle)
        remaining -= bundle_discount
        minimum_spend_discount = transaction_offer_discount(remaining, minimum_spend)
        remaining -= minimum_spend_discount
    else:
        bundle_discount = min(to_decimal(txn.bundle_discount), remaining)
        remaining -= bundle_discount
        minimum_spend_discount = min(to_decimal(txn.minimum_spend_discount), remaining)
        remaining -= minimum_spend_discount

    manual_discount = manual_discount_amount(remaining, txn.manual_discount_type, txn.manual_discount_value)
    remaining -= manual_discount

    tax = compute_tax(
        remaining,
        txn.tax_percentage,
        bool(txn.tax_inclusive),
        decimal_places=_decimal_places(txn),
    )

    txn.subtotal = quantize(subtotal)
    txn.offer_discount = quantize(offer_discount)
    txn.customer_discount = quantize(customer_discount)
    txn.bundle_discount = quantize(bundle_discount)
    txn.minimum_spend_discount = quantize(minimum_spend_discount)
    txn.manual_discount = quantize(manual_discount)
    txn.tax_amount = quantize(tax.tax_amount)
    txn.total = quantize(tax.total)

    _recalculate_payments(txn)


def _touch(txn: Transaction, actor: int) -> None:
    txn.updated_by = actor


# =============================================================================
# Creation
# =============================================================================

def create_transaction(*, store_id: int, employee_id: int, currency_id: int, actor: int) -> Transaction:
    """Open a new DRAFT transaction with the next number for the store and day."""
    def _op(uow):
        store = uow.query(Store).filter_by(id=store_id).first()
        if store is None:
            raise NotFoundError(f"Store {store_id} not found")
        if not store.is_active:
            raise ValidationError(f"Store {store.code} is inactive")

        currency = uow.query(Currency).filter_by(id=currency_id).first()
        if currency is None:
            raise NotFoundError(f"Currency {currency_id} not found")
        if not currency.is_active:
            raise ValidationError(f"Currency {currency.code} is inactive")

        if current_app.config.get("ENFORCE_STORE_CURRENCY", True):
            offered = uow.query(StoreCurrency).filter_by(store_id=store.id, currency_id=currency.id).first()
            if offered is None:
                raise ValidationError(
                    f"Store {store.code} does not accept {currency.code}",
                    details={"store_id": store.id, "currency_id": currency.id},
                )

        number = next_transaction_number(uow, store)

        txn = Transaction(
            transaction_number=number,
            store_id=store.id,
            employee_id=employee_id,
            currency_id=currency.id,
            status=TransactionStatus.DRAFT,
            tax_percentage=store.tax_percentage or ZERO,
            tax_inclusive=bool(store.tax_inclusive),
            created_by=actor,
            updated_by=actor,
        )
        for field in ("subtotal", "offer_discount", "bundle_discount", "minimum_spend_discount",
                      "customer_discount", "manual_discount", "tax_amount", "total",
                      "amount_paid", "refund_amount", "balance_due", "change_amount"):
            setattr(txn, field, ZERO)
        txn.version_count = 0
        uow.add(txn)
        uow.flush()

        record_version(uow, txn, TransactionChangeType.CREATED, actor, f"Transaction {number} created")
        return txn

    # A racing first-of-day sequence insert surfaces as IntegrityError
    txn = in_unit_of_work(_op, retry_on=RETRYABLE_ERRORS + (IntegrityError,))
    current_app.logger.info("Transaction %s created by %s", txn.transaction_number, actor)
    return txn


# =============================================================================
# Items
# =============================================================================

def add_item(transaction_id: int, *, product_id: int, quantity, actor: int) -> Transaction:
    """Add a product to the cart, merging into an existing active line for the same product."""
    qty = _parse_quantity(quantity)

    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)

        product = uow.query(Product).filter_by(id=product_id).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_active:
            raise ValidationError(f"Product {product.product_number} is inactive")

        # Raises PriceNotFoundError before anything is touched
        quote = resolve_price(uow, product.id, txn.store_id, txn.currency_id)

        existing = next((item for item in txn.active_items if item.product_id == product.id), None)
        if existing is not None:
            old_quantity = existing.quantity
            existing.quantity = old_quantity + qty
            item = existing
            diff = {
                "item_id": item.id,
                "product_id": product.id,
                "quantity": {"old": old_quantity, "new": item.quantity},
                "merged": True,
            }
        else:
            sort_order = max((line.sort_order or 0 for line in txn.items), default=0) + 1
            item = TransactionItem(
                product_id=product.id,
                product_name=product.name,
                product_number=product.product_number,
                variant_name=product.variant_name,
                barcode=product.barcode,
                quantity=qty,
                unit_price=quantize(quote.unit_price),
                cost_price=quantize(quote.cost_price) if quote.cost_price is not None else None,
                offer_discount_amount=ZERO,
                offer_discount=ZERO,
                customer_discount_amount=ZERO,
                is_refunded=False,
                refunded_quantity=0,
                sort_order=sort_order,
            )
            txn.items.append(item)
            diff = {
                "product_id": product.id,
                "quantity": qty,
                "unit_price": money_str(item.unit_price),
                "price_source": quote.source,
                "merged": False,
            }

        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)
        uow.flush()
        diff["item_id"] = item.id

        record_version(
            uow, txn, TransactionChangeType.ITEM_ADDED, actor,
            f"Added {item.display_name} x{qty}", diff,
        )
        return txn

    return in_unit_of_work(_op)


def update_item(transaction_id: int, item_id: int, *, actor: int, quantity=None, unit_price=None) -> Transaction:
    """Change a line's quantity and/or unit price."""
    if quantity is None and unit_price is None:
        raise ValidationError("Nothing to update: provide quantity and/or unit_price")
    new_quantity = _parse_quantity(quantity) if quantity is not None else None
    new_price = None
    if unit_price is not None:
        new_price = quantize(parse_money(unit_price, "unit_price"))
        if new_price < ZERO:
            raise ValidationError("unit_price cannot be negative")

    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)
        item = _get_item(txn, item_id)
        if item.is_refunded:
            raise ValidationError(f"Item {item.display_name} is refunded and cannot be modified")

        diff = {"item_id": item.id, "product_id": item.product_id}
        changes = []
        if new_quantity is not None and new_quantity != item.quantity:
            diff["quantity"] = {"old": item.quantity, "new": new_quantity}
            changes.append(f"qty {item.quantity} -> {new_quantity}")
            item.quantity = new_quantity
        if new_price is not None and new_price != to_decimal(item.unit_price):
            diff["unit_price"] = {"old": money_str(item.unit_price), "new": money_str(new_price)}
            changes.append(f"price {money_str(item.unit_price)} -> {money_str(new_price)}")
            item.unit_price = new_price

        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)

        summary = f"Modified {item.display_name}"
        if changes:
            summary += ": " + ", ".join(changes)
        record_version(uow, txn, TransactionChangeType.ITEM_MODIFIED, actor, summary, diff)
        return txn

    return in_unit_of_work(_op)


def remove_item(transaction_id: int, item_id: int, *, actor: int) -> Transaction:
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)
        item = _get_item(txn, item_id)

        diff = {
            "item_id": item.id,
            "product_id": item.product_id,
            "quantity": item.quantity,
            "line_total": money_str(item.line_total),
        }
        name = item.display_name
        txn.items.remove(item)

        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)
        record_version(uow, txn, TransactionChangeType.ITEM_REMOVED, actor, f"Removed {name}", diff)
        return txn

    return in_unit_of_work(_op)


# =============================================================================
# Customer and discounts
# =============================================================================

def set_customer(transaction_id: int, *, customer_id: int | None, actor: int) -> Transaction:
    """Attach (or detach with None) a customer and reprice every line with their discount."""
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)

        old_customer_id = txn.customer_id
        if customer_id is None:
            txn.customer_id = None
            txn.customer_discount_percentage = None
            summary = "Customer removed"
        else:
            customer = uow.query(Customer).filter_by(id=customer_id).first()
            if customer is None:
                raise NotFoundError(f"Customer {customer_id} not found")
            if not customer.is_active:
                raise ValidationError(f"Customer {customer.full_name} is inactive")
            txn.customer_id = customer.id
            rate = to_decimal(customer.discount_percentage)
            txn.customer_discount_percentage = rate if rate > ZERO else None
            summary = f"Customer set to {customer.full_name}"

        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)
        record_version(
            uow, txn, TransactionChangeType.CUSTOMER_CHANGED, actor, summary,
            {"customer_id": {"old": old_customer_id, "new": txn.customer_id}},
        )
        return txn

    return in_unit_of_work(_op)


def clear_customer_discount(transaction_id: int, *, actor: int) -> Transaction:
    """Stop applying the customer's discount rate while keeping the customer attached."""
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)

        old_rate = txn.customer_discount_percentage
        txn.customer_discount_percentage = None

        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)
        record_version(
            uow, txn, TransactionChangeType.DISCOUNT_APPLIED, actor, "Customer discount cleared",
            {"customer_discount_percentage": {"old": str(old_rate) if old_rate is not None else None, "new": None}},
        )
        return txn

    return in_unit_of_work(_op)


def restore_customer_discount(transaction_id: int, *, actor: int) -> Transaction:
    """Re-read the attached customer's discount rate and reprice."""
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)
        if txn.customer_id is None:
            raise ValidationError("No customer attached to this transaction")

        customer = uow.query(Customer).filter_by(id=txn.customer_id).first()
        if customer is None:
            raise NotFoundError(f"Customer {txn.customer_id} not found")

        rate = to_decimal(customer.discount_percentage)
        txn.customer_discount_percentage = rate if rate > ZERO else None

        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)
        record_version(
            uow, txn, TransactionChangeType.DISCOUNT_APPLIED, actor,
            f"Customer discount restored ({rate}%)",
            {"customer_discount_percentage": {"old": None, "new": str(rate)}},
        )
        return txn

    return in_unit_of_work(_op)


def apply_manual_discount(transaction_id: int, *, discount_type: str, value, actor: int) -> Transaction:
    """Set a cashier discount on the whole transaction (percentage or fixed)."""
    amount = validate_manual_discount(discount_type, value)

    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)

        txn.manual_discount_type = discount_type
        txn.manual_discount_value = quantize(amount)

        _recalculate_totals(txn)
        _touch(txn, actor)
        label = f"{amount}%" if discount_type == "percentage" else money_str(amount)
        record_version(
            uow, txn, TransactionChangeType.DISCOUNT_APPLIED, actor,
            f"Manual discount {label} applied",
            {
                "manual_discount_type": discount_type,
                "manual_discount_value": money_str(amount),
                "manual_discount": money_str(txn.manual_discount),
            },
        )
        return txn

    return in_unit_of_work(_op)


def clear_manual_discount(transaction_id: int, *, actor: int) -> Transaction:
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)

        old_amount = money_str(txn.manual_discount)
        txn.manual_discount_type = None
        txn.manual_discount_value = None

        _recalculate_totals(txn)
        _touch(txn, actor)
        record_version(
            uow, txn, TransactionChangeType.DISCOUNT_APPLIED, actor, "Manual discount cleared",
            {"manual_discount": {"old": old_amount, "new": money_str(ZERO)}},
        )
        return txn

    return in_unit_of_work(_op)


def refresh_offers(transaction_id: int, *, actor: int) -> Transaction:
    """Re-resolve line and transaction-level offers against the current cart."""
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)

        before = {
            "offer_discount": money_str(txn.offer_discount),
            "bundle_discount": money_str(txn.bundle_discount),
            "minimum_spend_discount": money_str(txn.minimum_spend_discount),
        }
        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)
        after = {
            "offer_discount": money_str(txn.offer_discount),
            "bundle_discount": money_str(txn.bundle_discount),
            "minimum_spend_discount": money_str(txn.minimum_spend_discount),
        }
        record_version(
            uow, txn, TransactionChangeType.OFFER_APPLIED, actor, "Offers re-evaluated",
            {key: {"old": before[key], "new": after[key]} for key in before},
        )
        return txn

    return in_unit_of_work(_op)


# =============================================================================
# Payments
# =============================================================================

def add_payment(
    transaction_id: int,
    *,
    payment_mode_id: int,
    amount,
    actor: int,
    payment_data: dict | None = None,
) -> Transaction:
    """Record a tender against the transaction; overpayment becomes change."""
    payment_amount = quantize(parse_money(amount, "amount"))
    if payment_amount <= ZERO:
        raise ValidationError("Payment amount must be greater than 0")

    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)

        mode = uow.query(PaymentMode).filter_by(id=payment_mode_id).first()
        if mode is None:
            raise NotFoundError(f"Payment mode {payment_mode_id} not found")
        if not mode.is_active:
            raise ValidationError(f"Payment mode {mode.name} is inactive")

        paid_before = sum((to_decimal(payment.amount) for payment in txn.payments), ZERO)
        row_number = max((payment.row_number for payment in txn.payments), default=0) + 1
        payment = TransactionPayment(
            payment_mode_id=mode.id,
            payment_mode_name=mode.name,
            amount=payment_amount,
            payment_data=dict(payment_data) if payment_data else None,
            row_number=row_number,
            balance_after=quantize(to_decimal(txn.total) - paid_before - payment_amount),
            created_by=actor,
        )
        txn.payments.append(payment)

        _recalculate_payments(txn)
        _touch(txn, actor)
        record_version(
            uow, txn, TransactionChangeType.PAYMENT_ADDED, actor,
            f"{mode.name} payment of {money_str(payment_amount)}",
            {
                "payment_mode_id": mode.id,
                "amount": money_str(payment_amount),
                "row_number": row_number,
                "balance_after": money_str(payment.balance_after),
            },
        )
        return txn

    return in_unit_of_work(_op)


def remove_payment(transaction_id: int, payment_id: int, *, actor: int) -> Transaction:
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_mutable(txn)
        payment = _get_payment(txn, payment_id)

        diff = {
            "payment_id": payment.id,
            "payment_mode_id": payment.payment_mode_id,
            "amount": money_str(payment.amount),
            "row_number": payment.row_number,
        }
        summary = f"Removed {payment.payment_mode_name} payment of {money_str(payment.amount)}"
        txn.payments.remove(payment)

        _recalculate_payments(txn)
        _touch(txn, actor)
        record_version(uow, txn, TransactionChangeType.PAYMENT_REMOVED, actor, summary, diff)
        return txn

    return in_unit_of_work(_op)


# =============================================================================
# Lifecycle transitions
# =============================================================================

def complete_transaction(transaction_id: int, *, actor: int) -> Transaction:
    """
    Check out a DRAFT transaction.

    Stock for every active line leaves the store (SI) in the same unit of work
    as the status change and the version row.
    """
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_transition(txn, TransactionStatus.COMPLETED)

        active = txn.active_items
        if not active:
            raise ValidationError("Cannot complete a transaction with no items")

        _recalculate_totals(txn)
        if current_app.config.get("REQUIRE_FULL_PAYMENT_ON_COMPLETE", True) and to_decimal(txn.balance_due) > ZERO:
            raise ValidationError(
                f"Outstanding balance of {money_str(txn.balance_due)} must be paid before completion",
                details={"balance_due": money_str(txn.balance_due)},
            )

        for item in active:
            adjust_stock(
                uow,
                item.product_id,
                txn.store_id,
                -item.quantity,
                InventoryActivityCodes.SOLD_ITEM,
                transaction_id=txn.id,
                actor=actor,
                notes=f"Sale {txn.transaction_number}",
            )

        txn.status = TransactionStatus.COMPLETED
        txn.checkout_date = utcnow()
        _touch(txn, actor)
        record_version(
            uow, txn, TransactionChangeType.COMPLETED, actor,
            f"Transaction completed: {money_str(txn.total)}",
            {"status": {"old": TransactionStatus.DRAFT.value, "new": TransactionStatus.COMPLETED.value}},
        )
        return txn

    txn = in_unit_of_work(_op)
    current_app.logger.info("Transaction %s completed by %s", txn.transaction_number, actor)
    emit_transaction_event(txn, ACTION_COMPLETED, f"Transaction completed: {money_str(txn.total)}")
    return txn


def suspend_transaction(transaction_id: int, *, actor: int) -> Transaction:
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_transition(txn, TransactionStatus.SUSPENDED)
        txn.status = TransactionStatus.SUSPENDED
        _touch(txn, actor)
        record_version(uow, txn, TransactionChangeType.SUSPENDED, actor, "Transaction suspended")
        return txn

    txn = in_unit_of_work(_op)
    current_app.logger.info("Transaction %s suspended by %s", txn.transaction_number, actor)
    return txn


def resume_transaction(transaction_id: int, *, actor: int) -> Transaction:
    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_transition(txn, TransactionStatus.DRAFT)
        txn.status = TransactionStatus.DRAFT
        # Offers may have changed while parked
        _recalculate_totals(txn, resolve_line_offers=True)
        _touch(txn, actor)
        record_version(uow, txn, TransactionChangeType.RESUMED, actor, "Transaction resumed")
        return txn

    txn = in_unit_of_work(_op)
    current_app.logger.info("Transaction %s resumed by %s", txn.transaction_number, actor)
    return txn


def void_transaction(transaction_id: int, *, actor: int, reason: str | None = None) -> Transaction:
    """Void a COMPLETED transaction and put every non-refunded unit back on the shelf (VI)."""
    if reason is not None:
        reason = str(reason).strip() or None

    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_transition(txn, TransactionStatus.VOIDED)

        restored = []
        for item in txn.active_items:
            adjust_stock(
                uow,
                item.product_id,
                txn.store_id,
                item.quantity,
                InventoryActivityCodes.VOID_ITEM,
                transaction_id=txn.id,
                actor=actor,
                notes=f"Void {txn.transaction_number}",
            )
            restored.append({"item_id": item.id, "product_id": item.product_id, "quantity": item.quantity})

        txn.status = TransactionStatus.VOIDED
        txn.voided_by = actor
        txn.voided_at = utcnow()
        txn.void_reason = reason[:255] if reason else None
        if reason:
            note = f"Voided: {reason}"
            txn.comments = f"{txn.comments}\n{note}" if txn.comments else note
        _touch(txn, actor)

        summary = "Transaction voided" + (f": {reason}" if reason else "")
        record_version(
            uow, txn, TransactionChangeType.VOIDED, actor, summary,
            {"restored": restored, "reason": reason},
        )
        return txn

    txn = in_unit_of_work(_op)
    summary = "Transaction voided" + (f": {reason}" if reason else "")
    current_app.logger.info("Transaction %s voided by %s", txn.transaction_number, actor)
    emit_transaction_event(txn, ACTION_VOIDED, summary)
    return txn


def process_refund(transaction_id: int, *, items: list[dict], actor: int) -> Transaction:
    """
    Refund some or all units of selected lines on a COMPLETED transaction.

    items: [{"item_id": int, "quantity": int (default: all remaining), "reason": str}]

    A full refund flags the line is_refunded and leaves its quantity as sold;
    a partial refund reduces quantity and reprices the line from its
    snapshots. refund_amount grows by the drop in total.
    """
    if not items:
        raise ValidationError("No items to refund")

    def _op(uow):
        txn = _load_locked(uow, transaction_id)
        assert_status(txn, TransactionStatus.COMPLETED, action="refunded")

        old_total = to_decimal(txn.total)
        parts = []
        refunded = []
        for entry in items:
            if not isinstance(entry, dict) or entry.get("item_id") is None:
                raise ValidationError("Each refund entry needs an item_id")
            try:
                item_id = int(entry["item_id"])
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid item_id: {entry['item_id']!r}")
            item = _get_item(txn, item_id)
            if item.is_refunded:
                raise ValidationError(f"Item '{item.display_name}' is already refunded")

            remaining = item.quantity
            qty = _parse_quantity(entry["quantity"]) if entry.get("quantity") is not None else remaining
            if qty > remaining:
                raise ValidationError(
                    f"Refund quantity {qty} exceeds remaining quantity {remaining} for '{item.display_name}'",
                    details={"item_id": item.id, "requested": qty, "remaining": remaining},
                )

            reason = entry.get("reason")
            if qty == remaining:
                item.is_refunded = True
            else:
                item.quantity = remaining - qty
            item.refunded_quantity = (item.refunded_quantity or 0) + qty
            if reason:
                item.refund_reason = str(reason)[:255]

            adjust_stock(
                uow,
                item.product_id,
                txn.store_id,
                qty,
                InventoryActivityCodes.REFUND_ITEM,
                transaction_id=txn.id,
                actor=actor,
                notes=f"Refund {txn.transaction_number}" + (f": {reason}" if reason else ""),
            )
            parts.append(f"{item.display_name} x{qty}")
            refunded.append({"item_id": item.id, "product_id": item.product_id, "quantity": qty, "reason": reason})

        _recalculate_totals(txn)
        refund_amount = floor_zero(old_total - to_decimal(txn.total))
        txn.refund_amount = quantize(to_decimal(txn.refund_amount) + refund_amount)
        _touch(txn, actor)

        summary = "Refund: " + ", ".join(parts)
        record_version(
            uow, txn, TransactionChangeType.REFUND, actor, summary,
            {"items": refunded, "refund_amount": money_str(refund_amount)},
        )
        return txn, summary

    txn, summary = in_unit_of_work(_op)
    current_app.logger.info("Transaction %s refund by %s: %s", txn.transaction_number, actor, summary)
    emit_transaction_event(txn, ACTION_REFUND, summary)
    return txn


# =============================================================================
# Reads
# =============================================================================

def get_transaction(transaction_id: int) -> Transaction:
    txn = db.session.query(Transaction).filter_by(id=transaction_id).first()
    if txn is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return txn


def get_transaction_by_number(transaction_number: str) -> Transaction:
    txn = db.session.query(Transaction).filter_by(transaction_number=transaction_number).first()
    if txn is None:
        raise NotFoundError(f"Transaction {transaction_number} not found")
    return txn


def list_transactions(
    *,
    store_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = 100,
) -> list[Transaction]:
    query = db.session.query(Transaction)
    if store_id is not None:
        query = query.filter(Transaction.store_id == store_id)
    if status:
        try:
            query = query.filter(Transaction.status == TransactionStatus(status.upper()))
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")
    if search:
        pattern = f"%{search.strip()}%"
        query = query.outerjoin(Customer, Customer.id == Transaction.customer_id).filter(
            or_(
                Transaction.transaction_number.ilike(pattern),
                Customer.first_name.ilike(pattern),
                Customer.last_name.ilike(pattern),
            )
        )
    if start_date is not None:
        query = query.filter(Transaction.created_at >= start_date)
    if end_date is not None:
        query = query.filter(Transaction.created_at <= end_date)
    return query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()
