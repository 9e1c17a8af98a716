from __future__ import annotations

import enum

from ..extensions import db
from posengine.money import money_str
from posengine.time_utils import to_utc_z


class TransactionStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUSPENDED = "SUSPENDED"
    COMPLETED = "COMPLETED"
    VOIDED = "VOIDED"

    @property
    def label(self) -> str:
        return self.value.title()


class TransactionChangeType(str, enum.Enum):
    CREATED = "created"
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    ITEM_MODIFIED = "item_modified"
    CUSTOMER_CHANGED = "customer_changed"
    PAYMENT_ADDED = "payment_added"
    PAYMENT_REMOVED = "payment_removed"
    DISCOUNT_APPLIED = "discount_applied"
    OFFER_APPLIED = "offer_applied"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    RESUMED = "resumed"
    VOIDED = "voided"
    REFUND = "refund"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


MONEY_FIELDS = (
    "subtotal",
    "offer_discount",
    "bundle_discount",
    "minimum_spend_discount",
    "customer_discount",
    "manual_discount",
    "tax_amount",
    "total",
    "amount_paid",
    "refund_amount",
    "balance_due",
    "change_amount",
)

DISCOUNT_FIELDS = (
    "offer_discount",
    "bundle_discount",
    "minimum_spend_discount",
    "customer_discount",
    "manual_discount",
)


class Transaction(db.Model):
    """
    Point-of-sale transaction (aggregate root).

    Items, payments and versions hang off this row. Every mutation goes through
    services.transaction_service, which locks this row for the whole unit of
    work; version_id is the optimistic fallback where row locks are ignored.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_transactions_number"),
        db.Index("ix_transactions_store_status_created", "store_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # TXN-{store_code}-{YYYYMMDD}-{NNNN}
    transaction_number = db.Column(db.String(64), nullable=False)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)

    status = db.Column(
        db.Enum(TransactionStatus, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=TransactionStatus.DRAFT,
        index=True,
    )
    checkout_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Monetary fields (currency-scoped)
    subtotal = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    offer_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    bundle_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    minimum_spend_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    customer_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    manual_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    tax_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_inclusive = db.Column(db.Boolean, nullable=False, default=False)
    tax_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    amount_paid = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    refund_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    balance_due = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    change_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    # Discount bookkeeping
    customer_discount_percentage = db.Column(db.Numeric(5, 2), nullable=True)
    manual_discount_type = db.Column(db.String(16), nullable=True)  # percentage, fixed
    manual_discount_value = db.Column(db.Numeric(14, 4), nullable=True)
    bundle_offer_id = db.Column(db.Integer, nullable=True)
    bundle_offer_name = db.Column(db.String(255), nullable=True)
    minimum_spend_offer_id = db.Column(db.Integer, nullable=True)
    minimum_spend_offer_name = db.Column(db.String(255), nullable=True)

    comments = db.Column(db.Text, nullable=True)

    version_count = db.Column(db.Integer, nullable=False, default=0)

    # Attribution
    created_by = db.Column(db.Integer, nullable=False)
    updated_by = db.Column(db.Integer, nullable=True)
    voided_by = db.Column(db.Integer, nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store")
    customer = db.relationship("Customer")
    currency = db.relationship("Currency")
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        order_by="TransactionItem.sort_order",
        cascade="all, delete-orphan",
        lazy=True,
    )
    payments = db.relationship(
        "TransactionPayment",
        backref="transaction",
        order_by="TransactionPayment.row_number",
        cascade="all, delete-orphan",
        lazy=True,
    )
    versions = db.relationship(
        "TransactionVersion",
        backref="transaction",
        order_by="TransactionVersion.version_number",
        lazy="dynamic",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} number={self.transaction_number!r} status={self.status}>"

    @property
    def active_items(self) -> list["TransactionItem"]:
        return [item for item in self.items if not item.is_refunded]

    @property
    def total_discount(self):
        return sum((getattr(self, field) or 0 for field in DISCOUNT_FIELDS), 0)

    def totals_dict(self) -> dict:
        return {field: money_str(getattr(self, field)) for field in MONEY_FIELDS}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "customer_id": self.customer_id,
            "currency_id": self.currency_id,
            "status": self.status.value if self.status else None,
            "checkout_date": to_utc_z(self.checkout_date),
            "tax_percentage": str(self.tax_percentage) if self.tax_percentage is not None else None,
            "tax_inclusive": self.tax_inclusive,
            "customer_discount_percentage": (
                str(self.customer_discount_percentage)
                if self.customer_discount_percentage is not None
                else None
            ),
            "manual_discount_type": self.manual_discount_type,
            "manual_discount_value": (
                money_str(self.manual_discount_value) if self.manual_discount_value is not None else None
            ),
            "bundle_offer_id": self.bundle_offer_id,
            "bundle_offer_name": self.bundle_offer_name,
            "minimum_spend_offer_id": self.minimum_spend_offer_id,
            "minimum_spend_offer_name": self.minimum_spend_offer_name,
            "comments": self.comments,
            "version_count": self.version_count,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "voided_by": self.voided_by,
            "voided_at": to_utc_z(self.voided_at),
            "void_reason": self.void_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        data.update(self.totals_dict())
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class TransactionItem(db.Model):
    """
    Line item on a transaction.

    unit_price, offer and customer discount fields are snapshots taken when the
    line is added or repriced; they are never live-joined to the catalog.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.Index("ix_transaction_items_txn_product", "transaction_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Product snapshots
    product_name = db.Column(db.String(255), nullable=False)
    product_number = db.Column(db.String(64), nullable=False)
    variant_name = db.Column(db.String(255), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Numeric(14, 4), nullable=True)
    unit_price = db.Column(db.Numeric(14, 4), nullable=False)

    # Offer snapshot (offer_discount_amount is per unit)
    offer_id = db.Column(db.Integer, nullable=True)
    offer_name = db.Column(db.String(255), nullable=True)
    offer_discount_type = db.Column(db.String(16), nullable=True)
    offer_discount_value = db.Column(db.Numeric(14, 4), nullable=True)
    offer_discount_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    offer_is_combinable = db.Column(db.Boolean, nullable=True)

    # Effective discounts for the whole line
    offer_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    customer_discount_percentage = db.Column(db.Numeric(5, 2), nullable=True)
    customer_discount_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    line_subtotal = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    line_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    line_total = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    # Refund tracking
    is_refunded = db.Column(db.Boolean, nullable=False, default=False)
    refunded_quantity = db.Column(db.Integer, nullable=False, default=0)
    refund_reason = db.Column(db.String(255), nullable=True)

    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.product_name} ({self.variant_name})"
        return self.product_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_number": self.product_number,
            "variant_name": self.variant_name,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "cost_price": money_str(self.cost_price) if self.cost_price is not None else None,
            "unit_price": money_str(self.unit_price),
            "offer_id": self.offer_id,
            "offer_name": self.offer_name,
            "offer_discount_type": self.offer_discount_type,
            "offer_discount_value": (
                money_str(self.offer_discount_value) if self.offer_discount_value is not None else None
            ),
            "offer_discount_amount": money_str(self.offer_discount_amount),
            "offer_is_combinable": self.offer_is_combinable,
            "offer_discount": money_str(self.offer_discount),
            "customer_discount_percentage": (
                str(self.customer_discount_percentage)
                if self.customer_discount_percentage is not None
                else None
            ),
            "customer_discount_amount": money_str(self.customer_discount_amount),
            "line_subtotal": money_str(self.line_subtotal),
            "line_discount": money_str(self.line_discount),
            "line_total": money_str(self.line_total),
            "is_refunded": self.is_refunded,
            "refunded_quantity": self.refunded_quantity,
            "refund_reason": self.refund_reason,
            "sort_order": self.sort_order,
        }


class TransactionPayment(db.Model):
    """
    Payment row on a transaction.

    Rows exist only while the transaction is open; after completion the set is
    frozen and refunds are tracked on Transaction.refund_amount instead.
    """
    __tablename__ = "transaction_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    payment_mode_id = db.Column(db.Integer, db.ForeignKey("payment_modes.id"), nullable=False)
    payment_mode_name = db.Column(db.String(64), nullable=False)

    amount = db.Column(db.Numeric(14, 4), nullable=False)
    payment_data = db.Column(db.JSON, nullable=True)
    row_number = db.Column(db.Integer, nullable=False)

    # total - amount_paid right after this payment; negative when change is due
    balance_after = db.Column(db.Numeric(14, 4), nullable=False)

    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "payment_mode_id": self.payment_mode_id,
            "payment_mode_name": self.payment_mode_name,
            "amount": money_str(self.amount),
            "payment_data": self.payment_data,
            "row_number": self.row_number,
            "balance_after": money_str(self.balance_after),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class TransactionVersion(db.Model):
    """
    Append-only snapshot of a transaction after one mutating operation.

    IMMUTABLE: rows are never updated or deleted. (transaction_id,
    version_number) is unique so a concurrent duplicate allocation fails the
    unit of work instead of silently forking history.
    """
    __tablename__ = "transaction_versions"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "version_number", name="uq_transaction_versions_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    change_type = db.Column(
        db.Enum(TransactionChangeType, native_enum=False, length=32, values_callable=_enum_values),
        nullable=False,
    )
    changed_by = db.Column(db.Integer, nullable=False)
    change_summary = db.Column(db.String(500), nullable=True)

    snapshot_items = db.Column(db.JSON, nullable=False, default=list)
    snapshot_payments = db.Column(db.JSON, nullable=False, default=list)
    snapshot_totals = db.Column(db.JSON, nullable=False, default=dict)
    diff_data = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "version_number": self.version_number,
            "change_type": self.change_type.value if self.change_type else None,
            "changed_by": self.changed_by,
            "change_summary": self.change_summary,
            "snapshot_items": self.snapshot_items,
            "snapshot_payments": self.snapshot_payments,
            "snapshot_totals": self.snapshot_totals,
            "diff_data": self.diff_data,
            "created_at": to_utc_z(self.created_at),
        }


class TransactionSequence(db.Model):
    """
    Per-store, per-day transaction number counter.

    next_number is bumped with an UPDATE inside the creating unit of work, so
    two registers opening transactions at once never get the same number.
    """
    __tablename__ = "transaction_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "business_date", name="uq_transaction_sequences_store_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
