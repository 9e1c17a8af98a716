from __future__ import annotations

from ..extensions import db
from posengine.time_utils import to_utc_z


class InventoryActivityCodes:
    """Short codes classifying inventory ledger movements."""

    SOLD_ITEM = "SI"
    REFUND_ITEM = "RI"
    VOID_ITEM = "VI"
    TRANSACTION_ADJUSTMENT = "TA"
    LOST_ITEM = "LI"
    FOUND_ITEM = "FI"
    STOCKTAKE = "ST"
    DELIVERY_ORDER = "DO"
    PURCHASE_ORDER = "PO"

    LABELS = {
        SOLD_ITEM: "Sold Item",
        REFUND_ITEM: "Refund Item",
        VOID_ITEM: "Void Item",
        TRANSACTION_ADJUSTMENT: "Transaction Adjustment",
        LOST_ITEM: "Lost Item",
        FOUND_ITEM: "Found Item",
        STOCKTAKE: "Stocktake",
        DELIVERY_ORDER: "Delivery Order",
        PURCHASE_ORDER: "Purchase Order",
    }

    # Movements owned by POS transactions; never entered by hand
    TRANSACTION_CODES = frozenset({SOLD_ITEM, REFUND_ITEM, VOID_ITEM})
    MANUAL_CODES = frozenset(LABELS) - TRANSACTION_CODES

    @classmethod
    def all(cls) -> dict[str, str]:
        return dict(cls.LABELS)

    @classmethod
    def label(cls, code: str) -> str:
        return cls.LABELS.get(code, code)

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls.LABELS


class InventoryLog(db.Model):
    """
    Append-only log of stock movements for a product at a store.

    current_quantity is the ProductStore.quantity immediately after the
    movement, written in the same unit of work as the quantity update.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_inventory_logs_store_product_created", "store_id", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    activity_code = db.Column(db.String(4), nullable=False, index=True)
    quantity_in = db.Column(db.Integer, nullable=False, default=0)
    quantity_out = db.Column(db.Integer, nullable=False, default=0)
    current_quantity = db.Column(db.Integer, nullable=False)

    # Source document linkage (at most one is normally set)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)
    stocktake_id = db.Column(db.Integer, nullable=True, index=True)
    delivery_order_id = db.Column(db.Integer, nullable=True, index=True)
    purchase_order_id = db.Column(db.Integer, nullable=True, index=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "activity_code": self.activity_code,
            "activity_label": InventoryActivityCodes.label(self.activity_code),
            "quantity_in": self.quantity_in,
            "quantity_out": self.quantity_out,
            "current_quantity": self.current_quantity,
            "transaction_id": self.transaction_id,
            "stocktake_id": self.stocktake_id,
            "delivery_order_id": self.delivery_order_id,
            "purchase_order_id": self.purchase_order_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
