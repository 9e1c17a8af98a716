from __future__ import annotations

from ..extensions import db
from posengine.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data (read-only for the transaction engine).

    Descriptive fields are snapshotted onto transaction items so later catalog
    edits do not rewrite sales history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("product_number", name="uq_products_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_number = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(255), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} number={self.product_number!r} name={self.name!r}>"

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.name} ({self.variant_name})"
        return self.name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_number": self.product_number,
            "name": self.name,
            "variant_name": self.variant_name,
            "barcode": self.barcode,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ProductPrice(db.Model):
    """Base catalog price of a product in one currency."""
    __tablename__ = "product_prices"
    __table_args__ = (
        db.UniqueConstraint("product_id", "currency_id", name="uq_product_prices_product_currency"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False, index=True)
    unit_price = db.Column(db.Numeric(14, 4), nullable=True)
    cost_price = db.Column(db.Numeric(14, 4), nullable=True)


class ProductStore(db.Model):
    """
    Store-level product record holding the stock level.

    quantity is a signed running balance; every change to it goes through
    inventory_service.adjust_stock so each movement has an InventoryLog row.
    """
    __tablename__ = "product_stores"
    __table_args__ = (
        db.UniqueConstraint("product_id", "store_id", name="uq_product_stores_product_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")
    store_prices = db.relationship("ProductStorePrice", backref="product_store", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductStorePrice(db.Model):
    """Store-specific override price; wins over ProductPrice when active."""
    __tablename__ = "product_store_prices"
    __table_args__ = (
        db.UniqueConstraint("product_store_id", "currency_id", name="uq_product_store_prices_currency"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_store_id = db.Column(db.Integer, db.ForeignKey("product_stores.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False, index=True)
    unit_price = db.Column(db.Numeric(14, 4), nullable=True)
    cost_price = db.Column(db.Numeric(14, 4), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
