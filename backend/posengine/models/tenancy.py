from __future__ import annotations

from ..extensions import db
from posengine.time_utils import to_utc_z


class Store(db.Model):
    """
    Retail store.

    The store code is embedded in transaction numbers and the tax settings are
    copied onto each transaction when it is created.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=False)

    tax_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_inclusive = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    currencies = db.relationship("Currency", secondary="store_currencies", lazy="select")

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "tax_percentage": str(self.tax_percentage) if self.tax_percentage is not None else None,
            "tax_inclusive": self.tax_inclusive,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Currency(db.Model):
    __tablename__ = "currencies"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_currencies_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(3), nullable=False)
    name = db.Column(db.String(64), nullable=False)
    symbol = db.Column(db.String(8), nullable=True)

    # Settlement precision: tax_amount and total are rounded to this
    decimal_places = db.Column(db.Integer, nullable=False, default=2)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "symbol": self.symbol,
            "decimal_places": self.decimal_places,
            "is_active": self.is_active,
        }


class StoreCurrency(db.Model):
    """A store offers a currency when a row exists here."""
    __tablename__ = "store_currencies"
    __table_args__ = (
        db.UniqueConstraint("store_id", "currency_id", name="uq_store_currencies"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False, index=True)
