from __future__ import annotations

from ..extensions import db
from posengine.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    discount_percentage is copied onto the transaction when the customer is
    attached; later edits to the customer do not reprice open transactions
    until the discount is restored or the customer is set again.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "discount_percentage": str(self.discount_percentage) if self.discount_percentage is not None else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class PaymentMode(db.Model):
    """Tender type offered at the register (cash, card, voucher...)."""
    __tablename__ = "payment_modes"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_payment_modes_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "is_active": self.is_active}
