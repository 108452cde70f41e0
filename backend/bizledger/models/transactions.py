from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

TRANSACTION_TYPES = ("sale", "purchase")


class Transaction(db.Model):
    """
    A committed sale or purchase.

    A row only exists once its stock effect has been applied (see
    services/transaction_service.py). customer_id is set for sales and
    vendor_id for purchases; both are nulled if the contact is later deleted.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("type IN ('sale', 'purchase')", name="ck_transactions_type"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_transactions_total_nonnegative"),
        db.Index("ix_transactions_business_occurred", "business_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Contact", foreign_keys=[customer_id])
    vendor = db.relationship("Contact", foreign_keys=[vendor_id])
    lines = db.relationship(
        "TransactionLine",
        backref="transaction",
        order_by="TransactionLine.line_number",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} business_id={self.business_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "type": self.type,
            "customer_id": self.customer_id,
            "vendor_id": self.vendor_id,
            "customer": self.customer.summary() if self.customer else None,
            "vendor": self.vendor.summary() if self.vendor else None,
            "lines": [line.to_dict() for line in self.lines],
            "total_amount_cents": self.total_amount_cents,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class TransactionLine(db.Model):
    """Line item on a transaction, kept in the order the client sent them."""
    __tablename__ = "transaction_lines"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_transaction_lines_number"),
        db.CheckConstraint("quantity > 0", name="ck_transaction_lines_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_transaction_lines_price_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_number = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product": self.product.summary() if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
