from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

CONTACT_TYPES = ("customer", "vendor")


class Contact(db.Model):
    """
    A customer or vendor of one business.

    The type decides which side of a transaction the contact may appear on:
    customers on sales, vendors on purchases.
    """
    __tablename__ = "contacts"
    __table_args__ = (
        db.CheckConstraint("type IN ('customer', 'vendor')", name="ck_contacts_type"),
        db.Index("ix_contacts_business_type", "business_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Contact id={self.id} type={self.type} business_id={self.business_id}>"

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
