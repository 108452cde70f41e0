from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Sellable/purchasable item of one business.

    STOCK: `stock` is a versioned counter owned by the inventory ledger
    (services/inventory_service.py). Nothing else writes it after creation;
    the ledger changes it with a single conditional UPDATE and bumps
    version_id, so ORM writes racing a stock change fail with StaleDataError
    instead of overwriting it.

    Prices are stored in integer cents.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonnegative"),
        db.Index("ix_products_business_name", "business_id", "name"),
        db.Index("ix_products_business_category", "business_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(128), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock} business_id={self.business_id}>"

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "price_cents": self.price_cents}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "category": self.category,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
