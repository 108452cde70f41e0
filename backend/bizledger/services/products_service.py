# backend/bizledger/services/products_service.py
"""
Products Service

MULTI-TENANT: All product operations are scoped to the caller's business.
- list_products filters by business_id
- get/update/delete resolve the product through get_owned()

STOCK: only the initial stock is set here. Every later change goes through
inventory_service, which is why `stock` is not in PRODUCT_MUTABLE_FIELDS.
"""
from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Product, TransactionLine
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from .concurrency import run_with_retry
from .inventory_service import adjust_stock
from .tenant_service import get_owned, scoped_query

PRODUCT_MUTABLE_FIELDS = {"name", "description", "price_cents", "category"}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS | {"stock"},
    required_on_create={"name", "price_cents"},
)
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(writable_fields=PRODUCT_MUTABLE_FIELDS)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(business_id: int, *, q: str | None = None, category: str | None = None) -> list[Product]:
    """
    Business-scoped product listing ordered by name.

    q: case-insensitive substring of the name.
    category: exact category match.
    """
    query = scoped_query(Product, business_id)
    if q:
        query = query.filter(Product.name.ilike(f"%{q.strip()}%"))
    if category:
        query = query.filter(Product.category == category.strip())
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(business_id: int, product_id: int) -> Product:
    return get_owned(Product, product_id, business_id)


def create_product(business_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)

    p = Product(business_id=business_id, stock=patch.get("stock") or 0)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()
    return p


def update_product(business_id: int, product_id: int, payload: dict) -> Product:
    """
    Update descriptive fields. A concurrent stock change bumps version_id,
    so this commit then fails with StaleDataError and is retried against the
    fresh row.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)

    def _op():
        p = get_owned(Product, product_id, business_id)
        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op)


def adjust_product_stock(business_id: int, product_id: int, delta: int) -> Product:
    adjust_stock(product_id, business_id, delta)
    return get_owned(Product, product_id, business_id)


def delete_product(business_id: int, product_id: int) -> None:
    """Delete a product. Historical transaction lines keep their rows with product_id nulled."""
    def _op():
        p = get_owned(Product, product_id, business_id)
        db.session.execute(
            update(TransactionLine)
            .where(TransactionLine.product_id == p.id)
            .values(product_id=None)
            .execution_options(synchronize_session=False)
        )
        db.session.delete(p)
        db.session.commit()

    run_with_retry(_op)
