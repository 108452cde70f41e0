"""
Multi-Tenant Service: the single scoping accessor for business-owned rows.

SECURITY INVARIANTS:
1. Every authenticated request has g.business_id set by @require_auth
2. business_id is never read from client input
3. Every query on Contact, Product or Transaction goes through
   scoped_query() / get_owned(), which refuse to run without a business id
4. A row owned by another business is reported exactly like a missing row

USAGE:
    from bizledger.services.tenant_service import get_owned, scoped_query

    product = get_owned(Product, product_id, g.business_id)
    contacts = scoped_query(Contact, g.business_id).filter_by(type="vendor").all()
"""

from flask import g
from ..extensions import db


class NotFoundError(LookupError):
    """Entity absent, or owned by another business (indistinguishable on purpose)."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


def get_current_business_id() -> int:
    """
    Business id of the authenticated caller.

    Raises LookupError if called outside @require_auth.
    """
    business_id = getattr(g, "business_id", None)
    if business_id is None:
        raise LookupError("Business context not established")
    return business_id


def scoped_query(model, business_id: int):
    """
    Base query for `model` restricted to one business.

    business_id is mandatory: there is no unscoped variant.
    """
    if business_id is None:
        raise ValueError("business_id is required for scoped queries")
    return db.session.query(model).filter(model.business_id == business_id)


def get_owned(model, entity_id, business_id: int, *, entity: str | None = None, **filters):
    """
    Fetch one row by id owned by `business_id`, or raise NotFoundError.

    Extra keyword filters narrow the match (e.g. type="customer"); a row that
    exists but fails them is also NotFound.
    """
    label = entity or model.__name__
    if entity_id is None or isinstance(entity_id, bool) or not isinstance(entity_id, int):
        raise NotFoundError(label, entity_id)
    # ids are 64-bit; anything wider cannot exist and would not bind
    if entity_id.bit_length() > 63:
        raise NotFoundError(label, entity_id)

    row = scoped_query(model, business_id).filter(model.id == entity_id).filter_by(**filters).first()
    if row is None:
        raise NotFoundError(label, entity_id)
    return row


def get_owned_many(model, entity_ids, business_id: int, *, entity: str | None = None) -> dict:
    """
    Fetch several rows by id, all owned by `business_id`.

    Returns {id: row}. The first id that does not resolve raises NotFoundError.
    """
    wanted = list(dict.fromkeys(entity_ids))
    if not wanted:
        return {}

    rows = scoped_query(model, business_id).filter(model.id.in_(wanted)).all()
    by_id = {row.id: row for row in rows}
    for entity_id in wanted:
        if entity_id not in by_id:
            raise NotFoundError(entity or model.__name__, entity_id)
    return by_id
