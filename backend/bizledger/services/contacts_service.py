# backend/bizledger/services/contacts_service.py
"""
Contacts Service

MULTI-TENANT: every operation takes the caller's business_id and goes
through tenant_service, so another business's contacts behave as missing.
"""
from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Contact, Transaction, CONTACT_TYPES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_contact,
    validate_payload,
)
from .concurrency import run_with_retry
from .tenant_service import get_owned, scoped_query


CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "type"},
    required_on_create={"name", "email", "phone", "type"},
)


def _clean(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=partial)
    enforce_rules_contact(patch)
    return patch


def list_contacts(business_id: int, contact_type: str | None = None) -> list[Contact]:
    query = scoped_query(Contact, business_id)
    if contact_type is not None:
        if contact_type not in CONTACT_TYPES:
            raise ValidationError("type", 'must be either "customer" or "vendor"')
        query = query.filter(Contact.type == contact_type)
    return query.order_by(Contact.created_at.desc(), Contact.id.desc()).all()


def get_contact(business_id: int, contact_id: int) -> Contact:
    return get_owned(Contact, contact_id, business_id)


def create_contact(business_id: int, payload: dict) -> Contact:
    patch = _clean(payload, partial=False)
    contact = Contact(business_id=business_id, **patch)
    db.session.add(contact)
    db.session.commit()
    return contact


def update_contact(business_id: int, contact_id: int, payload: dict) -> Contact:
    """
    Partial update. Changing a contact's type is allowed; transactions that
    already name the contact keep pointing at it.
    """
    patch = _clean(payload, partial=True)

    def _op():
        contact = get_owned(Contact, contact_id, business_id)
        for key, value in patch.items():
            setattr(contact, key, value)
        db.session.commit()
        return contact

    return run_with_retry(_op)


def delete_contact(business_id: int, contact_id: int) -> None:
    """
    Delete a contact. Transactions naming it survive with the reference nulled.

    The nulling is done explicitly so it holds on SQLite connections where
    foreign key enforcement is off.
    """
    def _op():
        contact = get_owned(Contact, contact_id, business_id)
        for column in (Transaction.customer_id, Transaction.vendor_id):
            db.session.execute(
                update(Transaction)
                .where(Transaction.business_id == business_id, column == contact.id)
                .values({column.key: None, "version_id": Transaction.version_id + 1})
                .execution_options(synchronize_session=False)
            )
        db.session.delete(contact)
        db.session.commit()

    run_with_retry(_op)
