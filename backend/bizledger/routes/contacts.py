# Overview: Flask API routes for contacts; parses input and returns JSON responses.

# backend/bizledger/routes/contacts.py
"""
Customer and vendor management routes.

MULTI-TENANT: every route is scoped to g.business_id (set by @require_auth);
a contact of another business answers 404.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..responses import DOMAIN_ERRORS, success, failure, error_response
from ..services import contacts_service

contacts_bp = Blueprint("contacts", __name__, url_prefix="/api/contacts")


@contacts_bp.get("")
@require_auth
def list_contacts_route():
    """
    Query params:
    - type: "customer" or "vendor" (optional)
    """
    try:
        contacts = contacts_service.list_contacts(g.business_id, request.args.get("type") or None)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list contacts")
        return failure("Internal server error", 500)

    return success([c.to_dict() for c in contacts])


@contacts_bp.post("")
@require_auth
def create_contact_route():
    payload = request.get_json(silent=True)
    try:
        contact = contacts_service.create_contact(g.business_id, payload)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create contact")
        return failure("Internal server error", 500)

    return success(contact.to_dict(), 201)


@contacts_bp.get("/<int:contact_id>")
@require_auth
def get_contact_route(contact_id: int):
    try:
        contact = contacts_service.get_contact(g.business_id, contact_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get contact %s", contact_id)
        return failure("Internal server error", 500)

    return success(contact.to_dict())


@contacts_bp.put("/<int:contact_id>")
@require_auth
def update_contact_route(contact_id: int):
    payload = request.get_json(silent=True)
    try:
        contact = contacts_service.update_contact(g.business_id, contact_id, payload)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update contact %s", contact_id)
        return failure("Internal server error", 500)

    return success(contact.to_dict())


@contacts_bp.delete("/<int:contact_id>")
@require_auth
def delete_contact_route(contact_id: int):
    try:
        contacts_service.delete_contact(g.business_id, contact_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete contact %s", contact_id)
        return failure("Internal server error", 500)

    return success(message="Contact removed")
