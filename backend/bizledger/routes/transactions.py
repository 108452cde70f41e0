# Overview: Flask API routes for sales and purchases; parses input and returns JSON responses.

# backend/bizledger/routes/transactions.py
"""
Transaction routes.

MULTI-TENANT: scoped to g.business_id. Counterparties and products named in
a payload must belong to the caller's business or the request is a 404.

POST body:
    {
      "type": "sale" | "purchase",
      "customer_id": int,          # sales
      "vendor_id": int,            # purchases
      "lines": [{"product_id", "quantity", "unit_price_cents"}, ...],  # or "products"
      "total_amount_cents": int,   # optional, must match the lines
      "occurred_at": ISO-8601      # optional
    }

Stock is adjusted on create only. PUT edits never touch stock and DELETE
does not restore it.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..responses import DOMAIN_ERRORS, success, failure, error_response
from ..services import transaction_service
from ..validation import ValidationError

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Query params:
    - type: "sale" or "purchase" (optional)
    """
    try:
        transactions = transaction_service.list_transactions(g.business_id, request.args.get("type") or None)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return failure("Internal server error", 500)

    return success([t.to_dict() for t in transactions])


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    payload = request.get_json(silent=True)
    try:
        if not isinstance(payload, dict):
            raise ValidationError(None, "Invalid JSON payload")
        tx_type = payload.get("type")
        transaction_service.validate_type(tx_type)
        tx = transaction_service.create_transaction(
            g.business_id,
            tx_type,
            transaction_service.counterparty_from_payload(tx_type, payload),
            payload.get("lines", payload.get("products")),
            payload.get("total_amount_cents"),
            occurred_at=payload.get("occurred_at"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return failure("Internal server error", 500)

    return success(tx.to_dict(), 201)


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    try:
        tx = transaction_service.get_transaction(g.business_id, transaction_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transaction %s", transaction_id)
        return failure("Internal server error", 500)

    return success(tx.to_dict())


@transactions_bp.put("/<int:transaction_id>")
@require_auth
def update_transaction_route(transaction_id: int):
    payload = request.get_json(silent=True)
    try:
        tx = transaction_service.update_transaction(g.business_id, transaction_id, payload)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update transaction %s", transaction_id)
        return failure("Internal server error", 500)

    return success(tx.to_dict())


@transactions_bp.delete("/<int:transaction_id>")
@require_auth
def delete_transaction_route(transaction_id: int):
    try:
        transaction_service.delete_transaction(g.business_id, transaction_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete transaction %s", transaction_id)
        return failure("Internal server error", 500)

    return success(message="Transaction removed")
