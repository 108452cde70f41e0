# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/bizledger/routes/products.py
"""
Product management routes.

MULTI-TENANT: All product operations are scoped to the caller's business
via g.business_id (set by @require_auth).

STOCK: PUT cannot change stock. Use PATCH /<id>/stock with {"delta": n},
which goes through the inventory ledger and refuses to go below zero.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..responses import DOMAIN_ERRORS, success, failure, error_response
from ..services import products_service
from ..validation import enforce_rules_stock_delta

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products ordered by name.

    Query params:
    - q: str (optional) - case-insensitive name search
    - category: str (optional) - exact category
    """
    try:
        products = products_service.list_products(
            g.business_id,
            q=request.args.get("q"),
            category=request.args.get("category"),
        )
    except Exception:
        current_app.logger.exception("Failed to list products")
        return failure("Internal server error", 500)

    return success([p.to_dict() for p in products])


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True)
    try:
        product = products_service.create_product(g.business_id, payload)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return failure("Internal server error", 500)

    return success(product.to_dict(), 201)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(g.business_id, product_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get product %s", product_id)
        return failure("Internal server error", 500)

    return success(product.to_dict())


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True)
    try:
        product = products_service.update_product(g.business_id, product_id, payload)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return failure("Internal server error", 500)

    return success(product.to_dict())


@products_bp.patch("/<int:product_id>/stock")
@require_auth
def adjust_stock_route(product_id: int):
    """
    Manual stock correction: {"delta": n}, n a non-zero integer.

    400 with the available quantity if the result would be negative.
    """
    payload = request.get_json(silent=True) or {}
    try:
        delta = enforce_rules_stock_delta(payload)
        product = products_service.adjust_product_stock(g.business_id, product_id, delta)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock for product %s", product_id)
        return failure("Internal server error", 500)

    return success(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(g.business_id, product_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return failure("Internal server error", 500)

    return success(message="Product removed")
