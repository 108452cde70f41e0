# Overview: JSON envelope helpers shared by every route.

"""
Every response body is an envelope:

    {"success": true,  "data": ...}
    {"success": false, "message": "...", "errors": [...]}   # errors optional

DOMAIN_ERRORS lists the exceptions routes are expected to translate; anything
else is an unexpected failure and becomes an opaque 500.
"""

from flask import jsonify

from .services.concurrency import PersistenceFailure
from .services.inventory_service import InsufficientStockError
from .services.session_service import UnauthorizedError
from .services.tenant_service import NotFoundError
from .validation import ConflictError, ValidationError

DOMAIN_ERRORS = (
    ValidationError,
    ConflictError,
    NotFoundError,
    InsufficientStockError,
    UnauthorizedError,
    PersistenceFailure,
)


def success(data=None, status: int = 200, message: str | None = None):
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def failure(message: str, status: int, errors: list | None = None, **extra):
    body = {"success": False, "message": message}
    if errors is not None:
        body["errors"] = errors
    body.update(extra)
    return jsonify(body), status


def error_response(exc: Exception):
    """Translate one of DOMAIN_ERRORS into its envelope and status code."""
    if isinstance(exc, ValidationError):
        errors = getattr(exc, "errors", None)
        if errors is None and exc.field:
            errors = [{"field": exc.field, "message": exc.reason}]
        return failure(str(exc), 400, errors)

    if isinstance(exc, ConflictError):
        return failure(str(exc), 400)

    if isinstance(exc, NotFoundError):
        return failure(str(exc), 404)

    if isinstance(exc, InsufficientStockError):
        return failure(str(exc), 400, [exc.to_dict()])

    if isinstance(exc, UnauthorizedError):
        return failure(str(exc), 401)

    if isinstance(exc, PersistenceFailure):
        # opaque: storage details stay in the log
        return failure("Internal server error", 500, retriable=exc.retriable)

    raise TypeError(f"{exc.__class__.__name__} is not a domain error")
