from __future__ import annotations
from datetime import datetime

from dataclasses import dataclass
from typing import Any

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Largest quantity a single line or manual stock adjustment may move
MAX_QUANTITY = 1_000_000

# Signed 64-bit INTEGER columns
MAX_DB_INT = 2**63 - 1


class ValidationError(ValueError):
    """400-level input problem, tied to the offending field when there is one."""

    def __init__(self, field: str | None, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field} {reason}" if field else reason)


class ConflictError(ValueError):
    """Business rule conflict (e.g., duplicate email)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _in_db_range(field: str, value: int) -> int:
    if not -MAX_DB_INT - 1 <= value <= MAX_DB_INT:
        raise ValidationError(field, "is out of range")
    return value


def coerce_int(field: str, value: Any) -> int:
    """Strict integer coercion: ints and plain digit strings that fit a 64-bit column."""
    # bool is a subclass of int
    if isinstance(value, int) and not isinstance(value, bool):
        return _in_db_range(field, value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(field, "must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(field, "must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(field, "must be an integer (no decimals)")
        try:
            parsed = int(stripped)
        except ValueError:
            raise ValidationError(field, "must be an integer") from None
        return _in_db_range(field, parsed)
    if isinstance(value, float):
        raise ValidationError(field, "must be an integer, not a decimal")
    raise ValidationError(field, "must be an integer")


def coerce_datetime(field: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(field, "must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(field, "must be an ISO-8601 datetime")
        return dt
    raise ValidationError(field, "must be a datetime")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, DateTime):
        return coerce_datetime(col.key, value)

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(col.key, "must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError(None, "Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) is None)
        if missing:
            raise ValidationError(missing[0], "is required")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(k, "is not allowed")
        if k not in cols:
            raise ValidationError(k, "is not a known field")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(k, "cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(k, f"exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def normalize_email(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a valid email address")
    try:
        result = validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError(field, "must be a valid email address")
    return result.normalized.lower()


def _min_length(patch: dict, field: str, length: int) -> None:
    if field in patch and patch[field] is not None:
        if len(patch[field]) < length:
            raise ValidationError(field, f"must be at least {length} characters long")


def enforce_rules_contact(patch: dict) -> None:
    _min_length(patch, "name", 2)
    _min_length(patch, "phone", 5)
    if "address" in patch and patch["address"] == "":
        patch["address"] = None
    _min_length(patch, "address", 3)
    if "email" in patch:
        patch["email"] = normalize_email("email", patch["email"])
    if "type" in patch and patch["type"] not in ("customer", "vendor"):
        raise ValidationError("type", 'must be either "customer" or "vendor"')


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _min_length(patch, "name", 2)
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents", "must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError("price_cents", f"cannot exceed {MAX_PRICE_CENTS}")
    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock", "must be a non-negative integer")
    if "category" in patch and patch["category"] == "":
        raise ValidationError("category", "must not be empty")


def enforce_rules_stock_delta(payload: dict) -> int:
    if "delta" not in payload or payload["delta"] is None:
        raise ValidationError("delta", "is required")
    delta = coerce_int("delta", payload["delta"])
    if delta == 0:
        raise ValidationError("delta", "must be a non-zero integer")
    if abs(delta) > MAX_QUANTITY:
        raise ValidationError("delta", f"cannot exceed {MAX_QUANTITY} in either direction")
    return delta
