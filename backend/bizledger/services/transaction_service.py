"""
Transaction Engine: sales and purchases with their stock effect.

Creating a transaction walks an explicit state machine:

    VALIDATING -> RESERVING -> COMMITTING -> COMMITTED
         |            |
         +------------+--> REJECTED

- VALIDATING: pure reads. Type, line items, declared total, counterparty
  (owned contact of the matching type) and every product (owned).
- RESERVING: one all-or-nothing ledger batch, -quantity for sales and
  +quantity for purchases. A refused batch rejects the request with stock
  untouched.
- COMMITTING: the transaction row and its lines are written in a new DB
  transaction. If that fails or the request is aborted, the reservation is
  reversed through the ledger (the inverse batch) before the error propagates;
  storage faults surface as PersistenceFailure.

After commit a transaction's inventory effect is fixed:
- update_transaction never touches stock and refuses edits that would need
  it (changing type, or changing how many units of a product were moved).
- delete_transaction removes the record only; stock is NOT restored. It is
  an administrative correction, not a reversal.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Contact, Product, Transaction, TransactionLine, TRANSACTION_TYPES
from ..validation import MAX_PRICE_CENTS, MAX_QUANTITY, ValidationError, coerce_datetime, coerce_int
from ..time_utils import utcnow
from .concurrency import PersistenceFailure, run_with_retry
from .inventory_service import adjust_stock_batch
from .tenant_service import get_owned, get_owned_many, scoped_query


COUNTERPARTY_FIELD = {"sale": "customer_id", "purchase": "vendor_id"}
COUNTERPARTY_TYPE = {"sale": "customer", "purchase": "vendor"}


class CreationState(enum.Enum):
    VALIDATING = "validating"
    RESERVING = "reserving"
    COMMITTING = "committing"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


def parse_line_items(raw, field: str = "lines") -> list[LineItem]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError(field, "must be a non-empty list")

    items = []
    for i, entry in enumerate(raw):
        prefix = f"{field}[{i}]"
        if not isinstance(entry, dict):
            raise ValidationError(prefix, "must be an object")
        if entry.get("product_id") is None:
            raise ValidationError(f"{prefix}.product_id", "is required")
        if entry.get("quantity") is None:
            raise ValidationError(f"{prefix}.quantity", "is required")
        if entry.get("unit_price_cents") is None:
            raise ValidationError(f"{prefix}.unit_price_cents", "is required")

        product_id = coerce_int(f"{prefix}.product_id", entry["product_id"])
        quantity = coerce_int(f"{prefix}.quantity", entry["quantity"])
        unit_price = coerce_int(f"{prefix}.unit_price_cents", entry["unit_price_cents"])
        if quantity <= 0:
            raise ValidationError(f"{prefix}.quantity", "must be a positive integer")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"{prefix}.quantity", f"cannot exceed {MAX_QUANTITY}")
        if unit_price < 0:
            raise ValidationError(f"{prefix}.unit_price_cents", "must be >= 0")
        if unit_price > MAX_PRICE_CENTS:
            raise ValidationError(f"{prefix}.unit_price_cents", f"cannot exceed {MAX_PRICE_CENTS}")

        items.append(LineItem(product_id=product_id, quantity=quantity, unit_price_cents=unit_price))
    return items


def validate_type(tx_type) -> str:
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError("type", 'must be either "sale" or "purchase"')
    return tx_type


def _resolve_total(items: list[LineItem], declared) -> int:
    computed = sum(item.line_total_cents for item in items)
    if declared is None:
        return computed
    declared = coerce_int("total_amount_cents", declared)
    if declared < 0:
        raise ValidationError("total_amount_cents", "must be a non-negative integer")
    if declared != computed:
        raise ValidationError(
            "total_amount_cents",
            f"does not match the line items (expected {computed})",
        )
    return declared


def _require_counterparty(tx_type: str, counterparty_id, business_id: int) -> Contact:
    field = COUNTERPARTY_FIELD[tx_type]
    if counterparty_id is None:
        raise ValidationError(field, "is required")
    counterparty_id = coerce_int(field, counterparty_id)
    contact_type = COUNTERPARTY_TYPE[tx_type]
    return get_owned(
        Contact, counterparty_id, business_id,
        entity=contact_type.capitalize(), type=contact_type,
    )


def counterparty_from_payload(tx_type: str, payload: dict):
    """
    Pick customer_id or vendor_id depending on the type.

    Sending the other side's field is a client error rather than something to
    silently drop.
    """
    field = COUNTERPARTY_FIELD[tx_type]
    other = COUNTERPARTY_FIELD["purchase" if tx_type == "sale" else "sale"]
    if payload.get(other) is not None:
        raise ValidationError(other, f"is not allowed on a {tx_type}")
    return payload.get(field)


def _persist_transaction(
    *,
    business_id: int,
    tx_type: str,
    counterparty: Contact,
    items: list[LineItem],
    total_amount_cents: int,
    occurred_at: datetime,
) -> Transaction:
    tx = Transaction(
        business_id=business_id,
        type=tx_type,
        customer_id=counterparty.id if tx_type == "sale" else None,
        vendor_id=counterparty.id if tx_type == "purchase" else None,
        total_amount_cents=total_amount_cents,
        occurred_at=occurred_at,
    )
    tx.lines = _build_lines(items)
    db.session.add(tx)
    db.session.commit()
    return tx


def _build_lines(items: list[LineItem]) -> list[TransactionLine]:
    return [
        TransactionLine(
            line_number=i + 1,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=item.line_total_cents,
        )
        for i, item in enumerate(items)
    ]


class TransactionCreation:
    """One create request moving through the creation state machine."""

    def __init__(self, business_id: int, tx_type, counterparty_id, line_items, declared_total=None,
                 occurred_at=None):
        self.business_id = business_id
        self.state = CreationState.VALIDATING
        self._raw = (tx_type, counterparty_id, line_items, declared_total, occurred_at)
        self.tx_type: str | None = None
        self.counterparty: Contact | None = None
        self.items: list[LineItem] = []
        self.total_amount_cents: int | None = None
        self.occurred_at: datetime | None = None
        self.deltas: list[tuple[int, int]] = []
        self.transaction: Transaction | None = None

    def run(self) -> Transaction:
        try:
            self._validate()
            self._reserve()
        except Exception:
            self.state = CreationState.REJECTED
            raise
        return self._commit()

    def _validate(self) -> None:
        tx_type, counterparty_id, line_items, declared_total, occurred_at = self._raw

        self.tx_type = validate_type(tx_type)
        if isinstance(line_items, list) and line_items and all(isinstance(i, LineItem) for i in line_items):
            self.items = list(line_items)
        else:
            self.items = parse_line_items(line_items)
        self.total_amount_cents = _resolve_total(self.items, declared_total)
        self.occurred_at = coerce_datetime("occurred_at", occurred_at) if occurred_at is not None else utcnow()

        self.counterparty = _require_counterparty(self.tx_type, counterparty_id, self.business_id)
        get_owned_many(Product, [item.product_id for item in self.items], self.business_id, entity="Product")

        sign = -1 if self.tx_type == "sale" else 1
        self.deltas = [(item.product_id, sign * item.quantity) for item in self.items]
        self.state = CreationState.RESERVING

    def _reserve(self) -> None:
        adjust_stock_batch(self.business_id, self.deltas)
        self.state = CreationState.COMMITTING

    def _commit(self) -> Transaction:
        try:
            self.transaction = _persist_transaction(
                business_id=self.business_id,
                tx_type=self.tx_type,
                counterparty=self.counterparty,
                items=self.items,
                total_amount_cents=self.total_amount_cents,
                occurred_at=self.occurred_at,
            )
        except BaseException as exc:
            # an aborted request (worker timeout, KeyboardInterrupt) must not
            # leave the reservation applied without its transaction
            db.session.rollback()
            self.state = CreationState.REJECTED
            compensated = self._compensate()
            if isinstance(exc, SQLAlchemyError):
                raise PersistenceFailure(
                    "Could not save transaction", retriable=True, compensated=compensated
                ) from exc
            raise

        self.state = CreationState.COMMITTED
        return self.transaction

    def _compensate(self) -> bool:
        inverse = [(product_id, -delta) for product_id, delta in self.deltas]
        try:
            adjust_stock_batch(self.business_id, inverse)
        except Exception:
            current_app.logger.exception(
                "Compensation failed for %s reservation of business %s; stock deltas %s remain applied",
                self.tx_type, self.business_id, self.deltas,
            )
            return False
        current_app.logger.warning(
            "Transaction commit failed for business %s; reversed %s reservation %s",
            self.business_id, self.tx_type, self.deltas,
        )
        return True


def create_transaction(
    business_id: int,
    tx_type,
    counterparty_id,
    line_items,
    declared_total=None,
    *,
    occurred_at=None,
) -> Transaction:
    """
    Validate, reserve stock and persist a sale or purchase.

    Raises ValidationError / NotFoundError / InsufficientStockError with no
    side effects, or PersistenceFailure after compensating the reservation.
    """
    return TransactionCreation(
        business_id, tx_type, counterparty_id, line_items, declared_total, occurred_at
    ).run()


def _quantity_totals(items) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def get_transaction(business_id: int, transaction_id: int) -> Transaction:
    return get_owned(Transaction, transaction_id, business_id)


def list_transactions(business_id: int, tx_type: str | None = None) -> list[Transaction]:
    query = scoped_query(Transaction, business_id)
    if tx_type is not None:
        query = query.filter(Transaction.type == validate_type(tx_type))
    return query.order_by(Transaction.occurred_at.desc(), Transaction.id.desc()).all()


UPDATABLE_FIELDS = {"type", "customer_id", "vendor_id", "lines", "total_amount_cents", "occurred_at"}


def update_transaction(business_id: int, transaction_id: int, patch: dict) -> Transaction:
    """
    Edit a committed transaction without touching inventory.

    - type can only be restated with its current value.
    - the counterparty can change, to another owned contact of the right type.
    - lines can be replaced if every product keeps the same total quantity
      (prices, order and splitting may change). Products must be owned.
    - the total is recomputed from the lines; a declared total must match.
    """
    if not isinstance(patch, dict):
        raise ValidationError(None, "Invalid JSON payload")
    for key in patch:
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(key, "is not allowed")

    def _op():
        tx = get_owned(Transaction, transaction_id, business_id)

        if "type" in patch and patch["type"] != tx.type:
            validate_type(patch["type"])
            raise ValidationError("type", "cannot be changed after the transaction is committed")

        counterparty_id = counterparty_from_payload(tx.type, patch)
        if COUNTERPARTY_FIELD[tx.type] in patch:
            contact = _require_counterparty(tx.type, counterparty_id, business_id)
            if tx.type == "sale":
                tx.customer_id = contact.id
            else:
                tx.vendor_id = contact.id

        if "lines" in patch:
            items = parse_line_items(patch["lines"])
            get_owned_many(Product, [item.product_id for item in items], business_id, entity="Product")
            if _quantity_totals(items) != _quantity_totals(tx.lines):
                raise ValidationError(
                    "lines", "cannot change product quantities after the transaction is committed"
                )
            # old rows must be gone before new ones reuse their line numbers
            tx.lines = []
            db.session.flush()
            tx.lines = _build_lines(items)
        else:
            items = [
                LineItem(line.product_id, line.quantity, line.unit_price_cents) for line in tx.lines
            ]

        tx.total_amount_cents = _resolve_total(items, patch.get("total_amount_cents"))

        if patch.get("occurred_at") is not None:
            tx.occurred_at = coerce_datetime("occurred_at", patch["occurred_at"])

        db.session.commit()
        return tx

    return run_with_retry(_op)


def delete_transaction(business_id: int, transaction_id: int) -> None:
    """Remove the record and its lines. Stock is deliberately left as it is."""
    def _op():
        tx = get_owned(Transaction, transaction_id, business_id)
        db.session.delete(tx)
        db.session.commit()

    run_with_retry(_op)
