# Overview: Inventory ledger; the only code path that changes Product.stock.

from __future__ import annotations

from typing import Iterable

from sqlalchemy import update

from ..extensions import db
from ..models import Product
from .concurrency import begin_write, run_with_retry
from .tenant_service import NotFoundError, get_owned, scoped_query
"""
Inventory ledger invariants (authoritative)

- stock >= 0 for every product at every commit point. The CHECK constraint on
  products backs this up, but the ledger never relies on it.
- A stock change is one conditional statement:
      UPDATE products SET stock = stock + :delta, version_id = version_id + 1
      WHERE id = :id AND business_id = :business AND stock + :delta >= 0
  so the read-modify-write happens inside the database and concurrent
  adjustments of the same product apply in some serial order. No lost updates.
- A batch runs in one database transaction. Either every delta is applied and
  committed, or the transaction is rolled back and no other session ever saw
  any of it.
- Within a batch rows are touched in ascending product id order, so two
  batches cannot wait on each other's row locks in opposite orders.
- Lock contention is retried a bounded number of times (run_with_retry) and
  then surfaces as a retriable PersistenceFailure instead of hanging.
"""


class InsufficientStockError(Exception):
    """Applying the delta would drive the product's stock below zero."""

    def __init__(self, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"available {available}, requested {requested}"
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "available": self.available,
            "requested": self.requested,
        }


def _merge_deltas(deltas: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: dict[int, int] = {}
    for product_id, delta in deltas:
        merged[product_id] = merged.get(product_id, 0) + delta
    return sorted(merged.items())


def _apply_delta(product_id: int, business_id: int, delta: int) -> int:
    """Conditional increment inside the caller's transaction. Returns the new stock."""
    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.business_id == business_id,
            Product.stock + delta >= 0,
        )
        .values(stock=Product.stock + delta, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return db.session.query(Product.stock).filter(Product.id == product_id).scalar()

    available = (
        scoped_query(Product, business_id)
        .filter(Product.id == product_id)
        .with_entities(Product.stock)
        .scalar()
    )
    if available is None:
        raise NotFoundError("Product", product_id)
    raise InsufficientStockError(product_id, available=available, requested=-delta)


def adjust_stock(product_id: int, business_id: int, delta: int) -> int:
    """
    Atomically add `delta` (positive or negative) to one product's stock.

    Returns the new stock. Raises NotFoundError if the business has no such
    product and InsufficientStockError if the result would be negative; in
    both cases nothing is written.
    """
    def _op():
        begin_write()
        new_stock = _apply_delta(product_id, business_id, delta)
        db.session.commit()
        return new_stock

    return run_with_retry(_op)


def adjust_stock_batch(business_id: int, deltas: Iterable[tuple[int, int]]) -> dict[int, int]:
    """
    Apply every (product_id, delta) pair or none of them.

    Several deltas for the same product are summed first, so a sale listing
    one product on two lines is checked against its combined quantity.
    Returns {product_id: new_stock}. The first product that is missing or
    would go negative (in product id order) aborts the batch with
    NotFoundError / InsufficientStockError and the whole batch is rolled back.
    """
    merged = _merge_deltas(deltas)
    if not merged:
        return {}

    def _op():
        begin_write()
        new_levels = {}
        for product_id, delta in merged:
            new_levels[product_id] = _apply_delta(product_id, business_id, delta)
        db.session.commit()
        return new_levels

    return run_with_retry(_op)


def get_stock(product_id: int, business_id: int) -> int:
    return get_owned(Product, product_id, business_id).stock
