# Overview: Spare part stock workflow: intake, stock adjustment, direct sales.

"""
Stock Invariants (authoritative)

- stock_quantity never goes negative. try_adjust_stock is the only code path
  that moves stock; it rejects a change that would go below zero before any
  write happens.
- Read-modify-write is guarded twice: the row is read with FOR UPDATE (where
  the database honours it) and the flush is a compare-and-swap on version_id.
  A lost race raises ConcurrencyConflictError instead of overwriting.
- A direct sale appends one sale entry of unit_price * quantity in the same
  unit of work as the stock decrement.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import SparePart, Transaction
from ..models.accounting import TRANSACTION_SALE, ENTITY_PART
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_positive_quantity,
    enforce_rules_part,
    require_text,
)
from .concurrency import atomic, lock_for_update
from .ledger_service import append_transaction

PART_MUTABLE_FIELDS = {"name", "part_number", "category", "unit_price_cents", "min_stock"}


class PartNotFoundError(NotFoundError):
    """Raised when a spare part id does not exist."""


class InsufficientStockError(ConflictError):
    """Raised when a stock change would make stock_quantity negative."""


class DuplicatePartNumberError(ConflictError):
    """Raised when a part number is already used by another part."""


def _get_part(part_id: int, *, lock: bool = False, label: str | None = None) -> SparePart:
    query = db.session.query(SparePart).filter_by(id=part_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    part = query.first()
    if part is None:
        raise PartNotFoundError(f"part not found: {label or part_id}")
    return part


def _duplicate_part_number(part_number: str) -> DuplicatePartNumberError:
    return DuplicatePartNumberError(
        f"part number {part_number} already exists",
        details={"part_number": part_number},
    )


def _ensure_unique_part_number(part_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(SparePart.id).filter(SparePart.part_number == part_number)
    if exclude_id is not None:
        query = query.filter(SparePart.id != exclude_id)
    if query.first() is not None:
        raise _duplicate_part_number(part_number)


def try_adjust_stock(part_id: int, delta: int, *, label: str | None = None) -> SparePart:
    """
    Apply delta to a part's stock inside the caller's unit of work.

    Returns the part with its new quantity, or raises PartNotFoundError /
    InsufficientStockError without writing anything. No commit.
    """
    part = _get_part(part_id, lock=True, label=label)

    new_quantity = part.stock_quantity + delta
    if new_quantity < 0:
        raise InsufficientStockError(
            f"insufficient stock for part: {label or part.name}",
            details={
                "part_id": part.id,
                "part_name": part.name,
                "requested_quantity": -delta,
                "available_quantity": part.stock_quantity,
            },
        )

    part.stock_quantity = new_quantity
    db.session.flush()  # version_id compare-and-swap happens here
    return part


def intake_part(patch: dict) -> SparePart:
    """Register a new spare part. Requires non-empty name and part number."""
    require_text(patch, "name", "part_number")
    enforce_rules_part(patch)

    def _op():
        _ensure_unique_part_number(patch["part_number"])
        part = SparePart(
            name=patch["name"],
            part_number=patch["part_number"],
            category=patch.get("category"),
            stock_quantity=patch.get("stock_quantity") or 0,
            unit_price_cents=patch.get("unit_price_cents") or 0,
            min_stock=5 if patch.get("min_stock") is None else patch["min_stock"],
        )
        db.session.add(part)
        db.session.flush()
        return part

    part = atomic(_op, unique_errors={"part_number": lambda: _duplicate_part_number(patch["part_number"])})
    current_app.logger.info("Part %s intake: %s (%s in stock)", part.id, part.part_number, part.stock_quantity)
    return part


def adjust_stock(part_id: int, delta: int) -> SparePart:
    """Manual restock or correction. Writes no ledger entry."""
    if delta is None or isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("quantity_delta must be an integer")
    if delta == 0:
        raise ValidationError("quantity_delta must be non-zero")

    try:
        part = atomic(lambda: try_adjust_stock(part_id, delta))
    except InsufficientStockError:
        current_app.logger.warning("Rejected stock adjustment of %s on part %s", delta, part_id)
        raise
    current_app.logger.info("Part %s stock adjusted by %s to %s", part_id, delta, part.stock_quantity)
    return part


def sell_part(part_id: int, quantity: int, customer_name: str | None) -> tuple[SparePart, Transaction]:
    """
    Sell parts over the counter.

    Decrements stock and appends a sale entry of unit_price * quantity.
    """
    enforce_positive_quantity(quantity)
    customer_name = (customer_name or "").strip() or None

    def _op():
        part = try_adjust_stock(part_id, -quantity)
        tx = append_transaction(
            type=TRANSACTION_SALE,
            entity_type=ENTITY_PART,
            entity_id=part.id,
            amount_cents=part.unit_price_cents * quantity,
            party_name=customer_name,
            description=f"{part.name} x{quantity}",
        )
        return part, tx

    try:
        part, tx = atomic(_op)
    except InsufficientStockError:
        current_app.logger.warning("Rejected sale of %s units of part %s: insufficient stock", quantity, part_id)
        raise
    current_app.logger.info("Part %s sold x%s for %s cents", part.id, quantity, tx.amount_cents)
    return part, tx


def list_parts(low_stock: bool = False) -> list[SparePart]:
    if low_stock:
        return low_stock_parts()
    return db.session.query(SparePart).order_by(SparePart.name.asc(), SparePart.id.asc()).all()


def low_stock_parts() -> list[SparePart]:
    """Parts at or below their minimum, most urgent (lowest stock) first."""
    return (
        db.session.query(SparePart)
        .filter(SparePart.stock_quantity <= SparePart.min_stock)
        .order_by(SparePart.stock_quantity.asc(), SparePart.name.asc())
        .all()
    )


def get_part(part_id: int) -> SparePart:
    return _get_part(part_id)


def update_part(part_id: int, patch: dict) -> SparePart:
    """Update descriptive fields. Stock is not writable here."""
    if "stock_quantity" in patch:
        raise ValidationError("stock_quantity cannot be updated directly; use the stock adjustment endpoint")
    enforce_rules_part(patch)

    def _op():
        part = _get_part(part_id, lock=True)
        if "part_number" in patch and patch["part_number"] != part.part_number:
            _ensure_unique_part_number(patch["part_number"], exclude_id=part.id)
        for k, v in patch.items():
            if k in PART_MUTABLE_FIELDS:
                setattr(part, k, v)
        db.session.flush()
        return part

    return atomic(_op, unique_errors={"part_number": lambda: _duplicate_part_number(patch.get("part_number"))})


def delete_part(part_id: int) -> None:
    def _op():
        part = _get_part(part_id, lock=True)
        db.session.delete(part)
        db.session.flush()

    atomic(_op)
    current_app.logger.info("Part %s deleted", part_id)
