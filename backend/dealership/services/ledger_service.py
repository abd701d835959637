# Overview: Service-layer operations for the financial ledger (Transaction rows).

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Transaction
from ..time_utils import today
"""
Ledger Invariants (authoritative)

- Append-only: append_transaction is the only writer; rows are never updated
  or deleted (enforced by mapper events on Transaction).
- Entries are flushed inside the caller's unit of work, so an entity change
  and its ledger entry commit or roll back together.
- Date filtering is inclusive on both bounds: start <= date <= end.
- Profit/loss and summary figures are derived from these rows, never from
  the mutable entity tables.
"""


def append_transaction(
    *,
    type: str,
    entity_type: str,
    entity_id: int,
    amount_cents: int,
    party_name: str | None,
    description: str | None,
    on: date | None = None,
) -> Transaction:
    """
    Append one ledger entry.

    No commit here: the workflow that owns the unit of work commits.
    """
    tx = Transaction(
        type=type,
        entity_type=entity_type,
        entity_id=entity_id,
        amount_cents=amount_cents,
        party_name=party_name,
        date=on or today(),
        description=description,
    )
    db.session.add(tx)
    db.session.flush()  # ensures tx.id is assigned without committing
    return tx


def _filter_range(query, start: date | None, end: date | None):
    if start is not None:
        query = query.filter(Transaction.date >= start)
    if end is not None:
        query = query.filter(Transaction.date <= end)
    return query


def total_by_type(tx_type: str, start: date | None = None, end: date | None = None) -> int:
    """Sum of amount_cents for one transaction type over an inclusive date range."""
    q = db.session.query(func.coalesce(func.sum(Transaction.amount_cents), 0)).filter(
        Transaction.type == tx_type,
    )
    q = _filter_range(q, start, end)
    return int(q.scalar() or 0)


def list_transactions(
    tx_type: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Transaction]:
    q = db.session.query(Transaction)
    if tx_type:
        q = q.filter(Transaction.type == tx_type)
    q = _filter_range(q, start, end)
    return q.order_by(Transaction.date.desc(), Transaction.id.desc()).all()


def entries_for(entity_type: str, entity_id: int) -> list[Transaction]:
    """Ledger history of one entity, oldest first."""
    return (
        db.session.query(Transaction)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(Transaction.id.asc())
        .all()
    )
