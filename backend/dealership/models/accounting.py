from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date

EXPENSE_CATEGORIES = ("salary", "rent", "bill", "misc")

TRANSACTION_SALE = "sale"
TRANSACTION_PURCHASE = "purchase"
TRANSACTION_TYPES = (TRANSACTION_SALE, TRANSACTION_PURCHASE)

ENTITY_TRACTOR = "tractor"
ENTITY_PART = "part"
ENTITY_SERVICE = "service"
ENTITY_TYPES = (ENTITY_TRACTOR, ENTITY_PART, ENTITY_SERVICE)


class Expense(db.Model):
    """Operating cost of the dealership (salaries, rent, bills, misc)."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        db.Index("ix_expenses_category_date", "category", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    category = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    # For salaries
    recipient = db.Column(db.String(128), nullable=True)

    date = db.Column(db.Date, nullable=False, index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    creator = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "recipient": self.recipient,
            "date": to_iso_date(self.date),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class Transaction(db.Model):
    """
    Financial ledger entry (system of record).

    Invariants (authoritative):
    - Append-only: rows are inserted by workflows and never updated or deleted.
    - Written in the same DB transaction as the entity change they record.
    - entity_id is a plain integer (no FK) so deleting an entity never
      touches its history.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_date", "type", "date"),
        db.Index("ix_transactions_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(16), nullable=False)
    entity_type = db.Column(db.String(16), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    party_name = db.Column(db.String(128), nullable=True)
    date = db.Column(db.Date, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "amount_cents": self.amount_cents,
            "party_name": self.party_name,
            "date": to_iso_date(self.date),
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(Transaction, "before_update")
def _transaction_is_append_only(mapper, connection, target: Transaction):
    raise ValueError("ledger transactions are append-only and cannot be updated")


@event.listens_for(Transaction, "before_delete")
def _transaction_cannot_be_deleted(mapper, connection, target: Transaction):
    raise ValueError("ledger transactions are append-only and cannot be deleted")
