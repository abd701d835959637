# Overview: Service-layer operations for operating expenses.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Expense
from ..models.accounting import EXPENSE_CATEGORIES
from ..time_utils import today
from ..validation import NotFoundError, ValidationError, enforce_rules_expense
from .concurrency import atomic

EXPENSE_MUTABLE_FIELDS = {"category", "amount_cents", "description", "recipient", "date"}


class ExpenseNotFoundError(NotFoundError):
    """Raised when an expense id does not exist."""


def _get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise ExpenseNotFoundError("expense not found")
    return expense


def _filtered(query, category: str | None, start: date | None, end: date | None):
    if category:
        query = query.filter(Expense.category == category)
    if start is not None:
        query = query.filter(Expense.date >= start)
    if end is not None:
        query = query.filter(Expense.date <= end)
    return query


def create_expense(patch: dict, *, created_by: int | None = None) -> Expense:
    """Record an expense. Date defaults to today; expenses are not ledger entries."""
    if not patch.get("category"):
        raise ValidationError("category is required")
    if patch.get("amount_cents") is None:
        raise ValidationError("amount_cents is required")
    enforce_rules_expense(patch)

    def _op():
        expense = Expense(created_by=created_by)
        for k, v in patch.items():
            if k in EXPENSE_MUTABLE_FIELDS:
                setattr(expense, k, v)
        if expense.date is None:
            expense.date = today()
        db.session.add(expense)
        db.session.flush()
        return expense

    return atomic(_op)


def list_expenses(
    category: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Expense]:
    if category and category not in EXPENSE_CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(EXPENSE_CATEGORIES)}")
    query = _filtered(db.session.query(Expense), category, start, end)
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


def recent_expenses(limit: int = 5) -> list[Expense]:
    return db.session.query(Expense).order_by(Expense.date.desc(), Expense.id.desc()).limit(limit).all()


def get_expense(expense_id: int) -> Expense:
    return _get_expense(expense_id)


def update_expense(expense_id: int, patch: dict) -> Expense:
    enforce_rules_expense(patch)

    def _op():
        expense = _get_expense(expense_id)
        for k, v in patch.items():
            if k in EXPENSE_MUTABLE_FIELDS:
                setattr(expense, k, v)
        if expense.date is None:
            expense.date = today()
        db.session.flush()
        return expense

    return atomic(_op)


def delete_expense(expense_id: int) -> None:
    def _op():
        db.session.delete(_get_expense(expense_id))
        db.session.flush()

    atomic(_op)


def total_expenses(start: date | None = None, end: date | None = None) -> int:
    q = _filtered(db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)), None, start, end)
    return int(q.scalar() or 0)


def expense_summary(start: date | None = None, end: date | None = None) -> dict:
    """Totals per category (every category present, zero when unused) plus the grand total."""
    rows = (
        _filtered(
            db.session.query(Expense.category, func.sum(Expense.amount_cents)),
            None,
            start,
            end,
        )
        .group_by(Expense.category)
        .all()
    )
    by_category = {category: 0 for category in EXPENSE_CATEGORIES}
    for category, amount in rows:
        by_category[category] = int(amount or 0)
    return {
        "by_category": by_category,
        "total_cents": sum(by_category.values()),
    }
