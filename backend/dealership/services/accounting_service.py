# Overview: Read-only accounting rollups over the ledger and expenses.

"""
Reporting rules:
- Every figure is derived from Transaction rows (sales/purchases) and
  Expense rows (operating costs). Entity tables are never consulted.
- Date ranges are inclusive on both ends; an omitted bound is open.
- net_profit == total_sales - total_purchases - total_expenses exactly.

Authorization (admin-only profit/loss) is enforced by the routes.
"""

from __future__ import annotations

from datetime import date

from ..models import Transaction
from ..models.accounting import TRANSACTION_SALE, TRANSACTION_PURCHASE
from ..validation import validate_transaction_filters
from .expense_service import expense_summary
from .ledger_service import list_transactions, total_by_type


def profit_loss(start: date | None = None, end: date | None = None) -> dict:
    total_sales = total_by_type(TRANSACTION_SALE, start, end)
    total_purchases = total_by_type(TRANSACTION_PURCHASE, start, end)
    total_expenses = expense_summary(start, end)["total_cents"]

    gross_profit = total_sales - total_purchases
    return {
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "total_sales_cents": total_sales,
        "total_purchases_cents": total_purchases,
        "total_expenses_cents": total_expenses,
        "gross_profit_cents": gross_profit,
        "net_profit_cents": gross_profit - total_expenses,
    }


def transactions(
    tx_type: str | None = None,
    entity_type: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Transaction]:
    """Ledger listing: type/date filtered in the query, entity_type afterwards."""
    validate_transaction_filters(tx_type, entity_type)
    rows = list_transactions(tx_type, start, end)
    if entity_type:
        rows = [tx for tx in rows if tx.entity_type == entity_type]
    return rows
