# Overview: Dashboard figures for the landing page.

from __future__ import annotations

from ..extensions import db
from ..models import SparePart, Tractor
from ..models.inventory import TRACTOR_IN_STOCK
from ..models.accounting import TRANSACTION_SALE
from .expense_service import recent_expenses, total_expenses
from .ledger_service import total_by_type


def dashboard_summary() -> dict:
    tractors_in_stock = db.session.query(Tractor).filter(Tractor.status == TRACTOR_IN_STOCK).count()
    low_stock = db.session.query(SparePart).filter(SparePart.stock_quantity <= SparePart.min_stock).count()

    return {
        "tractors_in_stock": tractors_in_stock,
        "low_stock_parts": low_stock,
        "recent_expenses": [e.to_dict() for e in recent_expenses(5)],
        "total_sales_cents": total_by_type(TRANSACTION_SALE),
        "total_expenses_cents": total_expenses(),
    }
