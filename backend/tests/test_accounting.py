"""
Accounting aggregator and expense tests.

Verifies:
- Expense validation and per-category summary (zero-filled)
- net_profit == total_sales - total_purchases - total_expenses
- Inclusive date ranges
- Transaction listing filters, entity_type applied after the query
- Ledger rows cannot be edited or deleted through the ORM
"""

import pytest

from dealership.models import Transaction
from dealership.models.accounting import ENTITY_PART, ENTITY_SERVICE, ENTITY_TRACTOR
from dealership.services import accounting_service, expense_service
from dealership.services.dashboard_service import dashboard_summary
from dealership.services.ledger_service import append_transaction
from dealership.services.concurrency import atomic
from dealership.services.parts_service import intake_part, sell_part
from dealership.services.tractor_service import intake_tractor, sell_tractor
from dealership.time_utils import parse_iso_date
from dealership.validation import ValidationError


def _d(value: str):
    return parse_iso_date(value)


def _entry(tx_type, entity_type, amount, on):
    return atomic(lambda: append_transaction(
        type=tx_type,
        entity_type=entity_type,
        entity_id=1,
        amount_cents=amount,
        party_name=None,
        description=None,
        on=_d(on),
    ))


def _expense(category, amount, on, **extra):
    patch = {"category": category, "amount_cents": amount, "date": _d(on)}
    patch.update(extra)
    return expense_service.create_expense(patch)


# =============================================================================
# EXPENSES
# =============================================================================


class TestExpenses:
    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, db_session, amount):
        with pytest.raises(ValidationError):
            _expense("rent", amount, "2024-01-01")

    def test_category_must_be_known(self, db_session):
        with pytest.raises(ValidationError):
            _expense("travel", 100, "2024-01-01")

    def test_date_defaults_to_today_and_creator_recorded(self, db_session, admin_user):
        expense = expense_service.create_expense(
            {"category": "salary", "amount_cents": 50_000, "recipient": "Asha"},
            created_by=admin_user.id,
        )

        assert expense.date is not None
        assert expense.created_by == admin_user.id
        assert expense.recipient == "Asha"

    def test_summary_zero_fills_categories(self, db_session):
        _expense("rent", 30_000, "2024-01-05")
        _expense("rent", 30_000, "2024-02-05")
        _expense("bill", 4_500, "2024-01-20")

        summary = expense_service.expense_summary(_d("2024-01-01"), _d("2024-01-31"))

        assert summary["by_category"] == {"salary": 0, "rent": 30_000, "bill": 4_500, "misc": 0}
        assert summary["total_cents"] == 34_500

    def test_list_filters(self, db_session):
        rent = _expense("rent", 30_000, "2024-01-05")
        bill = _expense("bill", 4_500, "2024-01-20")

        assert [e.id for e in expense_service.list_expenses()] == [bill.id, rent.id]
        assert [e.id for e in expense_service.list_expenses(category="rent")] == [rent.id]
        assert [e.id for e in expense_service.list_expenses(start=_d("2024-01-10"))] == [bill.id]

    def test_update_validates(self, db_session):
        rent = _expense("rent", 30_000, "2024-01-05")

        with pytest.raises(ValidationError):
            expense_service.update_expense(rent.id, {"amount_cents": 0})

        updated = expense_service.update_expense(rent.id, {"amount_cents": 32_000, "description": "January"})
        assert updated.amount_cents == 32_000
        assert updated.description == "January"


# =============================================================================
# PROFIT / LOSS
# =============================================================================


class TestProfitLoss:
    def test_arithmetic(self, db_session):
        _entry("sale", ENTITY_TRACTOR, 1_500_000, "2024-03-01")
        _entry("sale", ENTITY_PART, 6_000, "2024-03-02")
        _entry("purchase", ENTITY_TRACTOR, 1_000_000, "2024-03-01")
        _expense("rent", 30_000, "2024-03-05")
        _expense("salary", 50_000, "2024-03-28")

        report = accounting_service.profit_loss()

        assert report["total_sales_cents"] == 1_506_000
        assert report["total_purchases_cents"] == 1_000_000
        assert report["total_expenses_cents"] == 80_000
        assert report["gross_profit_cents"] == 506_000
        assert report["net_profit_cents"] == (
            report["total_sales_cents"] - report["total_purchases_cents"] - report["total_expenses_cents"]
        )
        assert report["net_profit_cents"] == 426_000

    def test_range_is_inclusive(self, db_session):
        _entry("sale", ENTITY_TRACTOR, 100, "2024-03-01")
        _entry("sale", ENTITY_TRACTOR, 200, "2024-03-31")
        _entry("sale", ENTITY_TRACTOR, 400, "2024-04-01")
        _expense("misc", 10, "2024-03-31")
        _expense("misc", 20, "2024-04-01")

        report = accounting_service.profit_loss(_d("2024-03-01"), _d("2024-03-31"))

        assert report["total_sales_cents"] == 300
        assert report["total_expenses_cents"] == 10
        assert report["net_profit_cents"] == 290
        assert report["start"] == "2024-03-01"

    def test_figures_follow_workflows(self, db_session):
        tractor = intake_tractor({"brand": "Massey", "model": "240", "purchase_price_cents": 1_000_000})
        sell_tractor(tractor.id, sale_price_cents=1_500_000, customer_name="Ravi")
        part = intake_part({"name": "Oil filter", "part_number": "OF-1", "stock_quantity": 5, "unit_price_cents": 1_000})
        sell_part(part.id, 2, "Ravi")

        report = accounting_service.profit_loss()

        assert report["total_sales_cents"] == 1_502_000
        assert report["total_purchases_cents"] == 1_000_000
        assert report["net_profit_cents"] == 502_000


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TestTransactions:
    def test_filters(self, db_session):
        a = _entry("sale", ENTITY_TRACTOR, 100, "2024-03-01")
        b = _entry("sale", ENTITY_SERVICE, 200, "2024-03-02")
        c = _entry("purchase", ENTITY_TRACTOR, 300, "2024-03-03")

        assert [t.id for t in accounting_service.transactions()] == [c.id, b.id, a.id]
        assert [t.id for t in accounting_service.transactions(tx_type="sale")] == [b.id, a.id]
        assert [t.id for t in accounting_service.transactions(entity_type=ENTITY_TRACTOR)] == [c.id, a.id]
        assert [t.id for t in accounting_service.transactions(
            tx_type="sale", entity_type=ENTITY_TRACTOR, start=_d("2024-03-01"), end=_d("2024-03-01"),
        )] == [a.id]

    def test_unknown_filters_rejected(self, db_session):
        with pytest.raises(ValidationError):
            accounting_service.transactions(tx_type="refund")
        with pytest.raises(ValidationError):
            accounting_service.transactions(entity_type="boat")


class TestLedgerIsAppendOnly:
    def test_update_blocked(self, db_session):
        tx = _entry("sale", ENTITY_TRACTOR, 100, "2024-03-01")

        def _edit():
            tx.amount_cents = 1
            db_session.flush()

        with pytest.raises(ValueError):
            atomic(_edit)

        db_session.expire_all()
        assert db_session.get(Transaction, tx.id).amount_cents == 100

    def test_delete_blocked(self, db_session):
        tx = _entry("sale", ENTITY_TRACTOR, 100, "2024-03-01")

        def _remove():
            db_session.delete(tx)
            db_session.flush()

        with pytest.raises(ValueError):
            atomic(_remove)

        assert db_session.query(Transaction).count() == 1


# =============================================================================
# DASHBOARD
# =============================================================================


class TestDashboard:
    def test_summary(self, db_session):
        intake_tractor({"brand": "Massey", "model": "240", "purchase_price_cents": 10})
        sold = intake_tractor({"brand": "Swaraj", "model": "735", "purchase_price_cents": 10})
        sell_tractor(sold.id, sale_price_cents=500, customer_name="Ravi")
        intake_part({"name": "Belt", "part_number": "B-1", "stock_quantity": 1})
        intake_part({"name": "Filter", "part_number": "F-1", "stock_quantity": 50})
        for day in range(1, 8):
            _expense("misc", 100, f"2024-01-0{day}")

        summary = dashboard_summary()

        assert summary["tractors_in_stock"] == 1
        assert summary["low_stock_parts"] == 1
        assert len(summary["recent_expenses"]) == 5
        assert summary["recent_expenses"][0]["date"] == "2024-01-07"
        assert summary["total_sales_cents"] == 500
        assert summary["total_expenses_cents"] == 700
