"""
Parts stock workflow tests.

Verifies:
- Stock never goes negative; a rejected change leaves stock untouched
- Direct sale decrements stock and appends one sale entry
- Low-stock listing is inclusive of min_stock and ordered by stock
- A stale write (version_id mismatch) surfaces as a conflict
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from dealership.extensions import db
from dealership.models import SparePart, Transaction
from dealership.models.accounting import ENTITY_PART, TRANSACTION_SALE
from dealership.services import parts_service
from dealership.services.concurrency import ConcurrencyConflictError, atomic
from dealership.services.parts_service import (
    DuplicatePartNumberError,
    InsufficientStockError,
    PartNotFoundError,
    adjust_stock,
    get_part,
    intake_part,
    list_parts,
    low_stock_parts,
    sell_part,
    update_part,
)
from dealership.validation import ValidationError


def _part(**overrides):
    patch = {
        "name": "Oil filter",
        "part_number": "OF-100",
        "category": "filters",
        "stock_quantity": 10,
        "unit_price_cents": 1_500,
        "min_stock": 3,
    }
    patch.update(overrides)
    return intake_part(patch)


# =============================================================================
# INTAKE / UPDATE
# =============================================================================


class TestIntake:
    def test_defaults(self, db_session):
        part = intake_part({"name": "Belt", "part_number": "B-1"})

        assert part.stock_quantity == 0
        assert part.unit_price_cents == 0
        assert part.min_stock == 5
        assert _no_ledger(db_session)

    @pytest.mark.parametrize("missing", ["name", "part_number"])
    def test_requires_name_and_part_number(self, db_session, missing):
        with pytest.raises(ValidationError):
            _part(**{missing: ""})

    def test_negative_stock_rejected(self, db_session):
        with pytest.raises(ValidationError):
            _part(stock_quantity=-1)

    def test_duplicate_part_number(self, db_session):
        _part()
        with pytest.raises(DuplicatePartNumberError):
            _part(name="Other filter")

    def test_update_cannot_touch_stock(self, db_session):
        part = _part()

        with pytest.raises(ValidationError):
            update_part(part.id, {"stock_quantity": 99})

        assert get_part(part.id).stock_quantity == 10

    def test_update_descriptive_fields(self, db_session):
        part = _part()

        updated = update_part(part.id, {"unit_price_cents": 1_800, "category": "engine"})

        assert updated.unit_price_cents == 1_800
        assert updated.category == "engine"


def _no_ledger(db_session) -> bool:
    return db_session.query(Transaction).count() == 0


# =============================================================================
# STOCK MOVEMENT
# =============================================================================


class TestStock:
    def test_restock_and_correction(self, db_session):
        part = _part()

        assert adjust_stock(part.id, 5).stock_quantity == 15
        assert adjust_stock(part.id, -15).stock_quantity == 0
        assert _no_ledger(db_session)

    def test_adjust_below_zero_rejected(self, db_session):
        part = _part(stock_quantity=2)

        with pytest.raises(InsufficientStockError) as exc:
            adjust_stock(part.id, -3)

        assert exc.value.details["available_quantity"] == 2
        assert exc.value.details["requested_quantity"] == 3
        assert get_part(part.id).stock_quantity == 2

    @pytest.mark.parametrize("delta", [0, None, 1.5, True])
    def test_adjust_requires_nonzero_integer(self, db_session, delta):
        part = _part()

        with pytest.raises(ValidationError):
            adjust_stock(part.id, delta)

    def test_adjust_unknown_part(self, db_session):
        with pytest.raises(PartNotFoundError):
            adjust_stock(404, 1)

    def test_sell_decrements_and_books_sale(self, db_session):
        part = _part()

        part, tx = sell_part(part.id, 4, "Ravi")

        assert part.stock_quantity == 6
        assert tx.type == TRANSACTION_SALE
        assert tx.entity_type == ENTITY_PART
        assert tx.entity_id == part.id
        assert tx.amount_cents == 6_000
        assert tx.party_name == "Ravi"
        assert tx.description == "Oil filter x4"

    def test_sell_more_than_stock_changes_nothing(self, db_session):
        part = _part(stock_quantity=5, min_stock=5)

        with pytest.raises(InsufficientStockError) as exc:
            sell_part(part.id, 6, "Ravi")

        assert "Oil filter" in str(exc.value)
        assert get_part(part.id).stock_quantity == 5
        assert _no_ledger(db_session)

    def test_sell_entire_stock(self, db_session):
        part = _part(stock_quantity=3)

        part, _ = sell_part(part.id, 3, None)

        assert part.stock_quantity == 0

    @pytest.mark.parametrize("quantity", [0, -1, None, "2"])
    def test_sell_requires_positive_quantity(self, db_session, quantity):
        part = _part()

        with pytest.raises(ValidationError):
            sell_part(part.id, quantity, "Ravi")

        assert _no_ledger(db_session)

    def test_sequence_never_goes_negative(self, db_session):
        part = _part(stock_quantity=4)

        outcomes = []
        for delta in (-3, -2, 5, -6, -1):
            try:
                outcomes.append(adjust_stock(part.id, delta).stock_quantity)
            except InsufficientStockError:
                outcomes.append("rejected")

        assert outcomes == [1, "rejected", 6, 0, "rejected"]
        assert get_part(part.id).stock_quantity == 0


# =============================================================================
# LOW STOCK
# =============================================================================


class TestLowStock:
    def test_low_stock_inclusive_and_ordered(self, db_session):
        at_min = _part(name="At min", part_number="P1", stock_quantity=5, min_stock=5)
        empty = _part(name="Empty", part_number="P2", stock_quantity=0, min_stock=2)
        _part(name="Plenty", part_number="P3", stock_quantity=50, min_stock=5)

        assert [p.id for p in low_stock_parts()] == [empty.id, at_min.id]
        assert [p.id for p in list_parts(low_stock=True)] == [empty.id, at_min.id]
        assert len(list_parts()) == 3


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrency:
    def test_stale_version_is_a_conflict(self, db_session):
        part = _part()
        part = db_session.get(SparePart, part.id)
        assert part.stock_quantity == 10
        assert part.version_id == 1

        # Another writer bumps the row behind this session's back
        table = SparePart.__table__
        db_session.execute(
            table.update()
            .where(table.c.id == part.id)
            .values(version_id=table.c.version_id + 1, stock_quantity=1)
        )

        def _op():
            part.stock_quantity = 9
            db.session.flush()

        with pytest.raises(ConcurrencyConflictError):
            atomic(_op)

        db_session.expire_all()
        assert get_part(part.id).stock_quantity == 10

    def test_racing_duplicate_part_number_maps_to_domain_error(self, db_session, monkeypatch):
        _part()
        # Both requests passed the lookup before either committed
        monkeypatch.setattr(parts_service, "_ensure_unique_part_number", lambda *args, **kwargs: None)

        with pytest.raises(DuplicatePartNumberError) as exc:
            _part(name="Other filter")

        assert exc.value.details["part_number"] == "OF-100"
        assert len(list_parts()) == 1

    def test_lock_contention_is_a_conflict(self, db_session):
        def _op():
            raise OperationalError("UPDATE spare_parts", {}, Exception("database is locked"))

        with pytest.raises(ConcurrencyConflictError):
            atomic(_op)

    def test_other_operational_errors_propagate(self, db_session):
        def _op():
            raise OperationalError("SELECT * FROM gone", {}, Exception("no such table: gone"))

        with pytest.raises(OperationalError):
            atomic(_op)

    def test_unmapped_integrity_error_propagates(self, db_session):
        _part()

        def _op():
            db.session.add(SparePart(name="Copy", part_number="OF-100"))
            db.session.flush()

        with pytest.raises(IntegrityError):
            atomic(_op)

        assert len(list_parts()) == 1
