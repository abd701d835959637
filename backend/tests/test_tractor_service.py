"""
Tractor trading workflow tests.

Verifies:
- Intake persists an in_stock tractor plus one purchase entry
- Sale is final: a second sale fails and appends nothing
- Sale with trade-in links the new tractor and appends exactly 2 entries
- A failure part-way through a sale rolls back every write
- Delete clears references but keeps ledger history
"""

import pytest

from dealership.models import Tractor, Transaction
from dealership.models.accounting import ENTITY_TRACTOR, TRANSACTION_PURCHASE, TRANSACTION_SALE
from dealership.services import ledger_service, tractor_service
from dealership.services.concurrency import ConcurrencyConflictError
from dealership.services.service_record_service import create_service_record
from dealership.services.tractor_service import (
    AlreadySoldError,
    DuplicateChassisNumberError,
    TractorNotFoundError,
    delete_tractor,
    get_tractor,
    intake_tractor,
    list_tractors,
    sell_tractor,
    update_tractor,
)
from dealership.time_utils import today
from dealership.validation import ValidationError


def _intake(**overrides):
    patch = {
        "brand": "Massey",
        "model": "240",
        "year": 2019,
        "type": "new",
        "chassis_number": "CH-001",
        "purchase_price_cents": 1_000_000,
        "supplier_name": "Agro Imports",
    }
    patch.update(overrides)
    return intake_tractor(patch)


def _ledger_count(db_session) -> int:
    return db_session.query(Transaction).count()


# =============================================================================
# INTAKE
# =============================================================================


class TestIntake:
    def test_intake_creates_in_stock_tractor_and_purchase_entry(self, db_session):
        tractor = _intake()

        assert tractor.id is not None
        assert tractor.status == "in_stock"
        assert tractor.purchase_date == today()

        entries = ledger_service.entries_for(ENTITY_TRACTOR, tractor.id)
        assert len(entries) == 1
        assert entries[0].type == TRANSACTION_PURCHASE
        assert entries[0].amount_cents == 1_000_000
        assert entries[0].party_name == "Agro Imports"
        assert entries[0].description == "Massey 240 purchase"

    @pytest.mark.parametrize("missing", ["brand", "model"])
    def test_intake_requires_brand_and_model(self, db_session, missing):
        with pytest.raises(ValidationError):
            _intake(**{missing: "  "})

        assert db_session.query(Tractor).count() == 0
        assert _ledger_count(db_session) == 0

    def test_duplicate_chassis_rejected(self, db_session):
        _intake()
        with pytest.raises(DuplicateChassisNumberError):
            _intake(model="390")

        assert db_session.query(Tractor).count() == 1
        assert _ledger_count(db_session) == 1

    def test_empty_chassis_not_checked(self, db_session):
        _intake(chassis_number=None)
        _intake(chassis_number=None, model="390")

        assert db_session.query(Tractor).count() == 2


# =============================================================================
# SALE
# =============================================================================


class TestSell:
    def test_simple_sale_reports_profit(self, db_session):
        tractor = _intake()

        result = sell_tractor(tractor.id, sale_price_cents=1_500_000, customer_name="Ravi")

        assert result.profit_loss_cents == 500_000
        assert result.exchange_tractor_id is None
        assert "exchange_id" not in result.to_dict()

        sold = get_tractor(tractor.id)
        assert sold.status == "sold"
        assert sold.sale_price_cents == 1_500_000
        assert sold.customer_name == "Ravi"
        assert sold.sale_date == today()
        assert sold.exchange_tractor_id is None

        entries = ledger_service.entries_for(ENTITY_TRACTOR, tractor.id)
        assert [(e.type, e.amount_cents) for e in entries] == [
            (TRANSACTION_PURCHASE, 1_000_000),
            (TRANSACTION_SALE, 1_500_000),
        ]
        assert entries[1].party_name == "Ravi"
        assert entries[1].description == "Massey 240 sale"

    def test_sale_at_a_loss_is_negative(self, db_session):
        tractor = _intake()

        result = sell_tractor(tractor.id, sale_price_cents=900_000, customer_name="Ravi")

        assert result.profit_loss_cents == -100_000

    def test_second_sale_fails_and_appends_nothing(self, db_session):
        tractor = _intake()
        sell_tractor(tractor.id, sale_price_cents=1_500_000, customer_name="Ravi")
        before = _ledger_count(db_session)

        with pytest.raises(AlreadySoldError):
            sell_tractor(tractor.id, sale_price_cents=1_700_000, customer_name="Someone else")

        assert _ledger_count(db_session) == before
        sold = get_tractor(tractor.id)
        assert sold.sale_price_cents == 1_500_000
        assert sold.customer_name == "Ravi"

    def test_sell_unknown_tractor(self, db_session):
        with pytest.raises(TractorNotFoundError):
            sell_tractor(999, sale_price_cents=100, customer_name="Ravi")

    def test_sell_requires_customer(self, db_session):
        tractor = _intake()

        with pytest.raises(ValidationError):
            sell_tractor(tractor.id, sale_price_cents=100, customer_name=" ")

        assert get_tractor(tractor.id).status == "in_stock"

    def test_sale_with_trade_in(self, db_session):
        tractor = _intake()
        before = _ledger_count(db_session)

        result = sell_tractor(
            tractor.id,
            sale_price_cents=1_500_000,
            customer_name="Ravi",
            is_exchange=True,
            exchange_tractor={
                "brand": "Swaraj",
                "model": "735",
                "chassis_number": "OLD-77",
                "purchase_price_cents": 400_000,
            },
        )

        assert result.profit_loss_cents == 1_500_000 - 1_000_000 - 400_000
        assert result.to_dict()["exchange_id"] == result.exchange_tractor_id

        sold = get_tractor(tractor.id)
        assert sold.exchange_tractor_id == result.exchange_tractor_id

        trade_in = get_tractor(result.exchange_tractor_id)
        assert trade_in.status == "in_stock"
        assert trade_in.type == "used"
        assert trade_in.supplier_name == "Ravi"
        assert trade_in.purchase_date == today()

        # sale + trade-in purchase, nothing else
        assert _ledger_count(db_session) == before + 2
        purchase = ledger_service.entries_for(ENTITY_TRACTOR, trade_in.id)
        assert len(purchase) == 1
        assert purchase[0].type == TRANSACTION_PURCHASE
        assert purchase[0].amount_cents == 400_000
        assert purchase[0].party_name == "Ravi"
        assert purchase[0].description == "Swaraj 735 exchange purchase"

    def test_trade_in_keeps_explicit_supplier_and_type(self, db_session):
        tractor = _intake()

        result = sell_tractor(
            tractor.id,
            sale_price_cents=1_500_000,
            customer_name="Ravi",
            is_exchange=True,
            exchange_tractor={"brand": "Swaraj", "model": "735", "type": "new", "supplier_name": "Ravi's farm"},
        )

        trade_in = get_tractor(result.exchange_tractor_id)
        assert trade_in.type == "new"
        assert trade_in.supplier_name == "Ravi's farm"

    def test_exchange_flag_without_trade_in_is_plain_sale(self, db_session):
        tractor = _intake()

        result = sell_tractor(tractor.id, sale_price_cents=1_500_000, customer_name="Ravi", is_exchange=True)

        assert result.exchange_tractor_id is None
        assert result.profit_loss_cents == 500_000
        assert db_session.query(Tractor).count() == 1

    def test_failed_trade_in_rolls_back_the_sale(self, db_session):
        _intake(chassis_number="TAKEN")
        tractor = _intake(chassis_number="CH-002", model="390")
        before = _ledger_count(db_session)

        with pytest.raises(DuplicateChassisNumberError):
            sell_tractor(
                tractor.id,
                sale_price_cents=1_500_000,
                customer_name="Ravi",
                is_exchange=True,
                exchange_tractor={"brand": "Swaraj", "model": "735", "chassis_number": "TAKEN"},
            )

        unsold = get_tractor(tractor.id)
        assert unsold.status == "in_stock"
        assert unsold.sale_price_cents is None
        assert _ledger_count(db_session) == before
        assert db_session.query(Tractor).count() == 2

    def test_invalid_trade_in_rejected_before_any_write(self, db_session):
        tractor = _intake()

        with pytest.raises(ValidationError):
            sell_tractor(
                tractor.id,
                sale_price_cents=1_500_000,
                customer_name="Ravi",
                is_exchange=True,
                exchange_tractor={"brand": "Swaraj"},
            )

        assert get_tractor(tractor.id).status == "in_stock"


# =============================================================================
# LIST / UPDATE / DELETE
# =============================================================================


class TestMaintenance:
    def test_list_filters_by_status_newest_first(self, db_session):
        first = _intake(chassis_number="A")
        second = _intake(chassis_number="B")
        sell_tractor(first.id, sale_price_cents=1, customer_name="Ravi")

        assert [t.id for t in list_tractors()] == [second.id, first.id]
        assert [t.id for t in list_tractors("in_stock")] == [second.id]
        assert [t.id for t in list_tractors("sold")] == [first.id]

    def test_list_rejects_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            list_tractors("gone")

    def test_update_ignores_sale_fields(self, db_session):
        tractor = _intake()

        updated = update_tractor(tractor.id, {"status": "sold", "sale_price_cents": 5, "notes": "Repainted"})

        assert updated.status == "in_stock"
        assert updated.sale_price_cents is None
        assert updated.notes == "Repainted"

    def test_update_rejects_blank_brand(self, db_session):
        tractor = _intake()

        with pytest.raises(ValidationError):
            update_tractor(tractor.id, {"brand": ""})

    def test_update_rejects_taken_chassis(self, db_session):
        _intake(chassis_number="A")
        other = _intake(chassis_number="B")

        with pytest.raises(DuplicateChassisNumberError):
            update_tractor(other.id, {"chassis_number": "A"})

    def test_delete_clears_references_and_keeps_ledger(self, db_session):
        tractor = _intake()
        result = sell_tractor(
            tractor.id,
            sale_price_cents=1_500_000,
            customer_name="Ravi",
            is_exchange=True,
            exchange_tractor={"brand": "Swaraj", "model": "735", "purchase_price_cents": 400_000},
        )
        trade_in_id = result.exchange_tractor_id
        record = create_service_record(
            {"customer_name": "Ravi", "description": "Clutch check", "tractor_id": trade_in_id}
        )
        ledger_before = _ledger_count(db_session)

        delete_tractor(trade_in_id)

        with pytest.raises(TractorNotFoundError):
            get_tractor(trade_in_id)
        assert get_tractor(tractor.id).exchange_tractor_id is None
        db_session.refresh(record)
        assert record.tractor_id is None
        assert _ledger_count(db_session) == ledger_before

    def test_delete_unknown(self, db_session):
        with pytest.raises(TractorNotFoundError):
            delete_tractor(12345)


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrency:
    def test_stale_sale_is_a_conflict(self, db_session):
        tractor = _intake()
        tractor = db_session.get(Tractor, tractor.id)
        assert tractor.status == "in_stock"
        assert tractor.version_id == 1

        # A competing sale commits behind this session's back
        table = Tractor.__table__
        db_session.execute(
            table.update()
            .where(table.c.id == tractor.id)
            .values(version_id=table.c.version_id + 1, status="sold", customer_name="Other")
        )

        with pytest.raises(ConcurrencyConflictError):
            sell_tractor(tractor.id, sale_price_cents=1_500_000, customer_name="Ravi")

        db_session.expire_all()
        assert ledger_service.entries_for(ENTITY_TRACTOR, tractor.id)[-1].type == TRANSACTION_PURCHASE
        assert db_session.query(Transaction).filter_by(type=TRANSACTION_SALE).count() == 0
        assert get_tractor(tractor.id).customer_name is None

    def test_stale_trade_in_link_rolls_back_everything(self, db_session):
        tractor = _intake()
        tractor = db_session.get(Tractor, tractor.id)

        table = Tractor.__table__
        db_session.execute(
            table.update().where(table.c.id == tractor.id).values(version_id=table.c.version_id + 1)
        )

        with pytest.raises(ConcurrencyConflictError):
            sell_tractor(
                tractor.id,
                sale_price_cents=1_500_000,
                customer_name="Ravi",
                is_exchange=True,
                exchange_tractor={"brand": "Swaraj", "model": "735", "purchase_price_cents": 400_000},
            )

        db_session.expire_all()
        assert db_session.query(Tractor).count() == 1
        assert _ledger_count(db_session) == 1

    def test_racing_duplicate_chassis_maps_to_domain_error(self, db_session, monkeypatch):
        _intake(chassis_number="CH-RACE")
        # Both requests passed the lookup before either committed
        monkeypatch.setattr(tractor_service, "_ensure_unique_chassis", lambda *args, **kwargs: None)

        with pytest.raises(DuplicateChassisNumberError) as exc:
            _intake(chassis_number="CH-RACE", model="390")

        assert exc.value.details["chassis_number"] == "CH-RACE"
        assert db_session.query(Tractor).count() == 1
        assert _ledger_count(db_session) == 1

    def test_blank_chassis_numbers_never_collide(self, db_session):
        first = _intake(chassis_number="  ")
        second = _intake(chassis_number="", model="390")

        assert first.chassis_number is None
        assert second.chassis_number is None
