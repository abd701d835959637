# Overview: Tractor trading workflow: purchase intake, sale, sale with trade-in.

"""
Tractor Trading Invariants (authoritative)

- Intake creates an in_stock tractor and appends one purchase entry.
- A tractor is sold exactly once. Selling a sold tractor raises
  AlreadySoldError and appends nothing.
- Sale appends one sale entry. Sale with a trade-in additionally creates the
  trade-in as a fresh in_stock tractor, links it through
  exchange_tractor_id and appends one purchase entry for it (2 entries total).
- Each operation is one unit of work (concurrency.atomic): a failure at any
  step rolls back every write of that operation, ledger entries included.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Tractor, ServiceRecord
from ..models.inventory import TRACTOR_IN_STOCK, TRACTOR_SOLD, TRACTOR_USED, TRACTOR_STATUSES
from ..models.accounting import TRANSACTION_PURCHASE, TRANSACTION_SALE, ENTITY_TRACTOR
from ..time_utils import today
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_rules_tractor,
    require_text,
)
from .concurrency import atomic, lock_for_update
from .ledger_service import append_transaction
from .pricing import sale_profit

# Fields a plain update may change. Status, sale data and the trade-in link
# belong to the sale workflow.
TRACTOR_MUTABLE_FIELDS = {
    "brand",
    "model",
    "year",
    "type",
    "chassis_number",
    "engine_number",
    "purchase_price_cents",
    "supplier_name",
    "purchase_date",
    "notes",
}


class TractorNotFoundError(NotFoundError):
    """Raised when a tractor id does not exist."""


class AlreadySoldError(ConflictError):
    """Raised when selling a tractor whose status is already sold."""


class DuplicateChassisNumberError(ConflictError):
    """Raised when a chassis number is already used by another tractor."""


@dataclass(frozen=True)
class SaleResult:
    message: str
    profit_loss_cents: int
    exchange_tractor_id: int | None = None

    def to_dict(self) -> dict:
        out = {
            "message": self.message,
            "profit_loss_cents": self.profit_loss_cents,
        }
        if self.exchange_tractor_id is not None:
            out["exchange_id"] = self.exchange_tractor_id
        return out


def _get_tractor(tractor_id: int, *, lock: bool = False) -> Tractor:
    query = db.session.query(Tractor).filter_by(id=tractor_id)
    if lock:
        query = lock_for_update(query)
    tractor = query.first()
    if tractor is None:
        raise TractorNotFoundError("tractor not found")
    return tractor


def _duplicate_chassis(chassis_number: str | None) -> DuplicateChassisNumberError:
    return DuplicateChassisNumberError(
        f"chassis number {chassis_number} already exists",
        details={"chassis_number": chassis_number},
    )


def _chassis_guard(*patches: dict | None) -> dict:
    """unique_errors for atomic(): names the chassis number that lost a race."""
    numbers = [p.get("chassis_number") for p in patches if p and p.get("chassis_number")]
    label = ", ".join(numbers) or None
    return {"chassis_number": lambda: _duplicate_chassis(label)}


def _normalize_chassis(patch: dict) -> None:
    # Blank means "unknown"; stored as NULL so it never collides
    if "chassis_number" in patch and not (patch["chassis_number"] or "").strip():
        patch["chassis_number"] = None


def _ensure_unique_chassis(chassis_number: str | None, exclude_id: int | None = None) -> None:
    if not chassis_number:
        return
    query = db.session.query(Tractor.id).filter(Tractor.chassis_number == chassis_number)
    if exclude_id is not None:
        query = query.filter(Tractor.id != exclude_id)
    if query.first() is not None:
        raise _duplicate_chassis(chassis_number)


def _validate_new_tractor(patch: dict) -> None:
    _normalize_chassis(patch)
    require_text(patch, "brand", "model")
    enforce_rules_tractor(patch)


def _create_in_stock(patch: dict) -> Tractor:
    """Insert an in_stock tractor (no ledger entry, no commit)."""
    _ensure_unique_chassis(patch.get("chassis_number"))

    tractor = Tractor()
    for k, v in patch.items():
        if k in TRACTOR_MUTABLE_FIELDS:
            setattr(tractor, k, v)
    tractor.status = TRACTOR_IN_STOCK
    tractor.purchase_date = today()
    if tractor.purchase_price_cents is None:
        tractor.purchase_price_cents = 0

    db.session.add(tractor)
    db.session.flush()
    return tractor


def intake_tractor(patch: dict) -> Tractor:
    """
    Purchase intake: persist an in_stock tractor and append its purchase entry.

    Requires non-empty brand and model.
    """
    _validate_new_tractor(patch)

    def _op():
        tractor = _create_in_stock(patch)
        append_transaction(
            type=TRANSACTION_PURCHASE,
            entity_type=ENTITY_TRACTOR,
            entity_id=tractor.id,
            amount_cents=tractor.purchase_price_cents,
            party_name=tractor.supplier_name,
            description=f"{tractor.display_name} purchase",
            on=tractor.purchase_date,
        )
        return tractor

    tractor = atomic(_op, unique_errors=_chassis_guard(patch))
    current_app.logger.info(
        "Tractor %s intake: %s for %s cents", tractor.id, tractor.display_name, tractor.purchase_price_cents
    )
    return tractor


def sell_tractor(
    tractor_id: int,
    *,
    sale_price_cents: int,
    customer_name: str,
    is_exchange: bool = False,
    exchange_tractor: dict | None = None,
) -> SaleResult:
    """
    Sell a tractor, optionally taking another tractor in exchange.

    The trade-in (when is_exchange and a payload is supplied) becomes a new
    in_stock tractor whose supplier defaults to the customer. Profit/loss is
    net of the trade-in's cost basis.
    """
    customer_name = (customer_name or "").strip()
    if not customer_name:
        raise ValidationError("customer_name is required")
    if sale_price_cents is None or sale_price_cents < 0:
        raise ValidationError("sale_price_cents must be >= 0")

    trade_in = None
    if is_exchange and exchange_tractor is not None:
        trade_in = {k: v for k, v in exchange_tractor.items() if k in TRACTOR_MUTABLE_FIELDS}
        _validate_new_tractor(trade_in)
        if not trade_in.get("supplier_name"):
            trade_in["supplier_name"] = customer_name
        trade_in.setdefault("type", TRACTOR_USED)

    def _op():
        tractor = _get_tractor(tractor_id, lock=True)
        if tractor.status == TRACTOR_SOLD:
            raise AlreadySoldError(
                f"tractor {tractor.display_name} is already sold",
                details={"tractor_id": tractor.id},
            )

        tractor.status = TRACTOR_SOLD
        tractor.sale_price_cents = sale_price_cents
        tractor.customer_name = customer_name
        tractor.sale_date = today()
        db.session.flush()

        append_transaction(
            type=TRANSACTION_SALE,
            entity_type=ENTITY_TRACTOR,
            entity_id=tractor.id,
            amount_cents=sale_price_cents,
            party_name=customer_name,
            description=f"{tractor.display_name} sale",
            on=tractor.sale_date,
        )

        if trade_in is None:
            profit = sale_profit(sale_price_cents, tractor.purchase_price_cents)
            return SaleResult(
                message="tractor sold successfully",
                profit_loss_cents=profit.net_profit_cents,
            )

        received = _create_in_stock(trade_in)
        tractor.exchange_tractor_id = received.id
        db.session.flush()

        append_transaction(
            type=TRANSACTION_PURCHASE,
            entity_type=ENTITY_TRACTOR,
            entity_id=received.id,
            amount_cents=received.purchase_price_cents,
            party_name=customer_name,
            description=f"{received.display_name} exchange purchase",
            on=received.purchase_date,
        )

        profit = sale_profit(sale_price_cents, tractor.purchase_price_cents, received.purchase_price_cents)
        return SaleResult(
            message="tractor sold with exchange successfully",
            profit_loss_cents=profit.net_profit_cents,
            exchange_tractor_id=received.id,
        )

    try:
        result = atomic(_op, unique_errors=_chassis_guard(trade_in))
    except AlreadySoldError:
        current_app.logger.warning("Rejected sale of tractor %s: already sold", tractor_id)
        raise

    current_app.logger.info(
        "Tractor %s sold to %s for %s cents (profit/loss %s, exchange %s)",
        tractor_id,
        customer_name,
        sale_price_cents,
        result.profit_loss_cents,
        result.exchange_tractor_id,
    )
    return result


def list_tractors(status: str | None = None) -> list[Tractor]:
    """List tractors, newest first, optionally filtered by status."""
    if status is not None and status not in TRACTOR_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(TRACTOR_STATUSES)}")
    query = db.session.query(Tractor)
    if status is not None:
        query = query.filter(Tractor.status == status)
    return query.order_by(Tractor.id.desc()).all()


def get_tractor(tractor_id: int) -> Tractor:
    return _get_tractor(tractor_id)


def update_tractor(tractor_id: int, patch: dict) -> Tractor:
    """
    Replace mutable descriptive fields.

    Never used to re-enact a sale: status, sale fields and the trade-in
    link are not writable here.
    """
    for key in ("brand", "model"):
        if key in patch and not (patch[key] or "").strip():
            raise ValidationError(f"{key} cannot be blank")
    _normalize_chassis(patch)
    enforce_rules_tractor(patch)

    def _op():
        tractor = _get_tractor(tractor_id, lock=True)
        if "chassis_number" in patch and patch["chassis_number"] != tractor.chassis_number:
            _ensure_unique_chassis(patch["chassis_number"], exclude_id=tractor.id)
        for k, v in patch.items():
            if k in TRACTOR_MUTABLE_FIELDS:
                setattr(tractor, k, v)
        db.session.flush()
        return tractor

    return atomic(_op, unique_errors=_chassis_guard(patch))


def delete_tractor(tractor_id: int) -> None:
    """
    Delete a tractor after clearing references to it.

    Other tractors' exchange_tractor_id and service records' tractor_id are
    set to NULL. Ledger entries are kept.
    """
    def _op():
        tractor = _get_tractor(tractor_id, lock=True)

        referencing = db.session.query(Tractor).filter(Tractor.exchange_tractor_id == tractor.id).all()
        for other in referencing:
            other.exchange_tractor_id = None

        db.session.query(ServiceRecord).filter(ServiceRecord.tractor_id == tractor.id).update(
            {ServiceRecord.tractor_id: None}, synchronize_session="fetch"
        )
        db.session.flush()

        db.session.delete(tractor)
        db.session.flush()

    atomic(_op)
    current_app.logger.info("Tractor %s deleted", tractor_id)
