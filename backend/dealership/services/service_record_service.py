# Overview: Service job workflow: create/update service records and consume parts from stock.

"""
Service Job Invariants (authoritative)

- total_cost_cents = labor_cost_cents + parts_cost_cents, recomputed on every
  create and update.
- Parts listed in parts_used are taken out of stock once, at creation, in the
  same unit of work as the record and its sale entry. If any part is missing
  or short, nothing is written.
- Update recomputes costs from the (possibly edited) parts list but never
  touches stock or the ledger. Delete does not restore stock.

Parts cost rule (create and update):
- With a parts list, the calculated cost (sum of unit_price * quantity)
  replaces the supplied parts_cost whenever it is non-zero or the supplied
  value is zero.
- Without a parts list, the supplied parts_cost is kept as-is.
- A usage without unit_price_cents is priced from the part (create) or
  from the stored usage of the same part (update), so re-sending the same
  list gives the same cost.
"""

from __future__ import annotations

import json
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import ServiceRecord, SparePart, Tractor
from ..models.service import SERVICE_COMPLETED
from ..models.accounting import TRANSACTION_SALE, ENTITY_SERVICE
from ..time_utils import today
from ..validation import NotFoundError, ValidationError, enforce_rules_service, require_text
from .concurrency import atomic
from .ledger_service import append_transaction
from .parts_service import PartNotFoundError, try_adjust_stock
from .tractor_service import TractorNotFoundError

SERVICE_MUTABLE_FIELDS = {
    "tractor_id",
    "customer_name",
    "description",
    "labor_cost_cents",
    "parts_cost_cents",
    "service_date",
    "status",
}


class ServiceRecordNotFoundError(NotFoundError):
    """Raised when a service record id does not exist."""


def _int_field(entry: dict, key: str, *, required: bool, minimum: int) -> int | None:
    value = entry.get(key)
    if value is None:
        if required:
            raise ValidationError(f"parts_used entries require {key}")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"parts_used {key} must be an integer")
    if value < minimum:
        raise ValidationError(f"parts_used {key} must be >= {minimum}")
    return value


def parse_parts_used(raw) -> list[dict] | None:
    """
    Normalize parts_used into a list of usages.

    Accepts a list of dicts or its JSON serialization. None / "" mean
    "no parts list" and return None.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("parts_used must be a JSON list")
    if not isinstance(raw, list):
        raise ValidationError("parts_used must be a list")

    entries = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError("parts_used entries must be objects")
        entries.append({
            "part_id": _int_field(item, "part_id", required=True, minimum=1),
            "name": str(item.get("name") or "").strip(),
            "quantity": _int_field(item, "quantity", required=True, minimum=1),
            "unit_price_cents": _int_field(item, "unit_price_cents", required=False, minimum=0),
        })
    return entries


def calculate_parts_cost(entries: list[dict]) -> int:
    return sum((e["unit_price_cents"] or 0) * e["quantity"] for e in entries)


def resolve_parts_cost(supplied_cents: int | None, entries: list[dict] | None) -> int:
    """Apply the parts cost rule (see module docstring)."""
    supplied = supplied_cents or 0
    if entries is None:
        return supplied
    calculated = calculate_parts_cost(entries)
    if calculated > 0 or supplied == 0:
        return calculated
    return supplied


def _ensure_tractor_exists(tractor_id: int | None) -> None:
    if tractor_id is None:
        return
    if db.session.get(Tractor, tractor_id) is None:
        raise TractorNotFoundError("tractor not found")


def _get_record(record_id: int) -> ServiceRecord:
    record = db.session.get(ServiceRecord, record_id)
    if record is None:
        raise ServiceRecordNotFoundError("service record not found")
    return record


def _consume_parts(entries: list[dict]) -> None:
    """Take every listed part out of stock; fills in name and unit price from the part."""
    for entry in entries:
        label = entry["name"] or f"#{entry['part_id']}"
        part = try_adjust_stock(entry["part_id"], -entry["quantity"], label=label)
        if not entry["name"]:
            entry["name"] = part.name
        if entry["unit_price_cents"] is None:
            entry["unit_price_cents"] = part.unit_price_cents


def _fill_from_stored(entries: list[dict], stored: list[dict]) -> None:
    """
    Complete edited usages without touching stock.

    A missing unit price or name comes from the stored usage of the same
    part, else from the part's current data (read, not locked).
    """
    stored_by_part = {}
    for usage in stored:
        stored_by_part.setdefault(usage.get("part_id"), usage)

    for entry in entries:
        previous = stored_by_part.get(entry["part_id"], {})
        if entry["unit_price_cents"] is None:
            entry["unit_price_cents"] = previous.get("unit_price_cents")
        if not entry["name"]:
            entry["name"] = previous.get("name") or ""
        if entry["unit_price_cents"] is None or not entry["name"]:
            part = db.session.get(SparePart, entry["part_id"])
            if part is None:
                if entry["unit_price_cents"] is not None:
                    continue
                raise PartNotFoundError(f"part not found: {entry['name'] or entry['part_id']}")
            if entry["unit_price_cents"] is None:
                entry["unit_price_cents"] = part.unit_price_cents
            if not entry["name"]:
                entry["name"] = part.name


def create_service_record(patch: dict, parts_used=None) -> ServiceRecord:
    """
    Record a completed service job.

    Consumes listed parts from stock, derives parts and total cost, persists
    the record and appends one sale entry for the total.
    """
    require_text(patch, "customer_name", "description")
    enforce_rules_service(patch)
    entries = parse_parts_used(parts_used)

    def _op():
        _ensure_tractor_exists(patch.get("tractor_id"))

        if entries:
            _consume_parts(entries)

        record = ServiceRecord()
        for k, v in patch.items():
            if k in SERVICE_MUTABLE_FIELDS:
                setattr(record, k, v)

        record.labor_cost_cents = patch.get("labor_cost_cents") or 0
        record.parts_cost_cents = resolve_parts_cost(patch.get("parts_cost_cents"), entries)
        record.total_cost_cents = record.labor_cost_cents + record.parts_cost_cents
        record.parts_used = json.dumps(entries) if entries is not None else None
        record.status = SERVICE_COMPLETED
        if record.service_date is None:
            record.service_date = today()

        db.session.add(record)
        db.session.flush()

        append_transaction(
            type=TRANSACTION_SALE,
            entity_type=ENTITY_SERVICE,
            entity_id=record.id,
            amount_cents=record.total_cost_cents,
            party_name=record.customer_name,
            description=f"Service: {record.description}",
            on=record.service_date,
        )
        return record

    record = atomic(_op)
    current_app.logger.info(
        "Service record %s created for %s: total %s cents (%s part lines)",
        record.id,
        record.customer_name,
        record.total_cost_cents,
        len(entries or []),
    )
    return record


def update_service_record(record_id: int, patch: dict, parts_used=None, *, parts_used_given: bool = False) -> ServiceRecord:
    """
    Edit a service record and recompute its costs.

    Stock is NOT adjusted: parts were committed when the record was created.
    """
    enforce_rules_service(patch)
    for key in ("customer_name", "description"):
        if key in patch and not (patch[key] or "").strip():
            raise ValidationError(f"{key} cannot be blank")
    new_entries = parse_parts_used(parts_used) if parts_used_given else None

    def _op():
        record = _get_record(record_id)
        if "tractor_id" in patch:
            _ensure_tractor_exists(patch["tractor_id"])

        for k, v in patch.items():
            if k in SERVICE_MUTABLE_FIELDS and k != "parts_cost_cents":
                setattr(record, k, v)

        if parts_used_given:
            entries = new_entries
            if entries:
                _fill_from_stored(entries, record.parts_used_list())
            supplied = patch.get("parts_cost_cents", 0)
            record.parts_used = json.dumps(entries) if entries is not None else None
        else:
            entries = record.parts_used_list() if record.parts_used else None
            supplied = patch.get("parts_cost_cents", record.parts_cost_cents)

        record.labor_cost_cents = record.labor_cost_cents or 0
        record.parts_cost_cents = resolve_parts_cost(supplied, entries)
        record.total_cost_cents = record.labor_cost_cents + record.parts_cost_cents
        db.session.flush()
        return record

    return atomic(_op)


def list_service_records(start: date | None = None, end: date | None = None) -> list[ServiceRecord]:
    query = db.session.query(ServiceRecord)
    if start is not None:
        query = query.filter(ServiceRecord.service_date >= start)
    if end is not None:
        query = query.filter(ServiceRecord.service_date <= end)
    return query.order_by(ServiceRecord.service_date.desc(), ServiceRecord.id.desc()).all()


def get_service_record(record_id: int) -> ServiceRecord:
    return _get_record(record_id)


def delete_service_record(record_id: int) -> None:
    def _op():
        record = _get_record(record_id)
        db.session.delete(record)
        db.session.flush()

    atomic(_op)
