# Overview: Flask API routes for service records; parses input and returns JSON responses.

# backend/dealership/routes/services.py
"""
Service record routes.

parts_used may be sent as a JSON list or as a JSON-encoded string:
    [{"part_id": 3, "quantity": 2, "unit_price_cents": 1500, "name": "Oil filter"}]
Parts are taken out of stock on POST only.

SECURITY: All routes require authentication.
"""
from flask import Blueprint, request, current_app

from ..models import ServiceRecord
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    parse_date_range,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "tractor_id",
        "customer_name",
        "description",
        "labor_cost_cents",
        "parts_cost_cents",
        "service_date",
        "status",
    },
    required_on_create={"customer_name", "description"},
)

services_bp = Blueprint("services", __name__, url_prefix="/api/services")


def _split_payload(payload: dict) -> tuple[dict, object, bool]:
    """Separate parts_used (not a plain column value) from the column fields."""
    fields = dict(payload)
    given = "parts_used" in fields
    parts_used = fields.pop("parts_used", None)
    return fields, parts_used, given


@services_bp.get("")
@require_auth
def list_services_route():
    """
    List service records, latest service_date first.

    Query params:
    - start, end: YYYY-MM-DD (optional, inclusive)
    """
    from ..services.service_record_service import list_service_records

    try:
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    records = list_service_records(start, end)
    return {"items": [r.to_dict() for r in records]}, 200


@services_bp.post("")
@require_auth
def create_service_route():
    """Record a service job, consuming listed parts and booking the sale."""
    payload = request.get_json(silent=True) or {}
    fields, parts_used, _ = _split_payload(payload)

    try:
        patch = validate_payload(model=ServiceRecord, payload=fields, policy=SERVICE_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.service_record_service import create_service_record

    try:
        record = create_service_record(patch, parts_used)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to create service record")
        return {"error": "Internal server error"}, 500

    return record.to_dict(), 201


@services_bp.get("/<int:record_id>")
@require_auth
def get_service_route(record_id: int):
    from ..services.service_record_service import get_service_record

    try:
        record = get_service_record(record_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return record.to_dict(), 200


@services_bp.put("/<int:record_id>")
@require_auth
def update_service_route(record_id: int):
    """Edit a service record. Costs are recomputed; stock is not touched."""
    payload = request.get_json(silent=True) or {}
    fields, parts_used, given = _split_payload(payload)

    try:
        patch = validate_payload(model=ServiceRecord, payload=fields, policy=SERVICE_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.service_record_service import update_service_record

    try:
        record = update_service_record(record_id, patch, parts_used, parts_used_given=given)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return record.to_dict(), 200


@services_bp.delete("/<int:record_id>")
@require_auth
def delete_service_route(record_id: int):
    """Delete a service record. Consumed stock is not restored."""
    from ..services.service_record_service import delete_service_record

    try:
        delete_service_record(record_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200
