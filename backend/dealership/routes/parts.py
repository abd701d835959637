# Overview: Flask API routes for spare parts; parses input and returns JSON responses.

# backend/dealership/routes/parts.py
"""
Spare part routes.

Stock only moves through /sell, /stock and service record creation;
PUT rejects stock_quantity.

SECURITY: All routes require authentication.
"""
from flask import Blueprint, request, current_app

from ..models import SparePart
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

PART_POLICY = ModelValidationPolicy(
    writable_fields={"name", "part_number", "category", "stock_quantity", "unit_price_cents", "min_stock"},
    required_on_create={"name", "part_number"},
)

parts_bp = Blueprint("parts", __name__, url_prefix="/api/parts")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


@parts_bp.get("")
@require_auth
def list_parts_route():
    """
    List spare parts.

    Query params:
    - low_stock: true -> only parts at or below min_stock, lowest stock first
    """
    from ..services.parts_service import list_parts

    parts = list_parts(low_stock=_truthy(request.args.get("low_stock")))
    return {"items": [p.to_dict() for p in parts]}, 200


@parts_bp.post("")
@require_auth
def create_part_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=SparePart, payload=payload, policy=PART_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.parts_service import intake_part

    try:
        part = intake_part(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return part.to_dict(), 201


@parts_bp.get("/<int:part_id>")
@require_auth
def get_part_route(part_id: int):
    from ..services.parts_service import get_part

    try:
        part = get_part(part_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return part.to_dict(), 200


@parts_bp.put("/<int:part_id>")
@require_auth
def update_part_route(part_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=SparePart, payload=payload, policy=PART_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.parts_service import update_part

    try:
        part = update_part(part_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return part.to_dict(), 200


@parts_bp.delete("/<int:part_id>")
@require_auth
def delete_part_route(part_id: int):
    from ..services.parts_service import delete_part

    try:
        delete_part(part_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return {"ok": True}, 200


@parts_bp.post("/<int:part_id>/sell")
@require_auth
def sell_part_route(part_id: int):
    """
    Sell parts over the counter.

    Body:
    - quantity: int > 0 (required)
    - customer_name: str (optional)

    Returns the updated part and the sale transaction.
    """
    payload = request.get_json(silent=True) or {}

    from ..services.parts_service import sell_part

    try:
        part, tx = sell_part(part_id, payload.get("quantity"), payload.get("customer_name"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to sell part %s", part_id)
        return {"error": "Internal server error"}, 500

    return {
        "message": "part sold successfully",
        "part": part.to_dict(),
        "transaction": tx.to_dict(),
    }, 200


@parts_bp.post("/<int:part_id>/stock")
@require_auth
def adjust_stock_route(part_id: int):
    """
    Manual restock or correction.

    Body:
    - quantity_delta: int, non-zero (positive adds stock)
    """
    payload = request.get_json(silent=True) or {}

    from ..services.parts_service import adjust_stock

    try:
        part = adjust_stock(part_id, payload.get("quantity_delta"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return part.to_dict(), 200


# =============================================================================
# CATALOG: PART CATEGORIES AND NAMES
# =============================================================================

@parts_bp.get("/categories")
@require_auth
def list_part_categories_route():
    from ..services.catalog_service import list_part_categories

    return {"items": [c.to_dict() for c in list_part_categories()]}, 200


@parts_bp.post("/categories")
@require_auth
def create_part_category_route():
    """Add a category; answers 200 with the existing category when the name is already known."""
    payload = request.get_json(silent=True) or {}

    from ..services.catalog_service import create_part_category

    try:
        category, created = create_part_category(payload.get("name"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return category.to_dict(), 201 if created else 200


@parts_bp.delete("/categories/<int:category_id>")
@require_auth
def delete_part_category_route(category_id: int):
    from ..services.catalog_service import delete_part_category

    try:
        delete_part_category(category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200


@parts_bp.get("/names")
@require_auth
def list_part_names_route():
    """
    Query params:
    - category_id: int (required)
    """
    category_id = request.args.get("category_id", type=int)
    if category_id is None:
        return {"error": "category_id is required"}, 400

    from ..services.catalog_service import list_part_names

    return {"items": [n.to_dict() for n in list_part_names(category_id)]}, 200


@parts_bp.post("/names")
@require_auth
def create_part_name_route():
    payload = request.get_json(silent=True) or {}

    category_id = payload.get("category_id")
    if category_id is None or isinstance(category_id, bool) or not isinstance(category_id, int):
        return {"error": "category_id is required and must be an integer"}, 400

    from ..services.catalog_service import create_part_name

    try:
        part_name = create_part_name(category_id, payload.get("name"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return part_name.to_dict(), 201


@parts_bp.delete("/names/<int:name_id>")
@require_auth
def delete_part_name_route(name_id: int):
    from ..services.catalog_service import delete_part_name

    try:
        delete_part_name(name_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200
