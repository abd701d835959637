# Overview: Flask API routes for tractor inventory, sales and the brand/model catalog.

# backend/dealership/routes/tractors.py
"""
Tractor routes.

Purchase intake and sale (with optional trade-in) go through
tractor_service, which writes the tractor and its ledger entries in one
unit of work. Status and sale fields are never writable through PUT.

SECURITY: All routes require authentication.
"""
from flask import Blueprint, request, current_app

from ..models import Tractor
from ..services.tractor_service import TRACTOR_MUTABLE_FIELDS
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_tractor_sale,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

TRACTOR_POLICY = ModelValidationPolicy(
    writable_fields=set(TRACTOR_MUTABLE_FIELDS),
    required_on_create={"brand", "model"},
)

tractors_bp = Blueprint("tractors", __name__, url_prefix="/api/tractors")


@tractors_bp.get("")
@require_auth
def list_tractors_route():
    """
    List tractors, newest first.

    Query params:
    - status: in_stock | sold (optional)
    """
    from ..services.tractor_service import list_tractors

    try:
        tractors = list_tractors(status=request.args.get("status") or None)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": [t.to_dict() for t in tractors]}, 200


@tractors_bp.post("")
@require_auth
def create_tractor_route():
    """Purchase intake: record a bought tractor and its purchase transaction."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Tractor, payload=payload, policy=TRACTOR_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.tractor_service import intake_tractor

    try:
        tractor = intake_tractor(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return tractor.to_dict(), 201


@tractors_bp.get("/<int:tractor_id>")
@require_auth
def get_tractor_route(tractor_id: int):
    from ..services.tractor_service import get_tractor

    try:
        tractor = get_tractor(tractor_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return tractor.to_dict(), 200


@tractors_bp.put("/<int:tractor_id>")
@require_auth
def update_tractor_route(tractor_id: int):
    """Update descriptive fields. Sale state is owned by /sell."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Tractor, payload=payload, policy=TRACTOR_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.tractor_service import update_tractor

    try:
        tractor = update_tractor(tractor_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return tractor.to_dict(), 200


@tractors_bp.delete("/<int:tractor_id>")
@require_auth
def delete_tractor_route(tractor_id: int):
    """Delete a tractor. Its ledger entries are kept."""
    from ..services.tractor_service import delete_tractor

    try:
        delete_tractor(tractor_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return {"ok": True}, 200


@tractors_bp.post("/<int:tractor_id>/sell")
@require_auth
def sell_tractor_route(tractor_id: int):
    """
    Sell a tractor, optionally taking a trade-in.

    Body:
    - sale_price_cents: int (required)
    - customer_name: str (required)
    - is_exchange: bool (optional)
    - exchange_tractor: object (optional) - trade-in fields, same as intake

    Returns: {message, profit_loss_cents, exchange_id?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        sale = enforce_rules_tractor_sale(payload)
        trade_in = None
        if sale["is_exchange"] and sale["exchange_tractor"] is not None:
            trade_in = validate_payload(
                model=Tractor,
                payload=sale["exchange_tractor"],
                policy=TRACTOR_POLICY,
                partial=False,
            )
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.tractor_service import sell_tractor

    try:
        result = sell_tractor(
            tractor_id,
            sale_price_cents=sale["sale_price_cents"],
            customer_name=sale["customer_name"],
            is_exchange=sale["is_exchange"],
            exchange_tractor=trade_in,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to sell tractor %s", tractor_id)
        return {"error": "Internal server error"}, 500

    return result.to_dict(), 200


# =============================================================================
# CATALOG: BRANDS AND MODELS
# =============================================================================

@tractors_bp.get("/brands")
@require_auth
def list_brands_route():
    from ..services.catalog_service import list_brands

    return {"items": [b.to_dict() for b in list_brands()]}, 200


@tractors_bp.post("/brands")
@require_auth
def create_brand_route():
    """Add a brand; answers 200 with the existing brand when the name is already known."""
    payload = request.get_json(silent=True) or {}

    from ..services.catalog_service import create_brand

    try:
        brand, created = create_brand(payload.get("name"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return brand.to_dict(), 201 if created else 200


@tractors_bp.delete("/brands/<int:brand_id>")
@require_auth
def delete_brand_route(brand_id: int):
    from ..services.catalog_service import delete_brand

    try:
        delete_brand(brand_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200


@tractors_bp.get("/models")
@require_auth
def list_models_route():
    """
    Query params:
    - brand_id: int (optional)
    """
    from ..services.catalog_service import list_models

    brand_id = request.args.get("brand_id", type=int)
    return {"items": [m.to_dict() for m in list_models(brand_id)]}, 200


@tractors_bp.post("/models")
@require_auth
def create_model_route():
    payload = request.get_json(silent=True) or {}

    brand_id = payload.get("brand_id")
    if brand_id is None or isinstance(brand_id, bool) or not isinstance(brand_id, int):
        return {"error": "brand_id is required and must be an integer"}, 400

    from ..services.catalog_service import create_model

    try:
        model = create_model(brand_id, payload.get("name"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return model.to_dict(), 201


@tractors_bp.delete("/models/<int:model_id>")
@require_auth
def delete_model_route(model_id: int):
    from ..services.catalog_service import delete_model

    try:
        delete_model(model_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200
