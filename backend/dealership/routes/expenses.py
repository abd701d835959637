# Overview: Flask API routes for operating expenses; parses input and returns JSON responses.

# backend/dealership/routes/expenses.py
from flask import Blueprint, request, g

from ..models import Expense
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_expense,
    parse_date_range,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "amount_cents", "description", "recipient", "date"},
    required_on_create={"category", "amount_cents"},
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    """
    Query params:
    - category: salary | rent | bill | misc (optional)
    - start, end: YYYY-MM-DD (optional, inclusive)
    """
    from ..services.expense_service import list_expenses

    try:
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))
        expenses = list_expenses(request.args.get("category") or None, start, end)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": [e.to_dict() for e in expenses]}, 200


@expenses_bp.get("/summary")
@require_auth
def expense_summary_route():
    """Totals per category over an optional inclusive date range."""
    from ..services.expense_service import expense_summary

    try:
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return expense_summary(start, end), 200


@expenses_bp.post("")
@require_auth
def create_expense_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.expense_service import create_expense

    try:
        expense = create_expense(patch, created_by=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return expense.to_dict(), 201


@expenses_bp.get("/<int:expense_id>")
@require_auth
def get_expense_route(expense_id: int):
    from ..services.expense_service import get_expense

    try:
        expense = get_expense(expense_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return expense.to_dict(), 200


@expenses_bp.put("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    from ..services.expense_service import update_expense

    try:
        expense = update_expense(expense_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return expense.to_dict(), 200


@expenses_bp.delete("/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    from ..services.expense_service import delete_expense

    try:
        delete_expense(expense_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200
