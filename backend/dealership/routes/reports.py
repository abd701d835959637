# Overview: Flask API routes for accounting reports; parses input and returns JSON responses.

# backend/dealership/routes/reports.py
"""
Accounting report routes.

All figures come from the transaction ledger and the expense table.

SECURITY:
- profit-loss requires the admin role
- transactions is available to any authenticated user
"""
from flask import Blueprint, request

from ..models.auth import ROLE_ADMIN
from ..validation import parse_date_range, ValidationError
from ..decorators import require_auth, require_role

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/profit-loss")
@require_auth
@require_role(ROLE_ADMIN)
def profit_loss_route():
    """
    Profit and loss over an optional inclusive date range.

    Query params:
    - start, end: YYYY-MM-DD (optional)

    net_profit_cents = total_sales_cents - total_purchases_cents - total_expenses_cents
    """
    from ..services.accounting_service import profit_loss

    try:
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    return profit_loss(start, end), 200


@reports_bp.get("/transactions")
@require_auth
def transactions_route():
    """
    Ledger listing, newest first.

    Query params:
    - type: sale | purchase (optional)
    - entity_type: tractor | part | service (optional)
    - start, end: YYYY-MM-DD (optional, inclusive)
    """
    from ..services.accounting_service import transactions

    try:
        start, end = parse_date_range(request.args.get("start"), request.args.get("end"))
        rows = transactions(
            tx_type=request.args.get("type") or None,
            entity_type=request.args.get("entity_type") or None,
            start=start,
            end=end,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {
        "items": [tx.to_dict() for tx in rows],
        "total_amount_cents": sum(tx.amount_cents for tx in rows),
    }, 200
