# backend/dealership/routes/dashboard.py
from flask import Blueprint

from ..decorators import require_auth

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """Landing page figures: stock counts, recent expenses, all-time totals."""
    from ..services.dashboard_service import dashboard_summary

    return dashboard_summary(), 200
