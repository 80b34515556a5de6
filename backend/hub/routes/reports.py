# Overview: Flask API routes for dashboards; read-only aggregates.

from flask import Blueprint

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
def dashboard_route():
    """Totals across all maletas plus central stock counters."""
    from ..services.reporting_service import dashboard_stats

    return dashboard_stats(), 200


@reports_bp.get("/financial")
def financial_route():
    """Sales and stock value per category, and sell-through (turnover) rate."""
    from ..services.reporting_service import financial_breakdown

    return financial_breakdown(), 200
