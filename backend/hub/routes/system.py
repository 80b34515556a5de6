# backend/hub/routes/system.py
"""
System health endpoint.

Reports database connectivity and the size of each collection, which is
enough to tell an empty install from a broken one.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, Representative, Movement, ConsignmentCycle
from hub.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "representatives": db.session.query(Representative).count(),
            "products": db.session.query(Product).count(),
            "movements": db.session.query(Movement).count(),
            "cycles": db.session.query(ConsignmentCycle).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database check failed
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }
    return response, 200 if healthy else 503
