# backend/pos_ledger/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports ledger table sizes.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Outlet, Sale, CashSession
from ..models.shifts import SHIFT_STATUS_OPEN
from pos_ledger.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        outlet_count = db.session.query(Outlet).count()
        sale_count = db.session.query(Sale).count()
        open_shifts = db.session.query(CashSession).filter_by(status=SHIFT_STATUS_OPEN).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "outlets": outlet_count,
                "sales": sale_count,
                "open_shifts": open_shifts,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
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
    - 503: database unavailable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200
    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }, http_status
