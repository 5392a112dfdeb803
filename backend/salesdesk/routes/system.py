# backend/salesdesk/routes/system.py
"""
System health and version endpoints.

Health covers database connectivity and whether the overdue sweep is
keeping up (pending installments left behind their due date mean the
scheduled `flask installments sweep-overdue` has not run).
"""

import sys
import time
from datetime import timedelta

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, Sale
from ..services.installment_service import past_due_pending
from salesdesk.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        sale_count = db.session.query(Sale).filter(Sale.not_deleted()).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "active_sales": sale_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_overdue_sweep_health() -> dict:
    """
    Degraded when pending installments are more than a day past due,
    i.e. the daily sweep missed at least one run.
    """
    start_time = time.time()
    try:
        cutoff = (utcnow() - timedelta(days=1)).date()
        lagging = past_due_pending(db.session, cutoff).count()

        elapsed_ms = (time.time() - start_time) * 1000
        result = {
            "status": "degraded" if lagging else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "cadence": current_app.config.get("OVERDUE_SWEEP_CADENCE"),
                "unswept_installments": lagging,
            }
        }
        if lagging:
            result["warning"] = f"{lagging} pending installment(s) past due; run the overdue sweep"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Overdue sweep health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Installment query error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    sweep_health = check_overdue_sweep_health()

    all_checks = [database_health, sweep_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "overdue_sweep": sweep_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
