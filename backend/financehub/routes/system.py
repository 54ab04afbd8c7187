# backend/financehub/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import change_feed, db
from ..models import Representative, Voucher
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with two cheap counts.
    """
    start_time = time.time()
    try:
        voucher_count = db.session.query(Voucher).count()
        representative_count = db.session.query(Representative).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "vouchers": voucher_count,
                "representatives": representative_count,
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


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "checked_at": to_utc_z(utcnow()),
        "checks": {
            "database": database,
            "change_feed": {"status": "healthy", "subscribers": change_feed.subscriber_count},
            "summary": {"configured": bool(current_app.config.get("GEMINI_API_KEY"))},
        },
    }
    return jsonify(body), 200 if healthy else 503
