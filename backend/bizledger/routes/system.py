# backend/bizledger/routes/system.py
"""
System health endpoint.

Unauthenticated so load balancers and the CLI can check it.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..responses import success, failure

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run a trivial query and report its latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    if database["status"] != "healthy":
        return failure("Database unavailable", 503)
    return success({"status": "ok", "database": database})
