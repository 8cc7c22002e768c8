import logging

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cvbuilder.extensions import db
from cvbuilder.services.cv_transforms import now_iso

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/health")


@health_bp.route("", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = {"status": "healthy", "message": "Database connection successful"}
    except SQLAlchemyError as e:
        logger.error(f"❌ Database health check failed: {e}")
        database = {"status": "unhealthy", "message": str(e)}

    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "error",
        "timestamp": now_iso(),
        "services": {
            "database": "connected" if healthy else "disconnected",
            "api": "running",
        },
        "details": {"database": database},
    }), 200 if healthy else 500
