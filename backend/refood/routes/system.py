# Overview: Flask API routes for service health; no authentication.

from flask import Blueprint, current_app, jsonify

from ..scheduler import get_scheduler
from ..services import schema_service
from refood.time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__, url_prefix="/api/v1")


@system_bp.get("/health-check")
def health_check():
    scheduler = get_scheduler(current_app)
    caps = schema_service.get_capabilities()
    return jsonify({
        "status": "ok",
        "timestamp": to_utc_z(utcnow()),
        "scheduler": {
            "enabled": scheduler is not None,
            "running": bool(scheduler and scheduler.running),
        },
        "schema": {"version": caps.version, "categorie": caps.categorie},
    }), 200
