# Overview: Flask API routes for live counters and daily statistics snapshots.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..services import statistiche_service
from refood.time_utils import parse_iso_date


statistiche_bp = Blueprint("statistiche", __name__, url_prefix="/api/v1/statistiche")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date (YYYY-MM-DD)")


@statistiche_bp.get("/counters")
@require_auth
def counters_route():
    return jsonify(statistiche_service.get_counters()), 200


@statistiche_bp.get("/giornaliere")
@require_auth
@require_role("Amministratore", "Operatore")
def daily_statistics_route():
    rows = statistiche_service.list_daily_statistics(dal=_date_arg("dal"), al=_date_arg("al"))
    return jsonify({"statistiche": [row.to_dict() for row in rows]}), 200
