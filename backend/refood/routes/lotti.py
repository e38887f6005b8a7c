# Overview: Flask API routes for lot operations; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..pagination import page_args, pagination_payload
from ..services import lifecycle_service, lotti_service
from refood.time_utils import parse_iso_date


lotti_bp = Blueprint("lotti", __name__, url_prefix="/api/v1/lotti")

GESTORI = ("Operatore", "Amministratore")


def _mutation_payload(mutation, message: str) -> dict:
    body = {
        "message": message,
        "lotto": lotti_service.serialize_lotto_detail(mutation.lotto),
    }
    if mutation.warnings:
        body["warnings"] = mutation.warnings
    return body


@lotti_bp.get("")
@require_auth
def list_lotti_route():
    page, limit = page_args()
    centro = request.args.get("centro", type=int)
    try:
        scadenza_entro = parse_iso_date(request.args.get("scadenza_entro"))
    except ValueError:
        raise ValidationError("scadenza_entro must be an ISO-8601 date (YYYY-MM-DD)")

    lotti, total = lotti_service.list_lotti(
        attore=g.current_attore,
        stato=request.args.get("stato") or None,
        centro_id=centro,
        scadenza_entro=scadenza_entro,
        page=page,
        limit=limit,
    )
    return jsonify({
        "lotti": [lotto.to_dict() for lotto in lotti],
        "pagination": pagination_payload(total, page, limit),
    }), 200


@lotti_bp.get("/disponibili")
@require_auth
def list_available_route():
    page, limit = page_args()
    lotti, total = lotti_service.list_available(
        attore=g.current_attore,
        stato=request.args.get("stato") or None,
        page=page,
        limit=limit,
    )
    return jsonify({
        "lotti": [lotti_service.serialize_lotto_detail(lotto) for lotto in lotti],
        "pagination": pagination_payload(total, page, limit),
    }), 200


@lotti_bp.get("/<int:lotto_id>")
@require_auth
def get_lotto_route(lotto_id: int):
    lotto = lotti_service.get_visible_lotto(lotto_id, attore=g.current_attore)
    return jsonify(lotti_service.serialize_lotto_detail(lotto)), 200


@lotti_bp.get("/<int:lotto_id>/storico")
@require_auth
def get_lotto_history_route(lotto_id: int):
    lotti_service.get_visible_lotto(lotto_id, attore=g.current_attore)
    history = lifecycle_service.get_status_history(lotto_id)
    return jsonify({"lotto_id": lotto_id, "storico": [entry.to_dict() for entry in history]}), 200


@lotti_bp.post("")
@require_auth
@require_role(*GESTORI)
def create_lotto_route():
    mutation = lotti_service.create_lotto(request.get_json(silent=True), attore=g.current_attore)
    return jsonify(_mutation_payload(mutation, "Lotto creato con successo")), 201


@lotti_bp.put("/<int:lotto_id>")
@require_auth
@require_role(*GESTORI)
def update_lotto_route(lotto_id: int):
    mutation = lotti_service.update_lotto(lotto_id, request.get_json(silent=True), attore=g.current_attore)
    return jsonify(_mutation_payload(mutation, "Lotto aggiornato con successo")), 200


@lotti_bp.delete("/<int:lotto_id>")
@require_auth
@require_role(*GESTORI)
def delete_lotto_route(lotto_id: int):
    lotti_service.delete_lotto(lotto_id, attore=g.current_attore)
    return jsonify({"message": "Lotto eliminato con successo"}), 200
