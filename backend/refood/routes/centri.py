# Overview: Flask API routes for center operations and actor associations.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..services import centri_service, statistiche_service
from refood.time_utils import parse_iso_date


centri_bp = Blueprint("centri", __name__, url_prefix="/api/v1/centri")


@centri_bp.get("")
@require_auth
def list_centri_route():
    centri = centri_service.list_centri(attore=g.current_attore, tipo=request.args.get("tipo") or None)
    return jsonify({"centri": [c.to_dict() for c in centri]}), 200


@centri_bp.get("/<int:centro_id>")
@require_auth
def get_centro_route(centro_id: int):
    return jsonify(centri_service.get_centro(centro_id).to_dict()), 200


@centri_bp.post("")
@require_auth
@require_role("Amministratore")
def create_centro_route():
    centro = centri_service.create_centro(request.get_json(silent=True), attore=g.current_attore)
    return jsonify({"message": "Centro creato con successo", "centro": centro.to_dict()}), 201


@centri_bp.put("/<int:centro_id>")
@require_auth
@require_role("Amministratore")
def update_centro_route(centro_id: int):
    centro = centri_service.update_centro(centro_id, request.get_json(silent=True), attore=g.current_attore)
    return jsonify({"message": "Centro aggiornato con successo", "centro": centro.to_dict()}), 200


@centri_bp.delete("/<int:centro_id>")
@require_auth
@require_role("Amministratore")
def delete_centro_route(centro_id: int):
    centri_service.delete_centro(centro_id, attore=g.current_attore)
    return jsonify({"message": "Centro eliminato con successo"}), 200


@centri_bp.get("/<int:centro_id>/attori")
@require_auth
def list_centro_attori_route(centro_id: int):
    return jsonify({"attori": centri_service.list_center_actors(centro_id)}), 200


@centri_bp.post("/<int:centro_id>/attori")
@require_auth
@require_role("Amministratore")
def associate_attore_route(centro_id: int):
    data = request.get_json(silent=True) or {}
    attore_id = data.get("attore_id")
    if isinstance(attore_id, bool) or not isinstance(attore_id, int):
        raise ValidationError("attore_id must be an integer")
    assoc = centri_service.associate_actor(
        centro_id,
        attore_id,
        attore=g.current_attore,
        ruolo_specifico=data.get("ruolo_specifico"),
    )
    return jsonify({"message": "Attore associato al centro", "associazione": assoc.to_dict()}), 201


@centri_bp.delete("/<int:centro_id>/attori/<int:attore_id>")
@require_auth
@require_role("Amministratore")
def disassociate_attore_route(centro_id: int, attore_id: int):
    centri_service.disassociate_actor(centro_id, attore_id, attore=g.current_attore)
    return jsonify({"message": "Attore rimosso dal centro"}), 200


@centri_bp.get("/<int:centro_id>/statistiche")
@require_auth
def centro_statistiche_route(centro_id: int):
    try:
        inizio = parse_iso_date(request.args.get("inizio"))
        fine = parse_iso_date(request.args.get("fine"))
    except ValueError:
        raise ValidationError("inizio and fine must be ISO-8601 dates (YYYY-MM-DD)")
    report = statistiche_service.get_center_statistics(
        centro_id, attore=g.current_attore, inizio=inizio, fine=fine
    )
    return jsonify(report), 200
