# Overview: Flask API routes for actor accounts; own profile and administrator management.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..services import attori_service, auth_service


attori_bp = Blueprint("attori", __name__, url_prefix="/api/v1/attori")


def _bool_arg(name: str):
    value = request.args.get(name)
    if value is None or value == "":
        return None
    if value.lower() in ("true", "1"):
        return True
    if value.lower() in ("false", "0"):
        return False
    raise ValidationError(f"{name} must be true or false")


@attori_bp.get("/profilo")
@require_auth
def get_profile_route():
    return jsonify(g.current_attore.to_dict()), 200


@attori_bp.put("/profilo")
@require_auth
def update_profile_route():
    attore = attori_service.update_profile(g.current_attore, request.get_json(silent=True))
    return jsonify({"message": "Profilo aggiornato con successo", "attore": attore.to_dict()}), 200


@attori_bp.get("")
@require_auth
@require_role("Amministratore")
def list_attori_route():
    attori = attori_service.list_attori(
        ruolo=request.args.get("ruolo") or None,
        attivo=_bool_arg("attivo"),
    )
    return jsonify({"attori": [a.to_dict() for a in attori]}), 200


@attori_bp.get("/<int:attore_id>")
@require_auth
@require_role("Amministratore")
def get_attore_route(attore_id: int):
    return jsonify(attori_service.get_attore(attore_id).to_dict()), 200


@attori_bp.post("")
@require_auth
@require_role("Amministratore")
def create_attore_route():
    data = request.get_json(silent=True) or {}
    attore = auth_service.create_attore(
        email=data.get("email"),
        password=data.get("password"),
        nome=data.get("nome"),
        cognome=data.get("cognome"),
        ruolo=data.get("ruolo"),
    )
    return jsonify({"message": "Attore creato con successo", "attore": attore.to_dict()}), 201


@attori_bp.put("/<int:attore_id>")
@require_auth
@require_role("Amministratore")
def update_attore_route(attore_id: int):
    attore = attori_service.update_attore(
        attore_id, request.get_json(silent=True), admin=g.current_attore
    )
    return jsonify({"message": "Attore aggiornato con successo", "attore": attore.to_dict()}), 200
