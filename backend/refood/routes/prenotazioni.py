# Overview: Flask API routes for reservation operations.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import ValidationError
from ..pagination import page_args, pagination_payload
from ..services import prenotazioni_service
from refood.time_utils import parse_iso_datetime


prenotazioni_bp = Blueprint("prenotazioni", __name__, url_prefix="/api/v1/prenotazioni")


def _datetime_field(data: dict, key: str):
    try:
        return parse_iso_datetime(data.get(key))
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


def _int_field(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def _with_warning(body: dict, side_effect) -> dict:
    if side_effect is not None and not side_effect.ok:
        body["warnings"] = [side_effect.label]
    return body


@prenotazioni_bp.get("")
@require_auth
def list_prenotazioni_route():
    page, limit = page_args()
    items, total = prenotazioni_service.list_prenotazioni(
        attore=g.current_attore,
        stato=request.args.get("stato") or None,
        centro_id=request.args.get("centro", type=int),
        page=page,
        limit=limit,
    )
    return jsonify({
        "prenotazioni": [prenotazioni_service.serialize_prenotazione(p) for p in items],
        "pagination": pagination_payload(total, page, limit),
    }), 200


@prenotazioni_bp.get("/<int:prenotazione_id>")
@require_auth
def get_prenotazione_route(prenotazione_id: int):
    prenotazione = prenotazioni_service.get_prenotazione(prenotazione_id)
    return jsonify(prenotazioni_service.serialize_prenotazione(prenotazione)), 200


@prenotazioni_bp.post("")
@require_auth
def create_prenotazione_route():
    data = request.get_json(silent=True) or {}
    prenotazione, side_effect = prenotazioni_service.create_prenotazione(
        lotto_id=_int_field(data, "lotto_id"),
        centro_ricevente_id=_int_field(data, "centro_ricevente_id"),
        attore=g.current_attore,
        data_ritiro=_datetime_field(data, "data_ritiro"),
        note=data.get("note"),
    )
    body = {
        "message": "Prenotazione creata con successo",
        "prenotazione": prenotazioni_service.serialize_prenotazione(prenotazione),
    }
    return jsonify(_with_warning(body, side_effect)), 201


@prenotazioni_bp.put("/<int:prenotazione_id>")
@require_auth
def update_prenotazione_route(prenotazione_id: int):
    data = request.get_json(silent=True) or {}
    prenotazione, side_effect = prenotazioni_service.update_prenotazione(
        prenotazione_id,
        attore=g.current_attore,
        stato=data.get("stato"),
        data_ritiro=_datetime_field(data, "data_ritiro"),
        data_consegna=_datetime_field(data, "data_consegna"),
        note=data.get("note"),
    )
    body = {
        "message": "Prenotazione aggiornata con successo",
        "prenotazione": prenotazioni_service.serialize_prenotazione(prenotazione),
    }
    return jsonify(_with_warning(body, side_effect)), 200


@prenotazioni_bp.post("/<int:prenotazione_id>/annulla")
@require_auth
def cancel_prenotazione_route(prenotazione_id: int):
    data = request.get_json(silent=True) or {}
    prenotazione, side_effect = prenotazioni_service.cancel_prenotazione(
        prenotazione_id,
        attore=g.current_attore,
        motivo=data.get("motivo"),
    )
    body = {
        "message": "Prenotazione annullata con successo",
        "prenotazione": prenotazioni_service.serialize_prenotazione(prenotazione),
    }
    return jsonify(_with_warning(body, side_effect)), 200


@prenotazioni_bp.post("/<int:prenotazione_id>/trasporto")
@require_auth
def add_trasporto_route(prenotazione_id: int):
    prenotazione, side_effect = prenotazioni_service.add_trasporto(
        prenotazione_id,
        request.get_json(silent=True),
        attore=g.current_attore,
    )
    body = {
        "message": "Trasporto registrato con successo",
        "prenotazione": prenotazioni_service.serialize_prenotazione(prenotazione),
    }
    return jsonify(_with_warning(body, side_effect)), 200


@prenotazioni_bp.get("/centro/<int:centro_id>")
@require_auth
def list_center_prenotazioni_route(centro_id: int):
    page, limit = page_args()
    items, total = prenotazioni_service.list_center_prenotazioni(
        centro_id,
        attore=g.current_attore,
        stato=request.args.get("stato") or None,
        page=page,
        limit=limit,
    )
    return jsonify({
        "prenotazioni": [prenotazioni_service.serialize_prenotazione(p) for p in items],
        "pagination": pagination_payload(total, page, limit),
    }), 200
