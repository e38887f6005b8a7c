# Overview: Flask API routes for the current actor's notification inbox.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import ValidationError
from ..pagination import page_args, pagination_payload
from ..services import notification_service


notifiche_bp = Blueprint("notifiche", __name__, url_prefix="/api/v1/notifiche")


def _parse_letto(raw: str | None) -> bool | None:
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in {"true", "1"}:
        return True
    if value in {"false", "0"}:
        return False
    raise ValidationError("letto must be true or false")


@notifiche_bp.get("")
@require_auth
def list_notifiche_route():
    page, limit = page_args()
    attore_id = g.current_attore.id
    items, total = notification_service.list_notifications(
        attore_id,
        letto=_parse_letto(request.args.get("letto")),
        page=page,
        limit=limit,
    )
    return jsonify({
        "notifiche": [n.to_dict() for n in items],
        "non_lette": notification_service.count_unread(attore_id),
        "pagination": pagination_payload(total, page, limit),
    }), 200


@notifiche_bp.get("/conteggio")
@require_auth
def count_unread_route():
    return jsonify({"non_lette": notification_service.count_unread(g.current_attore.id)}), 200


@notifiche_bp.put("/<int:notifica_id>/letta")
@require_auth
def mark_read_route(notifica_id: int):
    notifica = notification_service.mark_read(notifica_id, g.current_attore.id)
    return jsonify({"message": "Notifica segnata come letta", "notifica": notifica.to_dict()}), 200


@notifiche_bp.put("/lette")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(g.current_attore.id)
    return jsonify({"message": "Tutte le notifiche segnate come lette", "aggiornate": updated}), 200


@notifiche_bp.delete("/<int:notifica_id>")
@require_auth
def delete_notifica_route(notifica_id: int):
    notification_service.delete_notification(notifica_id, g.current_attore.id)
    return jsonify({"message": "Notifica eliminata"}), 200
