# Overview: Service-layer operations for actor accounts; own profile and administrator management.

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Attore, RUOLI
from . import auth_service, session_service


logger = logging.getLogger(__name__)

# Roles anyone may pick at self-registration; the others are granted by an administrator
RUOLI_REGISTRAZIONE = ("CentroSociale", "CentroRiciclaggio")

PROFILO_FIELDS = {"nome", "cognome", "email", "password"}
ADMIN_FIELDS = PROFILO_FIELDS | {"ruolo", "attivo"}


def get_attore(attore_id: int) -> Attore:
    attore = db.session.get(Attore, attore_id)
    if not attore:
        raise NotFoundError("Attore non trovato")
    return attore


def list_attori(*, ruolo: str | None = None, attivo: bool | None = None) -> list[Attore]:
    query = db.session.query(Attore)
    if ruolo:
        query = query.filter(Attore.ruolo == ruolo)
    if attivo is not None:
        query = query.filter(Attore.attivo.is_(attivo))
    return query.order_by(Attore.cognome.asc(), Attore.nome.asc(), Attore.id.asc()).all()


def register(payload: dict) -> Attore:
    """Public sign-up, limited to the center roles."""
    payload = payload or {}
    ruolo = payload.get("ruolo") or "CentroSociale"
    if ruolo not in RUOLI_REGISTRAZIONE:
        raise ValidationError(f"ruolo must be one of: {', '.join(RUOLI_REGISTRAZIONE)}")
    return auth_service.create_attore(
        email=payload.get("email"),
        password=payload.get("password"),
        nome=payload.get("nome"),
        cognome=payload.get("cognome"),
        ruolo=ruolo,
    )


def _required_text(payload: dict, key: str) -> str:
    value = payload[key]
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} cannot be blank")
    return value.strip()


def _apply(attore: Attore, payload: dict, allowed: set[str]) -> list[str]:
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("Nessun campo da aggiornare")
    for key in payload:
        if key not in allowed:
            raise ValidationError(f"Field not allowed: {key}")

    changed = []
    for key in ("nome", "cognome"):
        if key in payload:
            setattr(attore, key, _required_text(payload, key))
            changed.append(key)

    if "email" in payload:
        email = _required_text(payload, "email").lower()
        duplicate = (
            db.session.query(Attore.id)
            .filter(Attore.email == email, Attore.id != attore.id)
            .first()
        )
        if duplicate:
            raise ConflictError("Email già registrata")
        attore.email = email
        changed.append("email")

    if "password" in payload:
        attore.password_hash = auth_service.hash_password(payload["password"])
        changed.append("password")

    if "ruolo" in payload:
        if payload["ruolo"] not in RUOLI:
            raise ValidationError(f"ruolo must be one of: {', '.join(sorted(RUOLI))}")
        attore.ruolo = payload["ruolo"]
        changed.append("ruolo")

    if "attivo" in payload:
        if not isinstance(payload["attivo"], bool):
            raise ValidationError("attivo must be a boolean")
        attore.attivo = payload["attivo"]
        changed.append("attivo")

    return changed


def update_profile(attore: Attore, payload: dict) -> Attore:
    """
    Own profile: nome, cognome, email and password. Changing the password
    does not end the current session.
    """
    try:
        changed = _apply(attore, payload, PROFILO_FIELDS)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Attore %s updated own profile (%s)", attore.id, ", ".join(changed))
    return attore


def update_attore(attore_id: int, payload: dict, *, admin: Attore) -> Attore:
    """
    Administrator edit. Deactivating an account or resetting its password
    revokes every open session of that account.
    """
    target = get_attore(attore_id)
    if target.id == admin.id and payload and payload.get("attivo") is False:
        raise ValidationError("Impossibile disattivare il proprio account")

    try:
        changed = _apply(target, payload, ADMIN_FIELDS)
        revoked = 0
        if "password" in changed or not target.attivo:
            revoked = session_service.revoke_all_attore_sessions(
                target.id, "Account aggiornato da amministratore"
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Attore %s updated by admin %s (%s), %d sessioni revocate",
        target.id, admin.id, ", ".join(changed), revoked,
    )
    return target
