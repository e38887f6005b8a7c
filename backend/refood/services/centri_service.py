# Overview: Service-layer operations for centers and actor associations.

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import (
    Attore,
    AttoreCentro,
    CENTRO_TIPI,
    Centro,
    Lotto,
    Prenotazione,
    PrenotazioneArchivio,
    STATI_PRENOTAZIONE_ATTIVI,
)
from ..validation import ModelValidationPolicy, require_choice, validate_payload
from . import access_service
from refood.time_utils import utcnow


logger = logging.getLogger(__name__)

SUPERADMIN = "SuperAdmin"

CENTRO_POLICY = ModelValidationPolicy(
    writable_fields={"nome", "tipo", "indirizzo", "telefono", "email", "latitudine", "longitudine"},
    required_on_create={"nome", "tipo", "indirizzo"},
)


def get_centro(centro_id: int) -> Centro:
    centro = db.session.get(Centro, centro_id)
    if not centro:
        raise NotFoundError("Centro non trovato")
    return centro


def list_centri(*, attore: Attore, tipo: str | None = None) -> list[Centro]:
    query = access_service.visible_centers_query(attore)
    if tipo:
        require_choice("tipo", tipo, CENTRO_TIPI)
        query = query.filter(Centro.tipo == tipo)
    return query.order_by(Centro.nome.asc()).all()


def _ensure_unique_name(nome: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Centro.id).filter(func.lower(Centro.nome) == nome.lower())
    if exclude_id is not None:
        query = query.filter(Centro.id != exclude_id)
    if query.first():
        raise ConflictError(f"Esiste già un centro con nome '{nome}'")


def create_centro(payload: dict, *, attore: Attore) -> Centro:
    """
    Create a center. An administrator creating a center is associated to it
    as SuperAdmin.
    """
    patch = validate_payload(model=Centro, payload=payload, policy=CENTRO_POLICY, partial=False)
    require_choice("tipo", patch.get("tipo"), CENTRO_TIPI)
    _ensure_unique_name(patch["nome"])

    centro = Centro(**patch, creato_il=utcnow())
    db.session.add(centro)
    db.session.flush()

    if attore.is_admin:
        db.session.add(AttoreCentro(
            attore_id=attore.id,
            centro_id=centro.id,
            ruolo_specifico=SUPERADMIN,
            data_inizio=utcnow(),
        ))
    db.session.commit()

    logger.info("Centro %s (%s) created by attore %s", centro.id, centro.tipo, attore.id)
    return centro


def update_centro(centro_id: int, payload: dict, *, attore: Attore) -> Centro:
    centro = get_centro(centro_id)
    access_service.require_center_access(attore, centro.id)

    patch = validate_payload(model=Centro, payload=payload, policy=CENTRO_POLICY, partial=True)
    if not patch:
        raise ValidationError("Nessun campo da aggiornare")
    require_choice("tipo", patch.get("tipo"), CENTRO_TIPI)
    if "nome" in patch:
        _ensure_unique_name(patch["nome"], exclude_id=centro.id)

    for key, value in patch.items():
        setattr(centro, key, value)
    db.session.commit()
    return centro


def delete_centro(centro_id: int, *, attore: Attore) -> None:
    """Blocked while the center owns lots or takes part in active reservations."""
    centro = get_centro(centro_id)
    access_service.require_center_access(attore, centro.id)

    has_lotti = db.session.query(Lotto.id).filter(Lotto.centro_origine_id == centro.id).first()
    if has_lotti:
        raise ConflictError("Impossibile eliminare il centro: ha lotti associati")

    has_active = (
        db.session.query(Prenotazione.id)
        .filter(Prenotazione.centro_ricevente_id == centro.id)
        .filter(Prenotazione.stato.in_(STATI_PRENOTAZIONE_ATTIVI))
        .first()
    )
    if has_active:
        raise ConflictError("Impossibile eliminare il centro: ha prenotazioni attive")

    try:
        archiviate = _archive_received_reservations(centro.id)
        db.session.delete(centro)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(
        "Centro %s deleted by attore %s (%d prenotazioni concluse archiviate)",
        centro_id, attore.id, archiviate,
    )


def _archive_received_reservations(centro_id: int) -> int:
    """Move the center's concluded reservations to the archive; their transports go with them."""
    prenotazioni = (
        db.session.query(Prenotazione)
        .filter(Prenotazione.centro_ricevente_id == centro_id)
        .all()
    )
    now = utcnow()
    for p in prenotazioni:
        db.session.add(PrenotazioneArchivio(
            id=p.id,
            lotto_id=p.lotto_id,
            centro_ricevente_id=p.centro_ricevente_id,
            attore_id=p.attore_id,
            stato=p.stato,
            data_prenotazione=p.data_prenotazione,
            data_ritiro=p.data_ritiro,
            data_consegna=p.data_consegna,
            note=p.note,
            data_archiviazione=now,
        ))
        db.session.delete(p)
    db.session.flush()
    return len(prenotazioni)


def list_center_actors(centro_id: int) -> list[dict]:
    get_centro(centro_id)
    rows = (
        db.session.query(Attore, AttoreCentro)
        .join(AttoreCentro, AttoreCentro.attore_id == Attore.id)
        .filter(AttoreCentro.centro_id == centro_id)
        .order_by(Attore.cognome.asc(), Attore.nome.asc())
        .all()
    )
    result = []
    for a, assoc in rows:
        data = a.to_dict()
        data["ruolo_specifico"] = assoc.ruolo_specifico
        data["data_inizio"] = assoc.to_dict()["data_inizio"]
        result.append(data)
    return result


def associate_actor(
    centro_id: int,
    attore_id: int,
    *,
    attore: Attore,
    ruolo_specifico: str | None = None,
) -> AttoreCentro:
    centro = get_centro(centro_id)
    access_service.require_center_access(attore, centro.id)

    if not db.session.get(Attore, attore_id):
        raise NotFoundError("Attore non trovato")

    existing = (
        db.session.query(AttoreCentro)
        .filter_by(attore_id=attore_id, centro_id=centro.id)
        .first()
    )
    if existing:
        raise ConflictError("Attore già associato a questo centro")

    assoc = AttoreCentro(
        attore_id=attore_id,
        centro_id=centro.id,
        ruolo_specifico=ruolo_specifico,
        data_inizio=utcnow(),
    )
    db.session.add(assoc)
    db.session.commit()
    return assoc


def disassociate_actor(centro_id: int, attore_id: int, *, attore: Attore) -> None:
    centro = get_centro(centro_id)
    access_service.require_center_access(attore, centro.id)

    assoc = (
        db.session.query(AttoreCentro)
        .filter_by(attore_id=attore_id, centro_id=centro.id)
        .first()
    )
    if not assoc:
        raise NotFoundError("Associazione non trovata")
    db.session.delete(assoc)
    db.session.commit()
