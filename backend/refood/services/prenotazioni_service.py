# Overview: Service-layer operations for reservations; booking, state transitions and cancellation.

"""
Reservation state machine.

    Prenotato  -> InTransito | Annullato
    InTransito -> Consegnato | Annullato
    Consegnato, Annullato: terminal

"Attiva" is a legacy active state; it behaves like Prenotato.
Moving to Consegnato requires data_consegna in the same request.

Registering a transport on a Prenotato reservation moves it to InTransito.
The transport status follows the reservation afterwards.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import Attore, Centro, Lotto, Prenotazione, Trasporto
from ..validation import ModelValidationPolicy, validate_payload
from . import access_service, notification_service
from .notification_service import SideEffectResult
from refood.time_utils import utcnow


logger = logging.getLogger(__name__)

TRANSIZIONI = {
    "Attiva": {"InTransito", "Annullato"},
    "Prenotato": {"InTransito", "Annullato"},
    "InTransito": {"Consegnato", "Annullato"},
    "Consegnato": set(),
    "Annullato": set(),
}

# States in which a lot counts as already reserved by someone
STATI_OCCUPATO = ("Attiva", "Prenotato", "InTransito")

STATO_TRASPORTO_PER_PRENOTAZIONE = {
    "InTransito": "InCorso",
    "Consegnato": "Completato",
    "Annullato": "Annullato",
}

TRASPORTO_POLICY = ModelValidationPolicy(
    writable_fields={
        "mezzo", "distanza_km", "emissioni_co2", "costo",
        "autista", "telefono_autista", "orario_partenza", "orario_arrivo",
    },
    required_on_create={"mezzo"},
)


def can_transition(da: str, a: str) -> bool:
    return a in TRANSIZIONI.get(da, set())


def get_prenotazione(prenotazione_id: int) -> Prenotazione:
    prenotazione = db.session.get(Prenotazione, prenotazione_id)
    if not prenotazione:
        raise NotFoundError("Prenotazione non trovata")
    return prenotazione


def _involved_center_ids(prenotazione: Prenotazione) -> set[int]:
    return {prenotazione.centro_ricevente_id, prenotazione.lotto.centro_origine_id}


def _require_involvement(attore: Attore, prenotazione: Prenotazione) -> None:
    if attore.is_admin:
        return
    mine = set(access_service.operable_center_ids(attore))
    if not mine & _involved_center_ids(prenotazione):
        raise ForbiddenError("Non hai i permessi per questa prenotazione")


def create_prenotazione(
    *,
    lotto_id: int | None,
    centro_ricevente_id: int | None,
    attore: Attore,
    data_ritiro: datetime | None = None,
    note: str | None = None,
) -> tuple[Prenotazione, SideEffectResult]:
    if lotto_id is None or centro_ricevente_id is None:
        raise ValidationError("lotto_id e centro_ricevente_id sono obbligatori")

    lotto = db.session.get(Lotto, lotto_id)
    if not lotto:
        raise NotFoundError("Lotto non trovato")

    already = (
        db.session.query(Prenotazione.id)
        .filter(Prenotazione.lotto_id == lotto.id)
        .filter(Prenotazione.stato.in_(STATI_OCCUPATO))
        .first()
    )
    if already:
        raise ConflictError("Il lotto è già prenotato")

    centro = db.session.get(Centro, centro_ricevente_id)
    if not centro:
        raise NotFoundError("Centro ricevente non trovato")
    if centro.id == lotto.centro_origine_id:
        raise ValidationError("Il centro ricevente non può coincidere con il centro di origine")

    access_service.require_center_access(attore, centro.id)

    try:
        prenotazione = Prenotazione(
            lotto_id=lotto.id,
            centro_ricevente_id=centro.id,
            attore_id=attore.id,
            stato="Prenotato",
            data_prenotazione=utcnow(),
            data_ritiro=data_ritiro,
            note=note,
        )
        db.session.add(prenotazione)
        db.session.flush()
        side_effect = notification_service.notify_reservation_created(prenotazione, attore.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Prenotazione %s created for lotto %s by centro %s", prenotazione.id, lotto.id, centro.id)
    return prenotazione, side_effect


def update_prenotazione(
    prenotazione_id: int,
    *,
    attore: Attore,
    stato: str | None = None,
    data_ritiro: datetime | None = None,
    data_consegna: datetime | None = None,
    note: str | None = None,
) -> tuple[Prenotazione, SideEffectResult | None]:
    prenotazione = get_prenotazione(prenotazione_id)
    _require_involvement(attore, prenotazione)

    if stato is None and data_ritiro is None and data_consegna is None and note is None:
        raise ValidationError("Nessun campo da aggiornare")

    stato_precedente = prenotazione.stato
    if stato is not None and stato != stato_precedente:
        if stato not in TRANSIZIONI:
            raise ValidationError(f"Stato prenotazione non valido: {stato}")
        if not can_transition(stato_precedente, stato):
            raise ConflictError(f"Transizione non consentita: {stato_precedente} -> {stato}")
        if stato == "Consegnato" and data_consegna is None:
            raise ValidationError("data_consegna è obbligatoria per lo stato Consegnato")

    try:
        if data_ritiro is not None:
            prenotazione.data_ritiro = data_ritiro
        if note is not None:
            prenotazione.note = note
        if data_consegna is not None:
            prenotazione.data_consegna = data_consegna

        side_effect = None
        if stato is not None and stato != stato_precedente:
            prenotazione.stato = stato
            _sync_transport(prenotazione)
            side_effect = notification_service.notify_reservation_status(prenotazione, attore.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if side_effect is not None:
        logger.info(
            "Prenotazione %s moved %s -> %s by attore %s",
            prenotazione.id, stato_precedente, prenotazione.stato, attore.id,
        )
    return prenotazione, side_effect


def _sync_transport(prenotazione: Prenotazione) -> None:
    trasporto = prenotazione.trasporto
    if trasporto is None:
        return
    stato = STATO_TRASPORTO_PER_PRENOTAZIONE.get(prenotazione.stato)
    if stato is not None:
        trasporto.stato = stato


def add_trasporto(
    prenotazione_id: int,
    payload: dict,
    *,
    attore: Attore,
) -> tuple[Prenotazione, SideEffectResult | None]:
    """
    Create or replace the transport of a reservation. A reservation still
    waiting for pickup moves to InTransito.
    """
    prenotazione = get_prenotazione(prenotazione_id)
    _require_involvement(attore, prenotazione)

    if prenotazione.stato not in STATI_OCCUPATO:
        raise ValidationError(
            f"Impossibile aggiungere un trasporto a una prenotazione in stato {prenotazione.stato}"
        )
    patch = validate_payload(model=Trasporto, payload=payload, policy=TRASPORTO_POLICY, partial=False)

    stato_precedente = prenotazione.stato
    side_effect = None
    try:
        trasporto = prenotazione.trasporto
        if trasporto is None:
            trasporto = Trasporto(prenotazione_id=prenotazione.id, creato_il=utcnow())
            prenotazione.trasporto = trasporto
        for key in TRASPORTO_POLICY.writable_fields:
            setattr(trasporto, key, patch.get(key))

        if stato_precedente != "InTransito":
            prenotazione.stato = "InTransito"
            side_effect = notification_service.notify_reservation_status(prenotazione, attore.id)
        _sync_transport(prenotazione)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Trasporto (%s) registered for prenotazione %s by attore %s",
        trasporto.mezzo, prenotazione.id, attore.id,
    )
    return prenotazione, side_effect


def cancel_prenotazione(
    prenotazione_id: int,
    *,
    attore: Attore,
    motivo: str | None = None,
) -> tuple[Prenotazione, SideEffectResult]:
    prenotazione = get_prenotazione(prenotazione_id)
    _require_involvement(attore, prenotazione)

    if prenotazione.stato in ("Consegnato", "Annullato"):
        raise ConflictError(f"Impossibile annullare una prenotazione in stato {prenotazione.stato}")

    note = prenotazione.note
    if motivo:
        note = f"{note}\nAnnullata: {motivo}" if note else f"Annullata: {motivo}"

    prenotazione, side_effect = update_prenotazione(
        prenotazione.id, attore=attore, stato="Annullato", note=note
    )
    return prenotazione, side_effect


def list_prenotazioni(
    *,
    attore: Attore,
    stato: str | None = None,
    centro_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Prenotazione], int]:
    query = db.session.query(Prenotazione).join(Lotto, Lotto.id == Prenotazione.lotto_id)
    if not attore.is_admin:
        mine = access_service.operable_center_ids(attore)
        query = query.filter(
            Prenotazione.centro_ricevente_id.in_(mine) | Lotto.centro_origine_id.in_(mine)
        )
    if stato:
        query = query.filter(Prenotazione.stato == stato)
    if centro_id is not None:
        query = query.filter(
            (Prenotazione.centro_ricevente_id == centro_id) | (Lotto.centro_origine_id == centro_id)
        )

    total = query.count()
    items = (
        query.order_by(Prenotazione.data_prenotazione.desc(), Prenotazione.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def list_center_prenotazioni(
    centro_id: int,
    *,
    attore: Attore,
    stato: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Prenotazione], int]:
    """Reservations a center takes part in, as origin or receiver."""
    if not db.session.get(Centro, centro_id):
        raise NotFoundError("Centro non trovato")
    access_service.require_center_access(attore, centro_id)
    if stato is not None and stato not in TRANSIZIONI:
        raise ValidationError(f"Stato prenotazione non valido: {stato}")
    return list_prenotazioni(attore=attore, stato=stato, centro_id=centro_id, page=page, limit=limit)


def serialize_prenotazione(prenotazione: Prenotazione) -> dict:
    data = prenotazione.to_dict()
    lotto = prenotazione.lotto
    data["prodotto"] = lotto.prodotto if lotto else None
    data["stato_lotto"] = lotto.stato if lotto else None
    data["centro_origine_id"] = lotto.centro_origine_id if lotto else None
    data["centro_ricevente_nome"] = prenotazione.centro_ricevente.nome if prenotazione.centro_ricevente else None
    data["trasporto"] = prenotazione.trasporto.to_dict() if prenotazione.trasporto else None
    return data
