# Overview: Service-layer operations for lots; create/update/delete with status log and notification side effects.

"""
Lot controller logic.

Each mutating operation runs in one transaction: the lot row, its status-log
row(s) and its category links commit together. Notifications are attached
through notification_service.best_effort(), so they can fail without
rolling the lot back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import case, func, select

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import (
    Attore,
    Categoria,
    Centro,
    LogCambioStato,
    Lotto,
    LottoCategoria,
    Prenotazione,
    Trasporto,
    STATI_PRENOTAZIONE_ATTIVI,
)
from ..validation import ModelValidationPolicy, parse_id_list, validate_payload
from . import access_service, lifecycle_service, notification_service, schema_service
from .notification_service import SideEffectResult
from refood.time_utils import utcnow


logger = logging.getLogger(__name__)

DEFAULT_GIORNI_PERMANENZA = 7

# Reservation states that take a lot off the "available" list
STATI_NON_DISPONIBILE = ("PRENOTATO", "INTRANSITO", "CONSEGNATO")

LOTTO_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "prodotto",
        "quantita",
        "unita_misura",
        "data_scadenza",
        "giorni_permanenza",
        "centro_origine_id",
    },
    required_on_create={
        "prodotto",
        "quantita",
        "unita_misura",
        "data_scadenza",
        "centro_origine_id",
    },
    extra_fields={"categorie_ids"},
)

LOTTO_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "prodotto",
        "quantita",
        "unita_misura",
        "data_scadenza",
        "giorni_permanenza",
        "stato",
    },
    extra_fields={"categorie_ids"},
)


@dataclass
class LottoMutation:
    """A committed lot plus the outcome of its best-effort side effects."""
    lotto: Lotto
    side_effects: list[SideEffectResult] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [r.label for r in self.side_effects if not r.ok]


def _check_quantities(patch: dict) -> None:
    if "quantita" in patch and patch["quantita"] is not None and patch["quantita"] <= 0:
        raise ValidationError("quantita must be > 0")
    if "giorni_permanenza" in patch and patch["giorni_permanenza"] is not None:
        if patch["giorni_permanenza"] < 0:
            raise ValidationError("giorni_permanenza must be >= 0")


def _link_categories(lotto_id: int, categorie_ids: list[int]) -> None:
    if not categorie_ids:
        return
    found = {
        row.id
        for row in db.session.query(Categoria.id).filter(Categoria.id.in_(categorie_ids)).all()
    }
    missing = [i for i in categorie_ids if i not in found]
    if missing:
        raise ValidationError(f"Categorie non trovate: {', '.join(str(i) for i in missing)}")
    for categoria_id in categorie_ids:
        db.session.add(LottoCategoria(lotto_id=lotto_id, categoria_id=categoria_id))


def get_lotto(lotto_id: int) -> Lotto:
    lotto = db.session.get(Lotto, lotto_id)
    if not lotto:
        raise NotFoundError("Lotto non trovato")
    return lotto


def get_categories(lotto_id: int) -> list[Categoria]:
    if not schema_service.has_categorie():
        return []
    return (
        db.session.query(Categoria)
        .join(LottoCategoria, LottoCategoria.categoria_id == Categoria.id)
        .filter(LottoCategoria.lotto_id == lotto_id)
        .order_by(Categoria.nome.asc())
        .all()
    )


def count_active_reservations(lotto_id: int) -> int:
    return (
        db.session.query(func.count(Prenotazione.id))
        .filter(Prenotazione.lotto_id == lotto_id)
        .filter(Prenotazione.stato.in_(STATI_PRENOTAZIONE_ATTIVI))
        .scalar()
    ) or 0


def is_reserved(lotto_id: int) -> bool:
    return db.session.query(
        select(Prenotazione.id)
        .where(Prenotazione.lotto_id == lotto_id)
        .where(func.upper(Prenotazione.stato).in_(STATI_NON_DISPONIBILE))
        .exists()
    ).scalar()


def get_visible_lotto(lotto_id: int, *, attore: Attore) -> Lotto:
    """
    A lot the actor may read.

    Readable when the actor operates on its origin center, when it is still
    unreserved (receiving centers browse those), or when one of the actor's
    centers holds a reservation on it.
    """
    lotto = get_lotto(lotto_id)
    centri = access_service.operable_center_ids(attore)
    if lotto.centro_origine_id in centri or not is_reserved(lotto.id):
        return lotto

    reserving = (
        db.session.query(Prenotazione.id)
        .filter(Prenotazione.lotto_id == lotto.id)
        .filter(Prenotazione.centro_ricevente_id.in_(centri))
        .first()
    )
    if reserving is None:
        raise ForbiddenError("Non hai i permessi per visualizzare questo lotto")
    return lotto


def serialize_lotto_detail(lotto: Lotto) -> dict:
    data = lotto.to_dict()
    data["centro_nome"] = lotto.centro_origine.nome if lotto.centro_origine else None
    data["categorie"] = [c.nome for c in get_categories(lotto.id)]
    data["prenotazioni_attive"] = count_active_reservations(lotto.id)
    return data


def create_lotto(payload: dict, *, attore: Attore, oggi: date | None = None) -> LottoMutation:
    """
    Create a lot, its initial status-log row and (optionally) category links.

    Raises ValidationError for bad input or an unknown center,
    ForbiddenError if the actor cannot operate on the center.
    """
    patch = validate_payload(model=Lotto, payload=payload, policy=LOTTO_CREATE_POLICY, partial=False)
    _check_quantities(patch)
    categorie_ids = parse_id_list("categorie_ids", patch.pop("categorie_ids", None))

    centro = db.session.get(Centro, patch["centro_origine_id"])
    if not centro:
        raise ValidationError("Centro di origine non trovato")
    access_service.require_center_access(attore, centro.id)

    giorni = patch.get("giorni_permanenza")
    if giorni is None:
        giorni = DEFAULT_GIORNI_PERMANENZA
    stato = lifecycle_service.compute_status(patch["data_scadenza"], giorni, oggi)

    now = utcnow()
    try:
        lotto = Lotto(
            prodotto=patch["prodotto"],
            quantita=patch["quantita"],
            unita_misura=patch["unita_misura"],
            data_scadenza=patch["data_scadenza"],
            giorni_permanenza=giorni,
            stato=stato,
            centro_origine_id=centro.id,
            inserito_da=attore.id,
            creato_il=now,
            aggiornato_il=now,
        )
        db.session.add(lotto)
        db.session.flush()

        lifecycle_service.record_status_change(
            lotto.id, lifecycle_service.STATO_INIZIALE, stato, attore.id
        )

        if categorie_ids:
            if schema_service.has_categorie():
                _link_categories(lotto.id, categorie_ids)
            else:
                logger.warning("Category tables unavailable; ignoring categorie_ids for lotto %s", lotto.id)

        side_effects = notification_service.notify_lot_created(lotto, attore.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Lotto %s created by attore %s with stato %s", lotto.id, attore.id, stato)
    return LottoMutation(lotto=lotto, side_effects=side_effects)


def update_lotto(
    lotto_id: int,
    payload: dict,
    *,
    attore: Attore,
    oggi: date | None = None,
) -> LottoMutation:
    """
    Partial update.

    When data_scadenza or giorni_permanenza changes without an explicit stato,
    the status is recomputed. A status change appends one log row and fans
    out CambioStato notifications.
    """
    lotto = get_lotto(lotto_id)
    access_service.require_center_access(attore, lotto.centro_origine_id)

    patch = validate_payload(model=Lotto, payload=payload, policy=LOTTO_UPDATE_POLICY, partial=True)
    _check_quantities(patch)
    if "stato" in patch:
        lifecycle_service.validate_status(patch["stato"])

    categorie_ids = None
    if "categorie_ids" in patch:
        categorie_ids = parse_id_list("categorie_ids", patch.pop("categorie_ids"))

    if not patch and categorie_ids is None:
        raise ValidationError("Nessun campo da aggiornare")

    stato_precedente = lotto.stato
    # Resent values equal to the stored ones are not changes
    changed = {key: value for key, value in patch.items() if getattr(lotto, key) != value}
    campi = sorted(changed.keys()) + (["categorie"] if categorie_ids is not None else [])

    try:
        for key, value in changed.items():
            setattr(lotto, key, value)

        if "stato" not in patch and ("data_scadenza" in changed or "giorni_permanenza" in changed):
            lotto.stato = lifecycle_service.compute_status(
                lotto.data_scadenza, lotto.giorni_permanenza, oggi
            )
        if campi:
            lotto.aggiornato_il = utcnow()

        side_effects: list[SideEffectResult] = []
        if lotto.stato != stato_precedente:
            lifecycle_service.record_status_change(lotto.id, stato_precedente, lotto.stato, attore.id)
            side_effects.append(
                notification_service.notify_status_change(lotto, stato_precedente, lotto.stato, attore.id)
            )

        if categorie_ids is not None:
            if schema_service.has_categorie():
                db.session.query(LottoCategoria).filter(LottoCategoria.lotto_id == lotto.id).delete()
                _link_categories(lotto.id, categorie_ids)
            else:
                logger.warning("Category tables unavailable; skipping category update for lotto %s", lotto.id)

        if campi:
            side_effects.append(notification_service.notify_lot_updated(lotto, attore.id, campi))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Lotto %s updated by attore %s (%s)", lotto.id, attore.id, ", ".join(campi))
    return LottoMutation(lotto=lotto, side_effects=side_effects)


def delete_lotto(lotto_id: int, *, attore: Attore) -> None:
    """
    Delete a lot and its dependents.

    Raises ConflictError (lot untouched) while any reservation is active.
    """
    lotto = get_lotto(lotto_id)
    access_service.require_center_access(attore, lotto.centro_origine_id)

    if count_active_reservations(lotto.id):
        raise ConflictError("Impossibile eliminare il lotto: esistono prenotazioni attive")

    try:
        if schema_service.has_categorie():
            db.session.query(LottoCategoria).filter(LottoCategoria.lotto_id == lotto.id).delete()
        prenotazione_ids = select(Prenotazione.id).where(Prenotazione.lotto_id == lotto.id)
        db.session.query(Trasporto).filter(Trasporto.prenotazione_id.in_(prenotazione_ids)).delete()
        db.session.query(Prenotazione).filter(Prenotazione.lotto_id == lotto.id).delete()
        db.session.query(LogCambioStato).filter(LogCambioStato.lotto_id == lotto.id).delete()
        db.session.query(Lotto).filter(Lotto.id == lotto.id).delete()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Lotto %s deleted by attore %s", lotto_id, attore.id)


def list_lotti(
    *,
    attore: Attore,
    stato: str | None = None,
    centro_id: int | None = None,
    scadenza_entro: date | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Lotto], int]:
    """Lots of the centers the actor operates on, soonest expiry first."""
    query = db.session.query(Lotto).filter(
        Lotto.centro_origine_id.in_(access_service.operable_center_ids(attore))
    )
    if stato:
        lifecycle_service.validate_status(stato)
        query = query.filter(Lotto.stato == stato)
    if centro_id is not None:
        query = query.filter(Lotto.centro_origine_id == centro_id)
    if scadenza_entro is not None:
        query = query.filter(Lotto.data_scadenza <= scadenza_entro)

    total = query.count()
    items = (
        query.order_by(Lotto.data_scadenza.asc(), Lotto.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def _viewer_center_type(attore: Attore) -> str | None:
    """Sociale or Riciclaggio when the viewer belongs to such a center."""
    tipi = {
        row.tipo
        for row in db.session.query(Centro.tipo)
        .filter(Centro.id.in_(access_service.associated_center_ids(attore.id)))
        .all()
    }
    if attore.ruolo == "CentroSociale" or "Sociale" in tipi:
        return "Sociale"
    if attore.ruolo == "CentroRiciclaggio" or "Riciclaggio" in tipi:
        return "Riciclaggio"
    return None


def list_available(
    *,
    attore: Attore,
    stato: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Lotto], int]:
    """
    Lots a receiving center can still reserve.

    Excludes lots with a Prenotato/InTransito/Consegnato reservation (case
    insensitive) and, for non-administrators, the viewer's own centers' lots.
    Ordering depends on the viewer's center type.
    """
    if stato:
        lifecycle_service.validate_status(stato)

    reserved = select(Prenotazione.lotto_id).where(
        func.upper(Prenotazione.stato).in_(STATI_NON_DISPONIBILE)
    )
    query = db.session.query(Lotto).filter(Lotto.id.not_in(reserved))

    if not attore.is_admin:
        own = access_service.associated_center_ids(attore.id)
        if own:
            query = query.filter(~Lotto.centro_origine_id.in_(own))

    viewer_type = _viewer_center_type(attore)
    if viewer_type == "Sociale":
        query = query.filter(Lotto.stato.in_([stato] if stato else ["Verde", "Arancione"]))
        priority = case({"Verde": 1, "Arancione": 2, "Rosso": 3}, value=Lotto.stato, else_=4)
        ordering = (priority.asc(), Lotto.data_scadenza.desc())
    elif viewer_type == "Riciclaggio":
        if stato:
            query = query.filter(Lotto.stato == stato)
        priority = case({"Rosso": 1, "Arancione": 2, "Verde": 3}, value=Lotto.stato, else_=4)
        ordering = (priority.asc(), Lotto.data_scadenza.asc())
    else:
        query = query.filter(Lotto.stato.in_([stato] if stato else ["Verde", "Arancione"]))
        ordering = (Lotto.data_scadenza.asc(), Lotto.stato.asc())

    total = query.count()
    items = (
        query.order_by(*ordering, Lotto.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total
