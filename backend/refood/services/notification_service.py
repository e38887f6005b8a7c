# Overview: Service-layer operations for notifications; fan-out on lot/reservation events plus inbox management.

"""
Notification fan-out.

Notifications are side effects of lot and reservation changes. They are
best-effort: each fan-out runs inside a SAVEPOINT via best_effort(), so a
failure rolls back only the notification rows, is logged, and is reported
back to the caller as a SideEffectResult instead of aborting the enclosing
transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError
from ..models import (
    Attore,
    AttoreCentro,
    Centro,
    Lotto,
    Notifica,
    Prenotazione,
    STATI_PRENOTAZIONE_ATTIVI,
)
from refood.time_utils import to_iso_date, utcnow


logger = logging.getLogger(__name__)

TIPO_LOTTO_CREATO = "LottoCreato"
TIPO_LOTTO_MODIFICATO = "LottoModificato"
TIPO_CAMBIO_STATO = "CambioStato"
TIPO_PRENOTAZIONE = "Prenotazione"
TIPO_ALERT = "Alert"


@dataclass
class SideEffectResult:
    """Outcome of a best-effort side effect."""
    label: str
    ok: bool
    created: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "ok": self.ok,
            "created": self.created,
            "error": self.error,
        }


def best_effort(label: str, fn: Callable[..., int], *args, **kwargs) -> SideEffectResult:
    """
    Run fn inside a SAVEPOINT.

    On failure the savepoint is rolled back and the error logged; the outer
    transaction stays usable. fn returns the number of rows it created.
    """
    try:
        with db.session.begin_nested():
            created = fn(*args, **kwargs)
    except Exception as exc:  # side effect must never abort the caller
        logger.error("Best-effort side effect '%s' failed: %s", label, exc, exc_info=True)
        return SideEffectResult(label=label, ok=False, error=str(exc))
    return SideEffectResult(label=label, ok=True, created=created or 0)


# ---------------------------------------------------------------------------
# Recipient resolution
# ---------------------------------------------------------------------------

def _actors_of_centers(centro_ids: Iterable[int], *, ruoli: Iterable[str] | None = None) -> list[int]:
    centro_ids = list(centro_ids)
    if not centro_ids:
        return []
    query = (
        db.session.query(Attore.id)
        .join(AttoreCentro, AttoreCentro.attore_id == Attore.id)
        .filter(AttoreCentro.centro_id.in_(centro_ids))
        .filter(Attore.attivo.is_(True))
    )
    if ruoli:
        query = query.filter(Attore.ruolo.in_(list(ruoli)))
    return sorted({row.id for row in query.distinct().all()})


def center_admin_ids(centro_id: int, *, exclude: int | None = None) -> list[int]:
    ids = _actors_of_centers([centro_id], ruoli=["Amministratore"])
    return [i for i in ids if i != exclude]


def beneficiary_actor_ids(centro_origine_id: int) -> list[int]:
    """Actors of every Sociale/Riciclaggio center except the origin center."""
    rows = (
        db.session.query(Attore.id)
        .join(AttoreCentro, AttoreCentro.attore_id == Attore.id)
        .join(Centro, Centro.id == AttoreCentro.centro_id)
        .filter(Centro.tipo.in_(["Sociale", "Riciclaggio"]))
        .filter(Centro.id != centro_origine_id)
        .filter(Attore.attivo.is_(True))
        .distinct()
        .all()
    )
    return sorted(row.id for row in rows)


def reserving_center_ids(lotto_id: int) -> list[int]:
    rows = (
        db.session.query(Prenotazione.centro_ricevente_id)
        .filter(Prenotazione.lotto_id == lotto_id)
        .filter(Prenotazione.stato.in_(STATI_PRENOTAZIONE_ATTIVI))
        .distinct()
        .all()
    )
    return [row.centro_ricevente_id for row in rows]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def create_notifications(
    destinatari: Iterable[int],
    *,
    tipo: str,
    titolo: str,
    messaggio: str,
    priorita: str = "Media",
    riferimento_id: int | None = None,
    riferimento_tipo: str | None = None,
    origine_id: int | None = None,
    centro_id: int | None = None,
) -> int:
    """Add one Notifica per recipient to the session. Returns the count."""
    now = utcnow()
    count = 0
    for destinatario_id in dict.fromkeys(destinatari):
        db.session.add(Notifica(
            destinatario_id=destinatario_id,
            tipo=tipo,
            titolo=titolo,
            messaggio=messaggio,
            priorita=priorita,
            letto=False,
            riferimento_id=riferimento_id,
            riferimento_tipo=riferimento_tipo,
            origine_id=origine_id,
            centro_id=centro_id,
            creato_il=now,
        ))
        count += 1
    db.session.flush()
    return count


def _describe(lotto: Lotto) -> str:
    return f'"{lotto.prodotto}" ({lotto.quantita:g} {lotto.unita_misura})'


def _notify_admins_lot_created(lotto: Lotto, creatore_id: int | None) -> int:
    return create_notifications(
        center_admin_ids(lotto.centro_origine_id, exclude=creatore_id),
        tipo=TIPO_ALERT,
        titolo="Nuovo lotto creato",
        messaggio=(
            f"È stato creato il lotto {_describe(lotto)} "
            f"con scadenza il {to_iso_date(lotto.data_scadenza)}"
        ),
        priorita="Media",
        riferimento_id=lotto.id,
        riferimento_tipo="Lotto",
        origine_id=creatore_id,
        centro_id=lotto.centro_origine_id,
    )


def _notify_beneficiaries_lot_created(lotto: Lotto, creatore_id: int | None) -> int:
    return create_notifications(
        beneficiary_actor_ids(lotto.centro_origine_id),
        tipo=TIPO_LOTTO_CREATO,
        titolo="Nuovo lotto disponibile",
        messaggio=f"È disponibile un nuovo lotto: {_describe(lotto)}",
        priorita="Media",
        riferimento_id=lotto.id,
        riferimento_tipo="Lotto",
        origine_id=creatore_id,
        centro_id=lotto.centro_origine_id,
    )


def notify_lot_created(lotto: Lotto, creatore_id: int | None) -> list[SideEffectResult]:
    return [
        best_effort("lotto_creato_amministratori", _notify_admins_lot_created, lotto, creatore_id),
        best_effort("lotto_creato_beneficiari", _notify_beneficiaries_lot_created, lotto, creatore_id),
    ]


def _notify_admins_lot_updated(lotto: Lotto, attore_id: int | None, campi: list[str]) -> int:
    return create_notifications(
        center_admin_ids(lotto.centro_origine_id, exclude=attore_id),
        tipo=TIPO_LOTTO_MODIFICATO,
        titolo="Lotto modificato",
        messaggio=f"Il lotto {_describe(lotto)} è stato modificato ({', '.join(campi)})",
        priorita="Bassa",
        riferimento_id=lotto.id,
        riferimento_tipo="Lotto",
        origine_id=attore_id,
        centro_id=lotto.centro_origine_id,
    )


def notify_lot_updated(lotto: Lotto, attore_id: int | None, campi: list[str]) -> SideEffectResult:
    return best_effort("lotto_modificato", _notify_admins_lot_updated, lotto, attore_id, campi)


def _status_change_title(stato_nuovo: str) -> str:
    if stato_nuovo == "Arancione":
        return "Lotto in scadenza"
    if stato_nuovo == "Rosso":
        return "Lotto scaduto"
    return "Aggiornamento stato lotto"


def _notify_status_change(
    lotto: Lotto,
    stato_precedente: str,
    stato_nuovo: str,
    attore_id: int | None,
) -> int:
    messaggio = (
        f"Il lotto {_describe(lotto)} è passato dallo stato "
        f"{stato_precedente} allo stato {stato_nuovo}"
    )
    priorita = "Alta" if stato_nuovo == "Rosso" else "Media"

    created = create_notifications(
        _actors_of_centers([lotto.centro_origine_id], ruoli=["Operatore", "Amministratore"]),
        tipo=TIPO_CAMBIO_STATO,
        titolo=_status_change_title(stato_nuovo),
        messaggio=messaggio,
        priorita=priorita,
        riferimento_id=lotto.id,
        riferimento_tipo="Lotto",
        origine_id=attore_id,
        centro_id=lotto.centro_origine_id,
    )
    created += create_notifications(
        _actors_of_centers(reserving_center_ids(lotto.id)),
        tipo=TIPO_PRENOTAZIONE,
        titolo="Aggiornamento prenotazione",
        messaggio=f"Il lotto prenotato {_describe(lotto)} è ora in stato {stato_nuovo}",
        priorita=priorita,
        riferimento_id=lotto.id,
        riferimento_tipo="Lotto",
        origine_id=attore_id,
        centro_id=lotto.centro_origine_id,
    )
    return created


def notify_status_change(
    lotto: Lotto,
    stato_precedente: str,
    stato_nuovo: str,
    attore_id: int | None,
) -> SideEffectResult:
    return best_effort(
        "cambio_stato_lotto", _notify_status_change, lotto, stato_precedente, stato_nuovo, attore_id
    )


def _notify_reservation_created(prenotazione: Prenotazione, attore_id: int | None) -> int:
    lotto = prenotazione.lotto
    ricevente = prenotazione.centro_ricevente
    return create_notifications(
        _actors_of_centers([lotto.centro_origine_id]),
        tipo=TIPO_PRENOTAZIONE,
        titolo="Nuova prenotazione",
        messaggio=f'Il lotto {_describe(lotto)} è stato prenotato dal centro "{ricevente.nome}"',
        priorita="Media",
        riferimento_id=prenotazione.id,
        riferimento_tipo="Prenotazione",
        origine_id=attore_id,
        centro_id=lotto.centro_origine_id,
    )


def notify_reservation_created(prenotazione: Prenotazione, attore_id: int | None) -> SideEffectResult:
    return best_effort("prenotazione_creata", _notify_reservation_created, prenotazione, attore_id)


def _notify_reservation_status(prenotazione: Prenotazione, attore_id: int | None) -> int:
    lotto = prenotazione.lotto
    stato = prenotazione.stato
    if stato == "InTransito":
        centri = [prenotazione.centro_ricevente_id]
        messaggio = f"Il lotto {_describe(lotto)} è in transito verso il tuo centro"
    elif stato == "Consegnato":
        centri = [lotto.centro_origine_id]
        messaggio = f"Il lotto {_describe(lotto)} è stato consegnato al centro ricevente"
    elif stato == "Annullato":
        centri = [lotto.centro_origine_id, prenotazione.centro_ricevente_id]
        messaggio = f"La prenotazione per il lotto {_describe(lotto)} è stata annullata"
    else:
        return 0

    return create_notifications(
        [i for i in _actors_of_centers(centri) if i != attore_id],
        tipo=TIPO_PRENOTAZIONE,
        titolo="Aggiornamento prenotazione",
        messaggio=messaggio,
        priorita="Media",
        riferimento_id=prenotazione.id,
        riferimento_tipo="Prenotazione",
        origine_id=attore_id,
        centro_id=lotto.centro_origine_id,
    )


def notify_reservation_status(prenotazione: Prenotazione, attore_id: int | None) -> SideEffectResult:
    return best_effort("prenotazione_aggiornata", _notify_reservation_status, prenotazione, attore_id)


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

def list_notifications(
    attore_id: int,
    *,
    letto: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Notifica], int]:
    query = db.session.query(Notifica).filter(Notifica.destinatario_id == attore_id)
    if letto is not None:
        query = query.filter(Notifica.letto.is_(letto))
    total = query.count()
    items = (
        query.order_by(Notifica.creato_il.desc(), Notifica.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def count_unread(attore_id: int) -> int:
    return (
        db.session.query(func.count(Notifica.id))
        .filter(Notifica.destinatario_id == attore_id, Notifica.letto.is_(False))
        .scalar()
    ) or 0


def _get_own(notifica_id: int, attore_id: int) -> Notifica:
    notifica = (
        db.session.query(Notifica)
        .filter(Notifica.id == notifica_id, Notifica.destinatario_id == attore_id)
        .first()
    )
    if not notifica:
        raise NotFoundError("Notifica non trovata")
    return notifica


def mark_read(notifica_id: int, attore_id: int) -> Notifica:
    notifica = _get_own(notifica_id, attore_id)
    if not notifica.letto:
        notifica.letto = True
        notifica.letto_il = utcnow()
        db.session.commit()
    return notifica


def mark_all_read(attore_id: int) -> int:
    updated = (
        db.session.query(Notifica)
        .filter(Notifica.destinatario_id == attore_id, Notifica.letto.is_(False))
        .update({Notifica.letto: True, Notifica.letto_il: utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return updated


def delete_notification(notifica_id: int, attore_id: int) -> None:
    notifica = _get_own(notifica_id, attore_id)
    db.session.delete(notifica)
    db.session.commit()
