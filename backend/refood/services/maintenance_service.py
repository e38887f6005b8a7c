# Overview: Service-layer operations for scheduled maintenance; status sweep, archival and daily statistics.

"""
Scheduled maintenance jobs.

Each function runs in one transaction: it commits on success, and on failure
rolls back and re-raises so the caller (scheduler or CLI) can log it.
Notification fan-out during the sweep is best-effort and cannot abort it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import and_, exists, func, or_, select

from ..extensions import db
from ..models import (
    Attore,
    LogCambioStato,
    LogCambioStatoArchivio,
    Lotto,
    LottoArchivio,
    LottoCategoria,
    Prenotazione,
    PrenotazioneArchivio,
    StatisticheGiornaliere,
    Trasporto,
    STATI_PRENOTAZIONE_ATTIVI,
)
from . import lifecycle_service, notification_service, schema_service
from .notification_service import SideEffectResult
from refood.time_utils import today, utcnow


logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    oggi: date
    transizioni: list[tuple[int, str, str]] = field(default_factory=list)
    side_effects: list[SideEffectResult] = field(default_factory=list)

    @property
    def aggiornati(self) -> int:
        return len(self.transizioni)

    @property
    def notifiche_fallite(self) -> int:
        return sum(1 for r in self.side_effects if not r.ok)


@dataclass
class ArchiveResult:
    cutoff: date
    lotti: int = 0
    log: int = 0
    prenotazioni: int = 0


def _system_actor_id() -> int:
    return current_app.config.get("SYSTEM_ACTOR_ID", 0)


def run_status_sweep(*, oggi: date | None = None, attore_id: int | None = None) -> SweepResult:
    """
    Realign lot statuses with the calendar.

    Verde lots past their Arancione threshold and Verde/Arancione lots past
    expiry are moved; each move writes one LogCambioStato row attributed to
    the system actor. Lots already in the right status are not touched, so
    re-running on the same day writes nothing.
    """
    oggi = oggi or today()
    attore_id = _system_actor_id() if attore_id is None else attore_id
    result = SweepResult(oggi=oggi)

    threshold_passed = (
        func.julianday(Lotto.data_scadenza) - Lotto.giorni_permanenza <= func.julianday(oggi)
    )
    candidates = (
        db.session.query(Lotto)
        .filter(or_(
            and_(Lotto.stato == "Verde", threshold_passed),
            and_(Lotto.stato.in_(["Verde", "Arancione"]), Lotto.data_scadenza <= oggi),
        ))
        .order_by(Lotto.id.asc())
        .all()
    )

    try:
        for lotto in candidates:
            nuovo = lifecycle_service.compute_status(lotto.data_scadenza, lotto.giorni_permanenza, oggi)
            if nuovo == lotto.stato:
                continue
            precedente = lotto.stato
            lotto.stato = nuovo
            lotto.aggiornato_il = utcnow()
            lifecycle_service.record_status_change(lotto.id, precedente, nuovo, attore_id)
            result.transizioni.append((lotto.id, precedente, nuovo))
            result.side_effects.append(
                notification_service.notify_status_change(lotto, precedente, nuovo, attore_id)
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Status sweep for %s: %d lotti aggiornati, %d notifiche fallite",
        oggi.isoformat(), result.aggiornati, result.notifiche_fallite,
    )
    return result


def archive_expired_lots(
    *,
    oggi: date | None = None,
    retention_days: int | None = None,
) -> ArchiveResult:
    """
    Move Rosso lots expired more than retention_days ago to the archive tables.

    Lots with an active reservation are left in place. Copies (lot, status
    log, reservations) are written before the live rows are deleted, all in
    one transaction.
    """
    oggi = oggi or today()
    if retention_days is None:
        retention_days = current_app.config.get("ARCHIVE_RETENTION_DAYS", 30)
    cutoff = oggi - timedelta(days=retention_days)
    result = ArchiveResult(cutoff=cutoff)

    active_reservation = exists().where(
        Prenotazione.lotto_id == Lotto.id,
        Prenotazione.stato.in_(STATI_PRENOTAZIONE_ATTIVI),
    )
    lotti = (
        db.session.query(Lotto)
        .filter(Lotto.stato == "Rosso")
        .filter(Lotto.data_scadenza < cutoff)
        .filter(~active_reservation)
        .order_by(Lotto.id.asc())
        .all()
    )
    if not lotti:
        logger.info("Archive: nessun lotto da archiviare (cutoff %s)", cutoff.isoformat())
        return result

    ids = [lotto.id for lotto in lotti]
    now = utcnow()

    try:
        for lotto in lotti:
            db.session.add(LottoArchivio(
                id=lotto.id,
                prodotto=lotto.prodotto,
                quantita=lotto.quantita,
                unita_misura=lotto.unita_misura,
                data_scadenza=lotto.data_scadenza,
                giorni_permanenza=lotto.giorni_permanenza,
                stato=lotto.stato,
                centro_origine_id=lotto.centro_origine_id,
                inserito_da=lotto.inserito_da,
                creato_il=lotto.creato_il,
                aggiornato_il=lotto.aggiornato_il,
                data_archiviazione=now,
            ))

        for entry in db.session.query(LogCambioStato).filter(LogCambioStato.lotto_id.in_(ids)).all():
            db.session.add(LogCambioStatoArchivio(
                id=entry.id,
                lotto_id=entry.lotto_id,
                stato_precedente=entry.stato_precedente,
                stato_nuovo=entry.stato_nuovo,
                cambiato_il=entry.cambiato_il,
                attore_id=entry.attore_id,
                data_archiviazione=now,
            ))
            result.log += 1

        for p in db.session.query(Prenotazione).filter(Prenotazione.lotto_id.in_(ids)).all():
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
            result.prenotazioni += 1
        db.session.flush()

        prenotazione_ids = select(Prenotazione.id).where(Prenotazione.lotto_id.in_(ids))
        db.session.query(Trasporto).filter(Trasporto.prenotazione_id.in_(prenotazione_ids)).delete()
        db.session.query(Prenotazione).filter(Prenotazione.lotto_id.in_(ids)).delete()
        db.session.query(LogCambioStato).filter(LogCambioStato.lotto_id.in_(ids)).delete()
        if schema_service.has_categorie():
            db.session.query(LottoCategoria).filter(LottoCategoria.lotto_id.in_(ids)).delete()
        db.session.query(Lotto).filter(Lotto.id.in_(ids)).delete()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    result.lotti = len(ids)
    logger.info(
        "Archive: %d lotti, %d log, %d prenotazioni archiviati (cutoff %s)",
        result.lotti, result.log, result.prenotazioni, cutoff.isoformat(),
    )
    return result


def _count_by(column, model) -> dict[str, int]:
    rows = db.session.query(column, func.count(model.id)).group_by(column).all()
    return {key: count for key, count in rows}


def collect_daily_statistics(*, oggi: date | None = None) -> tuple[StatisticheGiornaliere, bool]:
    """
    Write the snapshot for `oggi`.

    Append-only: if a row for that date already exists it is returned
    unchanged. Returns (row, created).
    """
    oggi = oggi or today()
    existing = db.session.query(StatisticheGiornaliere).filter_by(data_statistica=oggi).first()
    if existing:
        logger.info("Daily statistics for %s already recorded", oggi.isoformat())
        return existing, False

    lotti = _count_by(Lotto.stato, Lotto)
    prenotazioni = _count_by(Prenotazione.stato, Prenotazione)
    ruoli = _count_by(Attore.ruolo, Attore)
    quantita = db.session.query(func.coalesce(func.sum(Lotto.quantita), 0.0)).scalar()

    row = StatisticheGiornaliere(
        data_statistica=oggi,
        totale_lotti=sum(lotti.values()),
        lotti_verdi=lotti.get("Verde", 0),
        lotti_arancioni=lotti.get("Arancione", 0),
        lotti_rossi=lotti.get("Rosso", 0),
        quantita_totale=float(quantita or 0.0),
        totale_prenotazioni=sum(prenotazioni.values()),
        prenotazioni_attive=sum(prenotazioni.get(s, 0) for s in STATI_PRENOTAZIONE_ATTIVI),
        prenotazioni_completate=prenotazioni.get("Consegnato", 0),
        prenotazioni_annullate=prenotazioni.get("Annullato", 0),
        totale_utenti=sum(ruoli.values()),
        utenti_operatori=ruoli.get("Operatore", 0),
        utenti_amministratori=ruoli.get("Amministratore", 0),
        utenti_centri_sociali=ruoli.get("CentroSociale", 0),
        utenti_centri_riciclaggio=ruoli.get("CentroRiciclaggio", 0),
        creato_il=utcnow(),
    )
    try:
        db.session.add(row)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Daily statistics for %s recorded (%d lotti)", oggi.isoformat(), row.totale_lotti)
    return row, True
