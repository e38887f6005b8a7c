# Overview: Service-layer read models for statistics; live counters, per-center reports and stored daily snapshots.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import (
    Attore,
    Centro,
    Lotto,
    LottoArchivio,
    Prenotazione,
    StatisticheGiornaliere,
    STATI_LOTTO,
    STATI_PRENOTAZIONE,
)
from . import access_service
from refood.time_utils import today


def get_counters() -> dict:
    """Live counts straight from the operational tables."""
    lotti = dict(db.session.query(Lotto.stato, func.count(Lotto.id)).group_by(Lotto.stato).all())
    prenotazioni = dict(
        db.session.query(Prenotazione.stato, func.count(Prenotazione.id))
        .group_by(Prenotazione.stato)
        .all()
    )
    centri = dict(db.session.query(Centro.tipo, func.count(Centro.id)).group_by(Centro.tipo).all())

    return {
        "lotti": {
            "totale": sum(lotti.values()),
            **{stato.lower(): lotti.get(stato, 0) for stato in STATI_LOTTO},
            "archiviati": db.session.query(func.count(LottoArchivio.id)).scalar() or 0,
        },
        "prenotazioni": {
            "totale": sum(prenotazioni.values()),
            **{stato: prenotazioni.get(stato, 0) for stato in STATI_PRENOTAZIONE},
        },
        "centri": centri,
        "attori": db.session.query(func.count(Attore.id)).filter(Attore.attivo.is_(True)).scalar() or 0,
    }


def list_daily_statistics(*, dal: date | None = None, al: date | None = None) -> list[StatisticheGiornaliere]:
    if dal and al and dal > al:
        raise ValidationError("'dal' must be on or before 'al'")
    query = db.session.query(StatisticheGiornaliere)
    if dal:
        query = query.filter(StatisticheGiornaliere.data_statistica >= dal)
    if al:
        query = query.filter(StatisticheGiornaliere.data_statistica <= al)
    return query.order_by(StatisticheGiornaliere.data_statistica.asc()).all()


def _month_start(giorno: date, mesi_indietro: int) -> date:
    year, month = giorno.year, giorno.month - mesi_indietro
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, 1)


def get_center_statistics(
    centro_id: int,
    *,
    attore: Attore,
    inizio: date | None = None,
    fine: date | None = None,
) -> dict:
    """
    Per-center report over [inizio, fine], both inclusive.

    fine defaults to today and inizio to 30 days before fine. The monthly
    trend always covers the six calendar months ending with fine.
    """
    centro = db.session.get(Centro, centro_id)
    if not centro:
        raise NotFoundError("Centro non trovato")
    access_service.require_center_access(attore, centro.id)

    fine = fine or today()
    inizio = inizio or fine - timedelta(days=30)
    if inizio > fine:
        raise ValidationError("'inizio' must be on or before 'fine'")
    dal = datetime.combine(inizio, time.min)
    al = datetime.combine(fine + timedelta(days=1), time.min)

    creati = (
        db.session.query(Lotto)
        .filter(Lotto.centro_origine_id == centro.id)
        .filter(Lotto.creato_il >= dal, Lotto.creato_il < al)
    )
    per_stato = dict(
        creati.with_entities(Lotto.stato, func.count(Lotto.id)).group_by(Lotto.stato).all()
    )
    quantita_creata = creati.with_entities(func.coalesce(func.sum(Lotto.quantita), 0)).scalar()

    ricevuti = (
        db.session.query(func.count(Prenotazione.id), func.coalesce(func.sum(Lotto.quantita), 0))
        .join(Lotto, Lotto.id == Prenotazione.lotto_id)
        .filter(Prenotazione.centro_ricevente_id == centro.id)
        .filter(Prenotazione.stato == "Consegnato")
        .filter(Prenotazione.data_consegna >= dal, Prenotazione.data_consegna < al)
        .one()
    )

    prenotazioni = dict(
        db.session.query(Prenotazione.stato, func.count(Prenotazione.id))
        .filter(Prenotazione.centro_ricevente_id == centro.id)
        .filter(Prenotazione.data_prenotazione >= dal, Prenotazione.data_prenotazione < al)
        .group_by(Prenotazione.stato)
        .all()
    )

    top_prodotti = (
        creati.with_entities(
            Lotto.prodotto,
            func.count(Lotto.id).label("lotti"),
            func.sum(Lotto.quantita).label("quantita"),
        )
        .group_by(Lotto.prodotto)
        .order_by(func.count(Lotto.id).desc(), Lotto.prodotto.asc())
        .limit(5)
        .all()
    )

    mese = func.strftime("%Y-%m", Lotto.creato_il)
    andamento = dict(
        db.session.query(mese, func.count(Lotto.id))
        .filter(Lotto.centro_origine_id == centro.id)
        .filter(Lotto.creato_il >= datetime.combine(_month_start(fine, 5), time.min), Lotto.creato_il < al)
        .group_by(mese)
        .all()
    )
    mesi = [_month_start(fine, n).strftime("%Y-%m") for n in range(5, -1, -1)]

    return {
        "centro": {"id": centro.id, "nome": centro.nome, "tipo": centro.tipo},
        "periodo": {"inizio": inizio.isoformat(), "fine": fine.isoformat()},
        "lotti_creati": {
            "totale": sum(per_stato.values()),
            **{stato.lower(): per_stato.get(stato, 0) for stato in STATI_LOTTO},
            "quantita_totale": float(quantita_creata or 0),
        },
        "lotti_ricevuti": {
            "totale": ricevuti[0] or 0,
            "quantita_totale": float(ricevuti[1] or 0),
        },
        "prenotazioni": {
            "totale": sum(prenotazioni.values()),
            "attive": sum(prenotazioni.get(s, 0) for s in ("Attiva", "Prenotato")),
            "in_transito": prenotazioni.get("InTransito", 0),
            "completate": prenotazioni.get("Consegnato", 0),
            "annullate": prenotazioni.get("Annullato", 0),
        },
        "top_prodotti": [
            {"prodotto": row.prodotto, "lotti": row.lotti, "quantita": float(row.quantita or 0)}
            for row in top_prodotti
        ],
        "andamento_mensile": [{"mese": m, "lotti": andamento.get(m, 0)} for m in mesi],
    }
