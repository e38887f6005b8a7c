# Overview: Service-layer operations for the lot status lifecycle; pure status calculation plus status-log writes.

"""
Refood Lot Status Lifecycle

================================================================================
PURPOSE: Derive a lot's freshness status from its expiry date
================================================================================

STATUS RULE (calendar dates, "oggi" = today):

    Rosso      data_scadenza <= oggi
    Arancione  data_scadenza - giorni_permanenza <= oggi < data_scadenza
    Verde      otherwise

    giorni_permanenza = 0 collapses the Arancione window: a lot goes from
    Verde straight to Rosso on its expiry date.

The same function is used at creation, on update and by the hourly sweep, so
a lot's stored status only drifts from the rule after a manual override.

Every change of status (including the initial "Nuovo" -> X on creation)
appends exactly one LogCambioStato row. The log is never updated.
================================================================================
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Literal

from ..extensions import db
from ..errors import ValidationError
from ..models import LogCambioStato, STATI_LOTTO
from refood.time_utils import today, utcnow


LottoStato = Literal["Verde", "Arancione", "Rosso"]
STATO_INIZIALE = "Nuovo"


def validate_status(stato: str) -> None:
    if stato not in STATI_LOTTO:
        raise ValidationError(
            f"Invalid stato '{stato}'. Must be one of: {', '.join(STATI_LOTTO)}"
        )


def arancione_threshold(data_scadenza: date, giorni_permanenza: int) -> date:
    """First day on which the lot is Arancione."""
    return data_scadenza - timedelta(days=giorni_permanenza)


def compute_status(
    data_scadenza: date,
    giorni_permanenza: int,
    oggi: date | None = None,
) -> LottoStato:
    """
    Pure status calculator.

    Raises ValidationError for a negative permanence window.
    """
    if giorni_permanenza is None:
        giorni_permanenza = 0
    if giorni_permanenza < 0:
        raise ValidationError("giorni_permanenza must be >= 0")
    if oggi is None:
        oggi = today()

    if data_scadenza <= oggi:
        return "Rosso"
    if arancione_threshold(data_scadenza, giorni_permanenza) <= oggi:
        return "Arancione"
    return "Verde"


def record_status_change(
    lotto_id: int,
    stato_precedente: str,
    stato_nuovo: str,
    attore_id: int | None,
) -> LogCambioStato:
    """
    Append a LogCambioStato row to the current transaction.

    Does not commit; the caller owns the transaction.
    """
    entry = LogCambioStato(
        lotto_id=lotto_id,
        stato_precedente=stato_precedente,
        stato_nuovo=stato_nuovo,
        attore_id=attore_id,
        cambiato_il=utcnow(),
    )
    db.session.add(entry)
    return entry


def get_status_history(lotto_id: int) -> list[LogCambioStato]:
    return (
        db.session.query(LogCambioStato)
        .filter(LogCambioStato.lotto_id == lotto_id)
        .order_by(LogCambioStato.cambiato_il.asc(), LogCambioStato.id.asc())
        .all()
    )
