"""
Status calculator tests.

Boundaries: the Arancione threshold day, the expiry day, and the collapsed
window when giorni_permanenza is 0.
"""

from datetime import date, timedelta

import pytest

from refood.errors import ValidationError
from refood.services.lifecycle_service import arancione_threshold, compute_status


OGGI = date(2026, 3, 10)


@pytest.mark.parametrize(
    "scadenza_tra,giorni,atteso",
    [
        (30, 7, "Verde"),
        (8, 7, "Verde"),
        (7, 7, "Arancione"),   # threshold day
        (1, 7, "Arancione"),
        (0, 7, "Rosso"),       # expiry day
        (-5, 7, "Rosso"),
        (1, 0, "Verde"),       # no Arancione window
        (0, 0, "Rosso"),
    ],
)
def test_compute_status_boundaries(scadenza_tra, giorni, atteso):
    scadenza = OGGI + timedelta(days=scadenza_tra)
    assert compute_status(scadenza, giorni, OGGI) == atteso


def test_compute_status_is_deterministic():
    scadenza = OGGI + timedelta(days=3)
    results = {compute_status(scadenza, 5, OGGI) for _ in range(5)}
    assert results == {"Arancione"}


def test_negative_permanence_rejected():
    with pytest.raises(ValidationError):
        compute_status(OGGI, -1, OGGI)


def test_arancione_threshold():
    assert arancione_threshold(date(2026, 3, 20), 7) == date(2026, 3, 13)


def test_lot_progresses_through_statuses_over_time():
    scadenza = OGGI + timedelta(days=10)
    assert compute_status(scadenza, 7, OGGI) == "Verde"
    assert compute_status(scadenza, 7, OGGI + timedelta(days=4)) == "Arancione"
    assert compute_status(scadenza, 7, OGGI + timedelta(days=11)) == "Rosso"
