"""
Scheduled maintenance job tests: hourly status sweep, nightly archival and
the daily statistics snapshot.
"""

from datetime import timedelta

import pytest

from refood.extensions import db
from refood.models import (
    Categoria,
    LogCambioStato,
    LogCambioStatoArchivio,
    Lotto,
    LottoArchivio,
    LottoCategoria,
    Notifica,
    Prenotazione,
    PrenotazioneArchivio,
    StatisticheGiornaliere,
)
from refood.services import lifecycle_service, maintenance_service, notification_service

from conftest import TODAY, make_lotto


def _logs(lotto_id):
    return (
        db.session.query(LogCambioStato)
        .filter_by(lotto_id=lotto_id)
        .order_by(LogCambioStato.id.asc())
        .all()
    )


class TestStatusSweep:
    def test_verde_becomes_arancione_then_rosso(self, centro_distribuzione):
        lotto = make_lotto(centro_distribuzione, scadenza_tra=10, giorni_permanenza=7)
        assert lotto.stato == "Verde"

        result = maintenance_service.run_status_sweep(oggi=TODAY + timedelta(days=4))
        assert result.transizioni == [(lotto.id, "Verde", "Arancione")]
        assert db.session.get(Lotto, lotto.id).stato == "Arancione"

        result = maintenance_service.run_status_sweep(oggi=TODAY + timedelta(days=11))
        assert result.transizioni == [(lotto.id, "Arancione", "Rosso")]

        logs = _logs(lotto.id)
        assert [(l.stato_precedente, l.stato_nuovo) for l in logs] == [
            ("Verde", "Arancione"),
            ("Arancione", "Rosso"),
        ]
        assert all(l.attore_id == 0 for l in logs)

    def test_verde_past_expiry_goes_straight_to_rosso(self, centro_distribuzione):
        lotto = make_lotto(centro_distribuzione, scadenza_tra=2, giorni_permanenza=0)
        result = maintenance_service.run_status_sweep(oggi=TODAY + timedelta(days=2))
        assert result.transizioni == [(lotto.id, "Verde", "Rosso")]

    def test_rerun_on_same_day_writes_nothing(self, centro_distribuzione):
        make_lotto(centro_distribuzione, scadenza_tra=5, giorni_permanenza=7, stato="Verde")
        oggi = TODAY

        first = maintenance_service.run_status_sweep(oggi=oggi)
        assert first.aggiornati == 1
        log_count = db.session.query(LogCambioStato).count()

        second = maintenance_service.run_status_sweep(oggi=oggi)
        assert second.aggiornati == 0
        assert db.session.query(LogCambioStato).count() == log_count

    def test_lots_already_in_right_status_untouched(self, centro_distribuzione):
        verde = make_lotto(centro_distribuzione, scadenza_tra=30)
        rosso = make_lotto(centro_distribuzione, scadenza_tra=-3)
        aggiornato_il = db.session.get(Lotto, verde.id).aggiornato_il

        result = maintenance_service.run_status_sweep(oggi=TODAY)

        assert result.aggiornati == 0
        assert db.session.get(Lotto, verde.id).aggiornato_il == aggiornato_il
        assert db.session.get(Lotto, rosso.id).stato == "Rosso"
        assert db.session.query(LogCambioStato).count() == 0

    def test_transition_notifies_origin_center_staff(self, centro_distribuzione, operatore):
        lotto = make_lotto(centro_distribuzione, scadenza_tra=10, giorni_permanenza=7)
        maintenance_service.run_status_sweep(oggi=TODAY + timedelta(days=4))

        notifiche = db.session.query(Notifica).filter_by(destinatario_id=operatore.id).all()
        assert len(notifiche) == 1
        assert notifiche[0].tipo == "CambioStato"
        assert notifiche[0].titolo == "Lotto in scadenza"
        assert notifiche[0].riferimento_id == lotto.id

    def test_notification_failure_does_not_abort_sweep(self, centro_distribuzione, operatore, monkeypatch):
        lotto = make_lotto(centro_distribuzione, scadenza_tra=10, giorni_permanenza=7)

        def boom(*args, **kwargs):
            raise RuntimeError("notification store unavailable")

        monkeypatch.setattr(notification_service, "_notify_status_change", boom)
        result = maintenance_service.run_status_sweep(oggi=TODAY + timedelta(days=4))

        assert result.aggiornati == 1
        assert result.notifiche_fallite == 1
        assert db.session.get(Lotto, lotto.id).stato == "Arancione"
        assert len(_logs(lotto.id)) == 1
        assert db.session.query(Notifica).count() == 0

    def test_failure_rolls_back_whole_sweep(self, centro_distribuzione, monkeypatch):
        first = make_lotto(centro_distribuzione, prodotto="Pane", scadenza_tra=3, stato="Verde")
        second = make_lotto(centro_distribuzione, prodotto="Latte", scadenza_tra=3, stato="Verde")
        first_id, second_id = first.id, second.id

        calls = {"n": 0}
        original = lifecycle_service.record_status_change

        def fail_on_second(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("disk full")
            return original(*args, **kwargs)

        monkeypatch.setattr(lifecycle_service, "record_status_change", fail_on_second)

        with pytest.raises(RuntimeError):
            maintenance_service.run_status_sweep(oggi=TODAY)

        db.session.expire_all()
        assert db.session.get(Lotto, first_id).stato == "Verde"
        assert db.session.get(Lotto, second_id).stato == "Verde"
        assert db.session.query(LogCambioStato).count() == 0


class TestArchive:
    def test_archives_old_rosso_lots_with_history(self, centro_distribuzione, centro_sociale):
        vecchio = make_lotto(centro_distribuzione, prodotto="Yogurt", scadenza_tra=-31)
        vecchio_id = vecchio.id
        lifecycle_service.record_status_change(vecchio_id, "Nuovo", "Rosso", 0)
        db.session.add(Prenotazione(
            lotto_id=vecchio_id,
            centro_ricevente_id=centro_sociale.id,
            stato="Consegnato",
        ))
        latticini = Categoria(nome="Latticini")
        db.session.add(latticini)
        db.session.flush()
        db.session.add(LottoCategoria(lotto_id=vecchio_id, categoria_id=latticini.id))
        recente = make_lotto(centro_distribuzione, prodotto="Pesche", scadenza_tra=-29)
        recente_id = recente.id
        db.session.commit()

        result = maintenance_service.archive_expired_lots(oggi=TODAY)

        assert result.lotti == 1
        assert result.log == 1
        assert result.prenotazioni == 1

        assert db.session.get(Lotto, vecchio_id) is None
        assert db.session.get(Lotto, recente_id) is not None
        assert db.session.query(LogCambioStato).filter_by(lotto_id=vecchio_id).count() == 0
        assert db.session.query(Prenotazione).filter_by(lotto_id=vecchio_id).count() == 0

        archived = db.session.get(LottoArchivio, vecchio_id)
        assert archived.prodotto == "Yogurt"
        assert archived.data_archiviazione is not None
        assert db.session.query(LogCambioStatoArchivio).filter_by(lotto_id=vecchio_id).count() == 1
        assert db.session.query(PrenotazioneArchivio).filter_by(lotto_id=vecchio_id).count() == 1
        assert db.session.query(LottoCategoria).filter_by(lotto_id=vecchio_id).count() == 0
        assert db.session.get(Categoria, latticini.id) is not None

    def test_lot_with_active_reservation_is_not_archived(self, centro_distribuzione, centro_sociale):
        lotto = make_lotto(centro_distribuzione, scadenza_tra=-40)
        db.session.add(Prenotazione(
            lotto_id=lotto.id,
            centro_ricevente_id=centro_sociale.id,
            stato="InTransito",
        ))
        db.session.commit()

        result = maintenance_service.archive_expired_lots(oggi=TODAY)

        assert result.lotti == 0
        assert db.session.get(Lotto, lotto.id) is not None
        assert db.session.get(LottoArchivio, lotto.id) is None

    def test_non_rosso_lots_are_never_archived(self, centro_distribuzione):
        # Manual override left an old lot Arancione; the archive ignores it
        lotto = make_lotto(centro_distribuzione, scadenza_tra=-60, stato="Arancione")
        result = maintenance_service.archive_expired_lots(oggi=TODAY)
        assert result.lotti == 0
        assert db.session.get(Lotto, lotto.id) is not None

    def test_retention_window_is_configurable(self, centro_distribuzione):
        lotto = make_lotto(centro_distribuzione, scadenza_tra=-10)
        lotto_id = lotto.id
        assert maintenance_service.archive_expired_lots(oggi=TODAY).lotti == 0
        assert maintenance_service.archive_expired_lots(oggi=TODAY, retention_days=5).lotti == 1
        assert db.session.get(Lotto, lotto_id) is None


class TestDailyStatistics:
    def test_snapshot_counts(self, centro_distribuzione, centro_sociale, admin, operatore, utente_sociale):
        make_lotto(centro_distribuzione, scadenza_tra=30)
        make_lotto(centro_distribuzione, scadenza_tra=3)
        rosso = make_lotto(centro_distribuzione, scadenza_tra=-1)
        db.session.add(Prenotazione(lotto_id=rosso.id, centro_ricevente_id=centro_sociale.id, stato="Prenotato"))
        db.session.commit()

        row, created = maintenance_service.collect_daily_statistics(oggi=TODAY)

        assert created is True
        assert row.data_statistica == TODAY
        assert (row.totale_lotti, row.lotti_verdi, row.lotti_arancioni, row.lotti_rossi) == (3, 1, 1, 1)
        assert row.quantita_totale == pytest.approx(30.0)
        assert row.totale_prenotazioni == 1
        assert row.prenotazioni_attive == 1
        assert row.totale_utenti == 3
        assert row.utenti_amministratori == 1
        assert row.utenti_operatori == 1
        assert row.utenti_centri_sociali == 1

    def test_snapshot_is_append_only(self, centro_distribuzione):
        make_lotto(centro_distribuzione)
        first, created = maintenance_service.collect_daily_statistics(oggi=TODAY)
        assert created

        make_lotto(centro_distribuzione, prodotto="Pere")
        second, created = maintenance_service.collect_daily_statistics(oggi=TODAY)

        assert created is False
        assert second.id == first.id
        assert second.totale_lotti == 1
        assert db.session.query(StatisticheGiornaliere).count() == 1
