"""
Reservation API tests: booking rules, the state machine, transports
and the notifications sent to the centers involved.
"""

import pytest

from refood.extensions import db
from refood.models import Notifica, Prenotazione, Trasporto

from conftest import make_lotto


@pytest.fixture
def lotto(centro_distribuzione):
    return make_lotto(centro_distribuzione, prodotto="Pane", scadenza_tra=15)


def _book(client, headers, lotto_id, centro_id, **extra):
    body = {"lotto_id": lotto_id, "centro_ricevente_id": centro_id}
    body.update(extra)
    return client.post("/api/v1/prenotazioni", json=body, headers=headers)


class TestCreatePrenotazione:
    def test_book_lot_notifies_origin_center(
        self, client, sociale_headers, operatore, lotto, centro_sociale
    ):
        resp = _book(client, sociale_headers, lotto.id, centro_sociale.id, note="Ritiro mattina")

        assert resp.status_code == 201, resp.json
        body = resp.json["prenotazione"]
        assert body["stato"] == "Prenotato"
        assert body["prodotto"] == "Pane"
        assert body["note"] == "Ritiro mattina"

        notes = db.session.query(Notifica).filter_by(destinatario_id=operatore.id).all()
        assert len(notes) == 1
        assert notes[0].tipo == "Prenotazione"
        assert "Mensa Solidale" in notes[0].messaggio

    def test_missing_lot(self, client, sociale_headers, centro_sociale):
        assert _book(client, sociale_headers, 999, centro_sociale.id).status_code == 404

    def test_missing_receiving_center(self, client, admin_headers, lotto):
        assert _book(client, admin_headers, lotto.id, 999).status_code == 404

    def test_origin_center_cannot_book_own_lot(self, client, operatore_headers, lotto, centro_distribuzione):
        assert _book(client, operatore_headers, lotto.id, centro_distribuzione.id).status_code == 400

    def test_double_booking_conflict(
        self, client, sociale_headers, riciclaggio_headers, lotto, centro_sociale, centro_riciclaggio
    ):
        assert _book(client, sociale_headers, lotto.id, centro_sociale.id).status_code == 201
        assert _book(client, riciclaggio_headers, lotto.id, centro_riciclaggio.id).status_code == 409

    def test_cannot_book_for_someone_elses_center(self, client, sociale_headers, lotto, centro_riciclaggio):
        assert _book(client, sociale_headers, lotto.id, centro_riciclaggio.id).status_code == 403

    def test_lot_can_be_rebooked_after_cancellation(
        self, client, sociale_headers, riciclaggio_headers, lotto, centro_sociale, centro_riciclaggio
    ):
        first = _book(client, sociale_headers, lotto.id, centro_sociale.id).json["prenotazione"]
        client.post(f"/api/v1/prenotazioni/{first['id']}/annulla", headers=sociale_headers)
        assert _book(client, riciclaggio_headers, lotto.id, centro_riciclaggio.id).status_code == 201


class TestTransitions:
    @pytest.fixture
    def prenotazione(self, client, sociale_headers, lotto, centro_sociale):
        return _book(client, sociale_headers, lotto.id, centro_sociale.id).json["prenotazione"]

    def test_full_delivery_flow(self, client, operatore_headers, utente_sociale, prenotazione):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}"

        resp = client.put(url, json={"stato": "InTransito"}, headers=operatore_headers)
        assert resp.status_code == 200
        assert resp.json["prenotazione"]["stato"] == "InTransito"
        in_transito = db.session.query(Notifica).filter_by(destinatario_id=utente_sociale.id).all()
        assert any("in transito" in n.messaggio for n in in_transito)

        resp = client.put(
            url,
            json={"stato": "Consegnato", "data_consegna": "2026-03-12T10:30:00Z"},
            headers=operatore_headers,
        )
        assert resp.status_code == 200
        assert resp.json["prenotazione"]["stato"] == "Consegnato"
        assert resp.json["prenotazione"]["data_consegna"] == "2026-03-12T10:30:00Z"

    def test_delivery_requires_date(self, client, operatore_headers, prenotazione):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}"
        client.put(url, json={"stato": "InTransito"}, headers=operatore_headers)

        resp = client.put(url, json={"stato": "Consegnato"}, headers=operatore_headers)

        assert resp.status_code == 400
        assert "data_consegna" in resp.json["error"]
        stored = db.session.get(Prenotazione, prenotazione["id"])
        assert stored.stato == "InTransito"
        assert stored.data_consegna is None

    def test_explicit_delivery_date_is_kept(self, client, operatore_headers, prenotazione):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}"
        client.put(url, json={"stato": "InTransito"}, headers=operatore_headers)
        resp = client.put(
            url,
            json={"stato": "Consegnato", "data_consegna": "2026-03-12T10:30:00Z"},
            headers=operatore_headers,
        )
        assert resp.json["prenotazione"]["data_consegna"] == "2026-03-12T10:30:00Z"

    def test_cannot_skip_transit(self, client, operatore_headers, prenotazione):
        resp = client.put(
            f"/api/v1/prenotazioni/{prenotazione['id']}",
            json={"stato": "Consegnato"},
            headers=operatore_headers,
        )
        assert resp.status_code == 409

    def test_unknown_state(self, client, operatore_headers, prenotazione):
        resp = client.put(
            f"/api/v1/prenotazioni/{prenotazione['id']}",
            json={"stato": "Perso"},
            headers=operatore_headers,
        )
        assert resp.status_code == 400

    def test_cancel_notifies_both_centers(
        self, client, sociale_headers, operatore, utente_sociale, prenotazione
    ):
        resp = client.post(
            f"/api/v1/prenotazioni/{prenotazione['id']}/annulla",
            json={"motivo": "Furgone guasto"},
            headers=sociale_headers,
        )
        assert resp.status_code == 200
        assert resp.json["prenotazione"]["stato"] == "Annullato"
        assert "Furgone guasto" in resp.json["prenotazione"]["note"]

        origin_notes = db.session.query(Notifica).filter_by(destinatario_id=operatore.id).all()
        assert any("annullata" in n.messaggio for n in origin_notes)
        # The actor who cancelled is not notified about their own action
        own = db.session.query(Notifica).filter_by(destinatario_id=utente_sociale.id).all()
        assert not any("annullata" in n.messaggio for n in own)

    def test_terminal_states_cannot_be_cancelled(self, client, operatore_headers, sociale_headers, prenotazione):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}"
        client.put(url, json={"stato": "InTransito"}, headers=operatore_headers)
        client.put(
            url,
            json={"stato": "Consegnato", "data_consegna": "2026-03-12T10:30:00Z"},
            headers=operatore_headers,
        )

        resp = client.post(f"{url}/annulla", headers=sociale_headers)
        assert resp.status_code == 409
        assert db.session.get(Prenotazione, prenotazione["id"]).stato == "Consegnato"

    def test_uninvolved_actor_forbidden(self, client, riciclaggio_headers, prenotazione):
        resp = client.post(f"/api/v1/prenotazioni/{prenotazione['id']}/annulla", headers=riciclaggio_headers)
        assert resp.status_code == 403


class TestListPrenotazioni:
    def test_scoped_to_involved_centers(
        self, client, sociale_headers, riciclaggio_headers, operatore_headers, lotto, centro_sociale
    ):
        _book(client, sociale_headers, lotto.id, centro_sociale.id)

        assert client.get("/api/v1/prenotazioni", headers=sociale_headers).json["pagination"]["total"] == 1
        assert client.get("/api/v1/prenotazioni", headers=operatore_headers).json["pagination"]["total"] == 1
        assert client.get("/api/v1/prenotazioni", headers=riciclaggio_headers).json["pagination"]["total"] == 0

    def test_filter_by_state(self, client, admin_headers, sociale_headers, lotto, centro_sociale):
        _book(client, sociale_headers, lotto.id, centro_sociale.id)
        resp = client.get("/api/v1/prenotazioni?stato=Annullato", headers=admin_headers)
        assert resp.json["prenotazioni"] == []
        resp = client.get("/api/v1/prenotazioni?stato=Prenotato", headers=admin_headers)
        assert len(resp.json["prenotazioni"]) == 1

    def test_center_endpoint_requires_membership(
        self, client, sociale_headers, riciclaggio_headers, lotto, centro_sociale
    ):
        _book(client, sociale_headers, lotto.id, centro_sociale.id)
        url = f"/api/v1/prenotazioni/centro/{centro_sociale.id}"

        resp = client.get(url, headers=sociale_headers)
        assert resp.status_code == 200
        assert [p["prodotto"] for p in resp.json["prenotazioni"]] == ["Pane"]

        assert client.get(url, headers=riciclaggio_headers).status_code == 403
        assert client.get(f"{url}?stato=Consegnato", headers=sociale_headers).json["prenotazioni"] == []
        assert client.get(f"{url}?stato=Perso", headers=sociale_headers).status_code == 400
        assert client.get("/api/v1/prenotazioni/centro/999", headers=sociale_headers).status_code == 404

    def test_center_endpoint_includes_origin_side(
        self, client, sociale_headers, operatore_headers, lotto, centro_sociale, centro_distribuzione
    ):
        _book(client, sociale_headers, lotto.id, centro_sociale.id)
        resp = client.get(
            f"/api/v1/prenotazioni/centro/{centro_distribuzione.id}", headers=operatore_headers
        )
        assert resp.json["pagination"]["total"] == 1


TRASPORTO = {
    "mezzo": "Furgone refrigerato",
    "distanza_km": 12.5,
    "autista": "Mario Rossi",
    "telefono_autista": "+39 333 1234567",
    "orario_partenza": "2026-03-11T08:00:00Z",
}


class TestTrasporto:
    @pytest.fixture
    def prenotazione(self, client, sociale_headers, lotto, centro_sociale):
        return _book(client, sociale_headers, lotto.id, centro_sociale.id).json["prenotazione"]

    def test_transport_moves_reservation_in_transit(
        self, client, operatore_headers, utente_sociale, prenotazione
    ):
        resp = client.post(
            f"/api/v1/prenotazioni/{prenotazione['id']}/trasporto",
            json=TRASPORTO,
            headers=operatore_headers,
        )

        assert resp.status_code == 200, resp.json
        body = resp.json["prenotazione"]
        assert body["stato"] == "InTransito"
        assert body["trasporto"]["mezzo"] == "Furgone refrigerato"
        assert body["trasporto"]["distanza_km"] == 12.5
        assert body["trasporto"]["stato"] == "InCorso"

        notes = db.session.query(Notifica).filter_by(destinatario_id=utente_sociale.id).all()
        assert any("in transito" in n.messaggio for n in notes)

    def test_second_call_replaces_transport(self, client, operatore_headers, prenotazione):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}/trasporto"
        client.post(url, json=TRASPORTO, headers=operatore_headers)

        resp = client.post(url, json={"mezzo": "Bicicletta cargo"}, headers=operatore_headers)

        assert resp.status_code == 200
        assert resp.json["prenotazione"]["trasporto"]["mezzo"] == "Bicicletta cargo"
        assert resp.json["prenotazione"]["trasporto"]["autista"] is None
        assert db.session.query(Trasporto).count() == 1

    def test_transport_status_follows_delivery(self, client, operatore_headers, prenotazione):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}"
        client.post(f"{url}/trasporto", json=TRASPORTO, headers=operatore_headers)

        resp = client.put(
            url,
            json={"stato": "Consegnato", "data_consegna": "2026-03-11T09:15:00Z"},
            headers=operatore_headers,
        )

        assert resp.status_code == 200
        assert resp.json["prenotazione"]["trasporto"]["stato"] == "Completato"

    def test_transport_status_follows_cancellation(
        self, client, operatore_headers, sociale_headers, prenotazione
    ):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}"
        client.post(f"{url}/trasporto", json=TRASPORTO, headers=operatore_headers)

        resp = client.post(f"{url}/annulla", headers=sociale_headers)

        assert resp.json["prenotazione"]["trasporto"]["stato"] == "Annullato"

    def test_mezzo_required(self, client, operatore_headers, prenotazione):
        resp = client.post(
            f"/api/v1/prenotazioni/{prenotazione['id']}/trasporto",
            json={"distanza_km": 3},
            headers=operatore_headers,
        )
        assert resp.status_code == 400
        assert db.session.get(Prenotazione, prenotazione["id"]).stato == "Prenotato"

    def test_closed_reservation_rejected(self, client, operatore_headers, sociale_headers, prenotazione):
        url = f"/api/v1/prenotazioni/{prenotazione['id']}"
        client.post(f"{url}/annulla", headers=sociale_headers)

        resp = client.post(f"{url}/trasporto", json=TRASPORTO, headers=operatore_headers)

        assert resp.status_code == 400
        assert db.session.query(Trasporto).count() == 0

    def test_missing_reservation(self, client, operatore_headers, db_session):
        resp = client.post("/api/v1/prenotazioni/999/trasporto", json=TRASPORTO, headers=operatore_headers)
        assert resp.status_code == 404

    def test_uninvolved_actor_forbidden(self, client, riciclaggio_headers, prenotazione):
        resp = client.post(
            f"/api/v1/prenotazioni/{prenotazione['id']}/trasporto",
            json=TRASPORTO,
            headers=riciclaggio_headers,
        )
        assert resp.status_code == 403
