"""
Authentication and authorization tests.

Verifies:
- Unauthenticated requests return 401
- Login issues a working token; logout revokes it
- Role-restricted endpoints return 403 to other roles
- Weak passwords are refused at account creation
"""

import pytest

from refood.errors import ConflictError
from refood.services import auth_service
from refood.services.auth_service import PasswordValidationError

from conftest import PASSWORD, auth_headers, get_auth_token, make_attore


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/v1/lotti"),
            ("POST", "/api/v1/lotti"),
            ("GET", "/api/v1/lotti/disponibili"),
            ("GET", "/api/v1/lotti/1/storico"),
            ("GET", "/api/v1/prenotazioni"),
            ("POST", "/api/v1/prenotazioni"),
            ("POST", "/api/v1/prenotazioni/1/trasporto"),
            ("GET", "/api/v1/prenotazioni/centro/1"),
            ("GET", "/api/v1/centri/1/statistiche"),
            ("GET", "/api/v1/attori"),
            ("GET", "/api/v1/attori/profilo"),
            ("GET", "/api/v1/centri"),
            ("POST", "/api/v1/centri"),
            ("GET", "/api/v1/notifiche"),
            ("GET", "/api/v1/statistiche/counters"),
            ("GET", "/api/v1/auth/verifica"),
            ("POST", "/api/v1/auth/logout"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/v1/lotti", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401

    def test_health_check_is_public(self, client, db_session):
        resp = client.get("/api/v1/health-check")
        assert resp.status_code == 200
        assert resp.json["status"] == "ok"
        assert resp.json["scheduler"]["enabled"] is False
        assert resp.json["schema"]["categorie"] is True


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestLogin:
    def test_login_and_verify(self, client, operatore):
        resp = client.post("/api/v1/auth/login", json={"email": "Operatore@Refood.test", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json["attore"]["ruolo"] == "Operatore"
        assert resp.json["scade_il"].endswith("Z")

        verify = client.get("/api/v1/auth/verifica", headers=auth_headers(resp.json["token"]))
        assert verify.status_code == 200
        assert verify.json["attore"]["id"] == operatore.id

    def test_wrong_password(self, client, operatore):
        resp = client.post("/api/v1/auth/login", json={"email": operatore.email, "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/v1/auth/login", json={"email": "x@refood.test"})
        assert resp.status_code == 400

    def test_inactive_actor_cannot_login(self, client, db_session, password_hash):
        make_attore("spento@refood.test", "Operatore", password_hash, attivo=False)
        assert get_auth_token(client, "spento@refood.test") is None

    def test_logout_revokes_token(self, client, operatore):
        token = get_auth_token(client, operatore.email)
        headers = auth_headers(token)

        assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/v1/auth/verifica", headers=headers).status_code == 401


# =============================================================================
# ROLE CHECKS (403)
# =============================================================================


class TestRoleChecks:
    def test_beneficiary_cannot_create_lot(self, client, sociale_headers, centro_sociale):
        resp = client.post("/api/v1/lotti", json={
            "prodotto": "Pane",
            "quantita": 5,
            "unita_misura": "kg",
            "data_scadenza": "2030-01-10",
            "centro_origine_id": centro_sociale.id,
        }, headers=sociale_headers)
        assert resp.status_code == 403
        assert resp.json["required_roles"] == ["Operatore", "Amministratore"]

    def test_operator_cannot_create_center(self, client, operatore_headers):
        resp = client.post("/api/v1/centri", json={
            "nome": "Nuovo", "tipo": "Sociale", "indirizzo": "Via Roma 1",
        }, headers=operatore_headers)
        assert resp.status_code == 403

    def test_beneficiary_cannot_read_daily_statistics(self, client, sociale_headers):
        assert client.get("/api/v1/statistiche/giornaliere", headers=sociale_headers).status_code == 403


# =============================================================================
# ACCOUNT CREATION
# =============================================================================


class TestCreateAttore:
    @pytest.mark.parametrize("password", ["Short1!", "alllower123!", "ALLUPPER123!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, db_session, password):
        with pytest.raises(PasswordValidationError):
            auth_service.create_attore(
                email="debole@refood.test", password=password, nome="A", cognome="B", ruolo="Operatore"
            )

    def test_duplicate_email(self, operatore):
        with pytest.raises(ConflictError):
            auth_service.create_attore(
                email="OPERATORE@refood.test", password=PASSWORD, nome="A", cognome="B", ruolo="Operatore"
            )

    def test_unknown_role(self, db_session):
        with pytest.raises(ValueError):
            auth_service.create_attore(
                email="x@refood.test", password=PASSWORD, nome="A", cognome="B", ruolo="Cuoco"
            )
