"""
Pytest fixtures for Refood backend tests.

Provides the in-memory application, per-test table cleanup, a small network
of centers (one of each type) with their actors, and auth helpers.
"""

from datetime import date, timedelta

import pytest

from refood import create_app
from refood.extensions import db
from refood.models import Attore, AttoreCentro, Centro, Lotto
from refood.services import lifecycle_service, schema_service, session_service
from refood.services.auth_service import hash_password


PASSWORD = "Password123!"
TODAY = date(2026, 3, 10)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SCHEDULER_ENABLED': False,
        'SYSTEM_ACTOR_ID': 0,
        'ARCHIVE_RETENTION_DAYS': 30,
    })

    with app.app_context():
        db.create_all()
        schema_service.refresh_capabilities(app)
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Clear all data but keep schema."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow at cost 12; hash once for every fixture actor."""
    return hash_password(PASSWORD)


def make_centro(nome: str, tipo: str) -> Centro:
    centro = Centro(nome=nome, tipo=tipo, indirizzo=f"Via {nome} 1")
    db.session.add(centro)
    db.session.commit()
    return centro


def make_attore(email: str, ruolo: str, password_hash: str, centro: Centro | None = None, **kwargs) -> Attore:
    attore = Attore(
        email=email,
        password_hash=password_hash,
        nome=kwargs.get("nome", email.split("@")[0].title()),
        cognome=kwargs.get("cognome", "Test"),
        ruolo=ruolo,
        attivo=kwargs.get("attivo", True),
    )
    db.session.add(attore)
    db.session.flush()
    if centro is not None:
        db.session.add(AttoreCentro(attore_id=attore.id, centro_id=centro.id))
    db.session.commit()
    return attore


def make_lotto(
    centro: Centro,
    *,
    prodotto: str = "Mele",
    scadenza_tra: int = 20,
    giorni_permanenza: int = 7,
    oggi: date = TODAY,
    stato: str | None = None,
    inserito_da: int | None = None,
) -> Lotto:
    data_scadenza = oggi + timedelta(days=scadenza_tra)
    lotto = Lotto(
        prodotto=prodotto,
        quantita=10,
        unita_misura="kg",
        data_scadenza=data_scadenza,
        giorni_permanenza=giorni_permanenza,
        stato=stato or lifecycle_service.compute_status(data_scadenza, giorni_permanenza, oggi),
        centro_origine_id=centro.id,
        inserito_da=inserito_da,
    )
    db.session.add(lotto)
    db.session.commit()
    return lotto


@pytest.fixture(scope='function')
def centro_distribuzione(db_session):
    return make_centro("Mercato Centrale", "Distribuzione")


@pytest.fixture(scope='function')
def centro_sociale(db_session):
    return make_centro("Mensa Solidale", "Sociale")


@pytest.fixture(scope='function')
def centro_riciclaggio(db_session):
    return make_centro("Compost Verde", "Riciclaggio")


@pytest.fixture(scope='function')
def admin(db_session, centro_distribuzione, password_hash):
    return make_attore("admin@refood.test", "Amministratore", password_hash, centro_distribuzione)


@pytest.fixture(scope='function')
def operatore(db_session, centro_distribuzione, password_hash):
    return make_attore("operatore@refood.test", "Operatore", password_hash, centro_distribuzione)


@pytest.fixture(scope='function')
def utente_sociale(db_session, centro_sociale, password_hash):
    return make_attore("sociale@refood.test", "CentroSociale", password_hash, centro_sociale)


@pytest.fixture(scope='function')
def utente_riciclaggio(db_session, centro_riciclaggio, password_hash):
    return make_attore("riciclo@refood.test", "CentroRiciclaggio", password_hash, centro_riciclaggio)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token through the login endpoint."""
    response = client.post('/api/v1/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(attore: Attore) -> dict:
    """Issue a session directly, skipping the login round-trip."""
    _, token = session_service.create_session(attore.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope='function')
def operatore_headers(operatore):
    return headers_for(operatore)


@pytest.fixture(scope='function')
def sociale_headers(utente_sociale):
    return headers_for(utente_sociale)


@pytest.fixture(scope='function')
def riciclaggio_headers(utente_riciclaggio):
    return headers_for(utente_riciclaggio)
