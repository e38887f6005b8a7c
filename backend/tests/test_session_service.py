import unittest
from datetime import timedelta

from flask import Flask

from refood.extensions import db
from refood.models import Attore, TokenAutenticazione
from refood.services import session_service
from refood.services.session_service import SESSION_IDLE_TIMEOUT
from refood.errors import NotFoundError


class SessionServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from refood import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(TokenAutenticazione).delete()
        db.session.query(Attore).delete()
        db.session.commit()

        self.attore = Attore(
            email="sessione@refood.test",
            password_hash="unused",
            nome="Sessione",
            cognome="Test",
            ruolo="Operatore",
            attivo=True,
        )
        db.session.add(self.attore)
        db.session.commit()

    def test_only_hash_is_stored(self):
        session, token = session_service.create_session(self.attore.id, user_agent="pytest")
        self.assertEqual(len(token), 64)
        self.assertNotEqual(session.token_hash, token)
        self.assertEqual(session.token_hash, session_service.hash_token(token))
        self.assertEqual(session.user_agent, "pytest")

    def test_validate_refreshes_last_use(self):
        session, token = session_service.create_session(self.attore.id)
        session.ultimo_uso = session.ultimo_uso - timedelta(minutes=30)
        db.session.commit()
        before = session.ultimo_uso

        context = session_service.validate_session(token)
        self.assertIsNotNone(context)
        self.assertEqual(context.attore.id, self.attore.id)
        self.assertGreater(context.session.ultimo_uso, before)

    def test_unknown_token(self):
        self.assertIsNone(session_service.validate_session("0" * 64))

    def test_idle_session_is_revoked(self):
        session, token = session_service.create_session(self.attore.id)
        session.ultimo_uso = session.ultimo_uso - SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db.session.commit()

        self.assertIsNone(session_service.validate_session(token))
        db.session.refresh(session)
        self.assertTrue(session.revocato)
        self.assertEqual(session.motivo_revoca, "Idle timeout")

    def test_expired_session(self):
        session, token = session_service.create_session(self.attore.id)
        session.scade_il = session.creato_il - timedelta(seconds=1)
        db.session.commit()
        self.assertIsNone(session_service.validate_session(token))

    def test_deactivated_actor(self):
        session, token = session_service.create_session(self.attore.id)
        self.attore.attivo = False
        db.session.commit()

        self.assertIsNone(session_service.validate_session(token))
        db.session.refresh(session)
        self.assertEqual(session.motivo_revoca, "Attore disattivato")

    def test_revoke(self):
        _, token = session_service.create_session(self.attore.id)
        self.assertTrue(session_service.revoke_session(token))
        self.assertFalse(session_service.revoke_session(token))
        self.assertIsNone(session_service.validate_session(token))

    def test_unknown_actor(self):
        with self.assertRaises(NotFoundError):
            session_service.create_session(9999)


if __name__ == "__main__":
    unittest.main()
