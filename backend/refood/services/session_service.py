# Overview: Service-layer operations for session tokens; issue, validate and revoke.

"""
Session Token Management

Tokens are opaque 32-byte random values. Only their SHA-256 hash is stored.

- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout; revoked automatically when idle or when the actor is deactivated
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..errors import NotFoundError
from ..models import Attore, TokenAutenticazione
from refood.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    attore: Attore
    session: TokenAutenticazione


def generate_token() -> str:
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    attore_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[TokenAutenticazione, str]:
    """
    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    attore = db.session.get(Attore, attore_id)
    if not attore:
        raise NotFoundError("Attore non trovato")

    plaintext_token = generate_token()
    now = utcnow()

    session = TokenAutenticazione(
        attore_id=attore.id,
        token_hash=hash_token(plaintext_token),
        creato_il=now,
        ultimo_uso=now,
        scade_il=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        revocato=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: TokenAutenticazione, reason: str) -> None:
    session.revocato = True
    session.revocato_il = utcnow()
    session.motivo_revoca = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Returns None if the token is unknown, expired, revoked, idle for too
    long, or belongs to a deactivated actor. Refreshes ultimo_uso otherwise.
    """
    now = utcnow()
    session = db.session.query(TokenAutenticazione).filter_by(
        token_hash=hash_token(token),
        revocato=False,
    ).first()

    if not session:
        return None

    if session.scade_il < now:
        return None

    if now - session.ultimo_uso > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    attore = session.attore
    if not attore or not attore.attivo:
        _revoke(session, "Attore disattivato")
        return None

    session.ultimo_uso = now
    db.session.commit()

    return SessionContext(attore=attore, session=session)


def revoke_session(token: str, reason: str = "Logout") -> bool:
    session = db.session.query(TokenAutenticazione).filter_by(
        token_hash=hash_token(token),
        revocato=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_attore_sessions(attore_id: int, reason: str) -> int:
    """Revoke every open session of an actor. Does not commit."""
    sessions = db.session.query(TokenAutenticazione).filter_by(
        attore_id=attore_id,
        revocato=False,
    ).all()
    now = utcnow()
    for session in sessions:
        session.revocato = True
        session.revocato_il = now
        session.motivo_revoca = reason
    return len(sessions)
