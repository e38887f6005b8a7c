# Overview: Service-layer operations for actor accounts; bcrypt password hashing and credential checks.

"""
Actor authentication.

Every lot, status change and reservation is attributable to an Attore.
Passwords are hashed with bcrypt (cost factor 12) after a strength check;
session tokens live in session_service.
"""

import logging
import re

import bcrypt

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import Attore, RUOLI
from refood.time_utils import utcnow


logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_attore(
    *,
    email: str,
    password: str,
    nome: str,
    cognome: str,
    ruolo: str,
) -> Attore:
    """
    Raises:
        ValidationError: unknown ruolo or missing fields
        PasswordValidationError: weak password
        ConflictError: email already registered
    """
    if not email or not nome or not cognome:
        raise ValidationError("email, nome e cognome sono obbligatori")
    if ruolo not in RUOLI:
        raise ValidationError(f"ruolo must be one of: {', '.join(sorted(RUOLI))}")

    email = email.strip().lower()
    if db.session.query(Attore.id).filter(Attore.email == email).first():
        raise ConflictError("Email già registrata")

    attore = Attore(
        email=email,
        password_hash=hash_password(password),
        nome=nome.strip(),
        cognome=cognome.strip(),
        ruolo=ruolo,
        attivo=True,
        creato_il=utcnow(),
    )
    db.session.add(attore)
    db.session.commit()
    logger.info("Attore %s created with ruolo %s", attore.id, ruolo)
    return attore


def authenticate(email: str, password: str) -> Attore | None:
    """
    Returns the Attore if credentials are valid and the account is active.
    Updates ultimo_accesso on success.
    """
    attore = (
        db.session.query(Attore)
        .filter(Attore.email == (email or "").strip().lower(), Attore.attivo.is_(True))
        .first()
    )
    if not attore:
        return None

    if verify_password(password, attore.password_hash):
        attore.ultimo_accesso = utcnow()
        db.session.commit()
        return attore

    return None
