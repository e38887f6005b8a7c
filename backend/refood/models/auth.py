from __future__ import annotations

from ..extensions import db
from refood.time_utils import to_utc_z, utcnow


RUOLI = {"Operatore", "Amministratore", "CentroSociale", "CentroRiciclaggio"}


class Attore(db.Model):
    """
    A platform user. Every lot, status change and reservation is attributable
    to an Attore (or to the system actor for scheduled transitions).
    """
    __tablename__ = "Attori"
    __table_args__ = (
        db.CheckConstraint(
            "ruolo IN ('Operatore', 'Amministratore', 'CentroSociale', 'CentroRiciclaggio')",
            name="ck_attori_ruolo",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    nome = db.Column(db.String(100), nullable=False)
    cognome = db.Column(db.String(100), nullable=False)
    ruolo = db.Column(db.String(32), nullable=False)
    attivo = db.Column(db.Boolean, nullable=False, default=True)

    creato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    ultimo_accesso = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.ruolo == "Amministratore"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "nome": self.nome,
            "cognome": self.cognome,
            "ruolo": self.ruolo,
            "attivo": self.attivo,
            "creato_il": to_utc_z(self.creato_il),
            "ultimo_accesso": to_utc_z(self.ultimo_accesso) if self.ultimo_accesso else None,
        }


class TokenAutenticazione(db.Model):
    """
    Opaque session tokens. Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "TokenAutenticazione"
    __table_args__ = (
        db.Index("ix_token_attore", "attore_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    attore_id = db.Column(db.Integer, db.ForeignKey("Attori.id", ondelete="CASCADE"), nullable=False)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)

    creato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    ultimo_uso = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    scade_il = db.Column(db.DateTime(timezone=True), nullable=False)

    revocato = db.Column(db.Boolean, nullable=False, default=False)
    revocato_il = db.Column(db.DateTime(timezone=True), nullable=True)
    motivo_revoca = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    attore = db.relationship("Attore", backref=db.backref("token", lazy=True, cascade="all, delete-orphan"))
