from __future__ import annotations

from ..extensions import db
from refood.time_utils import to_utc_z, utcnow


CENTRO_TIPI = {"Distribuzione", "Sociale", "Riciclaggio"}


class Centro(db.Model):
    """
    A physical center taking part in redistribution.

    Distribuzione centers originate lots; Sociale and Riciclaggio centers
    receive them (fresh food and expired food respectively).
    """
    __tablename__ = "Centri"
    __table_args__ = (
        db.CheckConstraint(
            "tipo IN ('Distribuzione', 'Sociale', 'Riciclaggio')",
            name="ck_centri_tipo",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(120), nullable=False, unique=True)
    tipo = db.Column(db.String(20), nullable=False)
    indirizzo = db.Column(db.String(255), nullable=False)
    telefono = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    latitudine = db.Column(db.Float, nullable=True)
    longitudine = db.Column(db.Float, nullable=True)
    creato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nome": self.nome,
            "tipo": self.tipo,
            "indirizzo": self.indirizzo,
            "telefono": self.telefono,
            "email": self.email,
            "latitudine": self.latitudine,
            "longitudine": self.longitudine,
            "creato_il": to_utc_z(self.creato_il),
        }


class AttoreCentro(db.Model):
    """
    Actor <-> center association.

    ruolo_specifico is free-form; "SuperAdmin" marks the administrator who
    created the center.
    """
    __tablename__ = "AttoriCentri"
    __table_args__ = (
        db.UniqueConstraint("attore_id", "centro_id", name="uq_attori_centri"),
        db.Index("ix_attori_centri_centro", "centro_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    attore_id = db.Column(db.Integer, db.ForeignKey("Attori.id", ondelete="CASCADE"), nullable=False, index=True)
    centro_id = db.Column(db.Integer, db.ForeignKey("Centri.id", ondelete="CASCADE"), nullable=False)
    ruolo_specifico = db.Column(db.String(32), nullable=True)
    data_inizio = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    attore = db.relationship("Attore", backref=db.backref("associazioni_centri", lazy=True, cascade="all, delete-orphan"))
    centro = db.relationship("Centro", backref=db.backref("associazioni_attori", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attore_id": self.attore_id,
            "centro_id": self.centro_id,
            "ruolo_specifico": self.ruolo_specifico,
            "data_inizio": to_utc_z(self.data_inizio),
        }
