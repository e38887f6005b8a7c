from __future__ import annotations

from ..extensions import db
from refood.time_utils import to_utc_z, utcnow


STATI_PRENOTAZIONE = ("Attiva", "Prenotato", "InTransito", "Consegnato", "Annullato")
STATI_PRENOTAZIONE_ATTIVI = ("Attiva", "Prenotato", "InTransito")


class Prenotazione(db.Model):
    """A receiving center's claim on a lot."""
    __tablename__ = "Prenotazioni"
    __table_args__ = (
        db.CheckConstraint(
            "stato IN ('Attiva', 'Prenotato', 'InTransito', 'Consegnato', 'Annullato')",
            name="ck_prenotazioni_stato",
        ),
        db.Index("ix_prenotazioni_lotto_stato", "lotto_id", "stato"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    lotto_id = db.Column(db.Integer, db.ForeignKey("Lotti.id", ondelete="CASCADE"), nullable=False)
    centro_ricevente_id = db.Column(db.Integer, db.ForeignKey("Centri.id", ondelete="CASCADE"), nullable=False, index=True)
    attore_id = db.Column(db.Integer, db.ForeignKey("Attori.id", ondelete="SET NULL"), nullable=True)
    stato = db.Column(db.String(16), nullable=False, default="Prenotato")

    data_prenotazione = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    data_ritiro = db.Column(db.DateTime(timezone=True), nullable=True)
    data_consegna = db.Column(db.DateTime(timezone=True), nullable=True)
    note = db.Column(db.Text, nullable=True)

    lotto = db.relationship("Lotto", backref=db.backref("prenotazioni", lazy=True))
    centro_ricevente = db.relationship("Centro")

    @property
    def is_active(self) -> bool:
        return self.stato in STATI_PRENOTAZIONE_ATTIVI

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lotto_id": self.lotto_id,
            "centro_ricevente_id": self.centro_ricevente_id,
            "attore_id": self.attore_id,
            "stato": self.stato,
            "data_prenotazione": to_utc_z(self.data_prenotazione),
            "data_ritiro": to_utc_z(self.data_ritiro),
            "data_consegna": to_utc_z(self.data_consegna),
            "note": self.note,
        }


STATI_TRASPORTO = ("Pianificato", "InCorso", "Completato", "Annullato")


class Trasporto(db.Model):
    """
    Transport details for a reservation (at most one per reservation).

    stato follows the reservation: InCorso while InTransito, Completato on
    delivery, Annullato on cancellation.
    """
    __tablename__ = "Trasporti"
    __table_args__ = (
        db.CheckConstraint(
            "stato IN ('Pianificato', 'InCorso', 'Completato', 'Annullato')",
            name="ck_trasporti_stato",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prenotazione_id = db.Column(
        db.Integer, db.ForeignKey("Prenotazioni.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    mezzo = db.Column(db.String(64), nullable=False)
    distanza_km = db.Column(db.Float, nullable=True)
    emissioni_co2 = db.Column(db.Float, nullable=True)
    costo = db.Column(db.Float, nullable=True)
    autista = db.Column(db.String(120), nullable=True)
    telefono_autista = db.Column(db.String(32), nullable=True)
    orario_partenza = db.Column(db.DateTime(timezone=True), nullable=True)
    orario_arrivo = db.Column(db.DateTime(timezone=True), nullable=True)
    stato = db.Column(db.String(16), nullable=False, default="Pianificato")
    creato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    prenotazione = db.relationship(
        "Prenotazione",
        backref=db.backref("trasporto", uselist=False, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prenotazione_id": self.prenotazione_id,
            "mezzo": self.mezzo,
            "distanza_km": self.distanza_km,
            "emissioni_co2": self.emissioni_co2,
            "costo": self.costo,
            "autista": self.autista,
            "telefono_autista": self.telefono_autista,
            "orario_partenza": to_utc_z(self.orario_partenza),
            "orario_arrivo": to_utc_z(self.orario_arrivo),
            "stato": self.stato,
            "creato_il": to_utc_z(self.creato_il),
        }
