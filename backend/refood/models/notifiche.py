from __future__ import annotations

from ..extensions import db
from refood.time_utils import to_utc_z, utcnow


class Notifica(db.Model):
    """
    In-app notification for a single recipient.

    Delivery (push, websocket) is out of scope; clients poll.
    """
    __tablename__ = "Notifiche"
    __table_args__ = (
        db.Index("ix_notifiche_destinatario_letto", "destinatario_id", "letto"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    destinatario_id = db.Column(db.Integer, db.ForeignKey("Attori.id", ondelete="CASCADE"), nullable=False)
    tipo = db.Column(db.String(32), nullable=False)
    titolo = db.Column(db.String(255), nullable=False)
    messaggio = db.Column(db.Text, nullable=False)
    priorita = db.Column(db.String(10), nullable=False, default="Media")

    letto = db.Column(db.Boolean, nullable=False, default=False)
    letto_il = db.Column(db.DateTime(timezone=True), nullable=True)

    riferimento_id = db.Column(db.Integer, nullable=True)
    riferimento_tipo = db.Column(db.String(32), nullable=True)
    origine_id = db.Column(db.Integer, nullable=True)
    centro_id = db.Column(db.Integer, nullable=True)

    creato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "destinatario_id": self.destinatario_id,
            "tipo": self.tipo,
            "titolo": self.titolo,
            "messaggio": self.messaggio,
            "priorita": self.priorita,
            "letto": self.letto,
            "letto_il": to_utc_z(self.letto_il),
            "riferimento_id": self.riferimento_id,
            "riferimento_tipo": self.riferimento_tipo,
            "origine_id": self.origine_id,
            "centro_id": self.centro_id,
            "creato_il": to_utc_z(self.creato_il),
        }
