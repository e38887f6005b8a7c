from __future__ import annotations

from ..extensions import db
from refood.time_utils import to_iso_date, to_utc_z, utcnow


STATI_LOTTO = ("Verde", "Arancione", "Rosso")


class Lotto(db.Model):
    """
    A batch of food offered by a center.

    stato mirrors compute_status(data_scadenza, giorni_permanenza, today)
    except after a manual override on update; the hourly sweep realigns it.
    """
    __tablename__ = "Lotti"
    __table_args__ = (
        db.CheckConstraint("stato IN ('Verde', 'Arancione', 'Rosso')", name="ck_lotti_stato"),
        db.CheckConstraint("quantita > 0", name="ck_lotti_quantita_positive"),
        db.CheckConstraint("giorni_permanenza >= 0", name="ck_lotti_giorni_permanenza"),
        db.Index("ix_lotti_stato_scadenza", "stato", "data_scadenza"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prodotto = db.Column(db.String(255), nullable=False)
    quantita = db.Column(db.Float, nullable=False)
    unita_misura = db.Column(db.String(20), nullable=False)
    data_scadenza = db.Column(db.Date, nullable=False)
    giorni_permanenza = db.Column(db.Integer, nullable=False, default=7)
    stato = db.Column(db.String(10), nullable=False)

    centro_origine_id = db.Column(db.Integer, db.ForeignKey("Centri.id", ondelete="CASCADE"), nullable=False, index=True)
    inserito_da = db.Column(db.Integer, db.ForeignKey("Attori.id", ondelete="SET NULL"), nullable=True)

    creato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    aggiornato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    centro_origine = db.relationship("Centro", backref=db.backref("lotti", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prodotto": self.prodotto,
            "quantita": self.quantita,
            "unita_misura": self.unita_misura,
            "data_scadenza": to_iso_date(self.data_scadenza),
            "giorni_permanenza": self.giorni_permanenza,
            "stato": self.stato,
            "centro_origine_id": self.centro_origine_id,
            "inserito_da": self.inserito_da,
            "creato_il": to_utc_z(self.creato_il),
            "aggiornato_il": to_utc_z(self.aggiornato_il),
        }


class LogCambioStato(db.Model):
    """
    Append-only status history. One row per transition.

    attore_id is intentionally not a foreign key: automatic transitions are
    attributed to the configured system actor id, which need not exist.
    """
    __tablename__ = "LogCambioStato"
    __table_args__ = (
        db.Index("ix_log_cambio_stato_lotto", "lotto_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    lotto_id = db.Column(db.Integer, db.ForeignKey("Lotti.id", ondelete="CASCADE"), nullable=False)
    stato_precedente = db.Column(db.String(10), nullable=False)
    stato_nuovo = db.Column(db.String(10), nullable=False)
    cambiato_il = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    attore_id = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lotto_id": self.lotto_id,
            "stato_precedente": self.stato_precedente,
            "stato_nuovo": self.stato_nuovo,
            "cambiato_il": to_utc_z(self.cambiato_il),
            "attore_id": self.attore_id,
        }


class Categoria(db.Model):
    __tablename__ = "Categorie"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False, unique=True)
    descrizione = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "nome": self.nome, "descrizione": self.descrizione}


class LottoCategoria(db.Model):
    __tablename__ = "LottiCategorie"

    lotto_id = db.Column(db.Integer, db.ForeignKey("Lotti.id", ondelete="CASCADE"), primary_key=True)
    categoria_id = db.Column(db.Integer, db.ForeignKey("Categorie.id", ondelete="CASCADE"), primary_key=True)
