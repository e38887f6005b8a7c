from __future__ import annotations

from ..extensions import db
from refood.time_utils import to_iso_date, to_utc_z


class LottoArchivio(db.Model):
    """
    Copy of a lot removed by the nightly archival job.

    id is the original Lotti.id (no autoincrement); there are no foreign keys
    so archived rows survive center or actor deletion.
    """
    __tablename__ = "LottiArchivio"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    prodotto = db.Column(db.String(255), nullable=False)
    quantita = db.Column(db.Float, nullable=False)
    unita_misura = db.Column(db.String(20), nullable=False)
    data_scadenza = db.Column(db.Date, nullable=False)
    giorni_permanenza = db.Column(db.Integer, nullable=False)
    stato = db.Column(db.String(10), nullable=False)
    centro_origine_id = db.Column(db.Integer, nullable=False)
    inserito_da = db.Column(db.Integer, nullable=True)
    creato_il = db.Column(db.DateTime(timezone=True), nullable=False)
    aggiornato_il = db.Column(db.DateTime(timezone=True), nullable=True)
    data_archiviazione = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prodotto": self.prodotto,
            "quantita": self.quantita,
            "unita_misura": self.unita_misura,
            "data_scadenza": to_iso_date(self.data_scadenza),
            "stato": self.stato,
            "centro_origine_id": self.centro_origine_id,
            "data_archiviazione": to_utc_z(self.data_archiviazione),
        }


class LogCambioStatoArchivio(db.Model):
    __tablename__ = "LogCambioStatoArchivio"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    lotto_id = db.Column(db.Integer, nullable=False, index=True)
    stato_precedente = db.Column(db.String(10), nullable=False)
    stato_nuovo = db.Column(db.String(10), nullable=False)
    cambiato_il = db.Column(db.DateTime(timezone=True), nullable=False)
    attore_id = db.Column(db.Integer, nullable=True)
    data_archiviazione = db.Column(db.DateTime(timezone=True), nullable=False)


class PrenotazioneArchivio(db.Model):
    __tablename__ = "PrenotazioniArchivio"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    lotto_id = db.Column(db.Integer, nullable=False, index=True)
    centro_ricevente_id = db.Column(db.Integer, nullable=False)
    attore_id = db.Column(db.Integer, nullable=True)
    stato = db.Column(db.String(16), nullable=False)
    data_prenotazione = db.Column(db.DateTime(timezone=True), nullable=False)
    data_ritiro = db.Column(db.DateTime(timezone=True), nullable=True)
    data_consegna = db.Column(db.DateTime(timezone=True), nullable=True)
    note = db.Column(db.Text, nullable=True)
    data_archiviazione = db.Column(db.DateTime(timezone=True), nullable=False)


class StatisticheGiornaliere(db.Model):
    """One snapshot per calendar day, written by the 23:30 job. Never overwritten."""
    __tablename__ = "StatisticheGiornaliere"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    data_statistica = db.Column(db.Date, nullable=False, unique=True)

    totale_lotti = db.Column(db.Integer, nullable=False, default=0)
    lotti_verdi = db.Column(db.Integer, nullable=False, default=0)
    lotti_arancioni = db.Column(db.Integer, nullable=False, default=0)
    lotti_rossi = db.Column(db.Integer, nullable=False, default=0)
    quantita_totale = db.Column(db.Float, nullable=False, default=0.0)

    totale_prenotazioni = db.Column(db.Integer, nullable=False, default=0)
    prenotazioni_attive = db.Column(db.Integer, nullable=False, default=0)
    prenotazioni_completate = db.Column(db.Integer, nullable=False, default=0)
    prenotazioni_annullate = db.Column(db.Integer, nullable=False, default=0)

    totale_utenti = db.Column(db.Integer, nullable=False, default=0)
    utenti_operatori = db.Column(db.Integer, nullable=False, default=0)
    utenti_amministratori = db.Column(db.Integer, nullable=False, default=0)
    utenti_centri_sociali = db.Column(db.Integer, nullable=False, default=0)
    utenti_centri_riciclaggio = db.Column(db.Integer, nullable=False, default=0)

    creato_il = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "data_statistica": to_iso_date(self.data_statistica),
            "lotti": {
                "totale": self.totale_lotti,
                "verdi": self.lotti_verdi,
                "arancioni": self.lotti_arancioni,
                "rossi": self.lotti_rossi,
                "quantita_totale": self.quantita_totale,
            },
            "prenotazioni": {
                "totale": self.totale_prenotazioni,
                "attive": self.prenotazioni_attive,
                "completate": self.prenotazioni_completate,
                "annullate": self.prenotazioni_annullate,
            },
            "utenti": {
                "totale": self.totale_utenti,
                "operatori": self.utenti_operatori,
                "amministratori": self.utenti_amministratori,
                "centri_sociali": self.utenti_centri_sociali,
                "centri_riciclaggio": self.utenti_centri_riciclaggio,
            },
            "creato_il": to_utc_z(self.creato_il),
        }
