"""initial refood schema

Revision ID: r001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the operational tables:
- Centri, Attori, AttoriCentri, TokenAutenticazione
- Lotti, LogCambioStato (append-only status history)
- Prenotazioni, Notifiche
- LottiArchivio, LogCambioStatoArchivio, PrenotazioniArchivio
- StatisticheGiornaliere

The optional category tables come in r002 so older databases can run without them.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'Centri',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nome', sa.String(length=120), nullable=False),
        sa.Column('tipo', sa.String(length=20), nullable=False),
        sa.Column('indirizzo', sa.String(length=255), nullable=False),
        sa.Column('telefono', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('latitudine', sa.Float(), nullable=True),
        sa.Column('longitudine', sa.Float(), nullable=True),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("tipo IN ('Distribuzione', 'Sociale', 'Riciclaggio')", name='ck_centri_tipo'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nome'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'Attori',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('nome', sa.String(length=100), nullable=False),
        sa.Column('cognome', sa.String(length=100), nullable=False),
        sa.Column('ruolo', sa.String(length=32), nullable=False),
        sa.Column('attivo', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('ultimo_accesso', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "ruolo IN ('Operatore', 'Amministratore', 'CentroSociale', 'CentroRiciclaggio')",
            name='ck_attori_ruolo',
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'AttoriCentri',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attore_id', sa.Integer(), nullable=False),
        sa.Column('centro_id', sa.Integer(), nullable=False),
        sa.Column('ruolo_specifico', sa.String(length=32), nullable=True),
        sa.Column('data_inizio', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['attore_id'], ['Attori.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['centro_id'], ['Centri.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('attore_id', 'centro_id', name='uq_attori_centri'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_AttoriCentri_attore_id', 'AttoriCentri', ['attore_id'])
    op.create_index('ix_attori_centri_centro', 'AttoriCentri', ['centro_id'])

    op.create_table(
        'TokenAutenticazione',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attore_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ultimo_uso', sa.DateTime(timezone=True), nullable=False),
        sa.Column('scade_il', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revocato', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revocato_il', sa.DateTime(timezone=True), nullable=True),
        sa.Column('motivo_revoca', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['attore_id'], ['Attori.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_token_attore', 'TokenAutenticazione', ['attore_id'])

    # ============================================================================
    # Lotti + LogCambioStato: status lifecycle
    # ============================================================================
    op.create_table(
        'Lotti',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('prodotto', sa.String(length=255), nullable=False),
        sa.Column('quantita', sa.Float(), nullable=False),
        sa.Column('unita_misura', sa.String(length=20), nullable=False),
        sa.Column('data_scadenza', sa.Date(), nullable=False),
        sa.Column('giorni_permanenza', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('stato', sa.String(length=10), nullable=False),
        sa.Column('centro_origine_id', sa.Integer(), nullable=False),
        sa.Column('inserito_da', sa.Integer(), nullable=True),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('aggiornato_il', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("stato IN ('Verde', 'Arancione', 'Rosso')", name='ck_lotti_stato'),
        sa.CheckConstraint('quantita > 0', name='ck_lotti_quantita_positive'),
        sa.CheckConstraint('giorni_permanenza >= 0', name='ck_lotti_giorni_permanenza'),
        sa.ForeignKeyConstraint(['centro_origine_id'], ['Centri.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['inserito_da'], ['Attori.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_Lotti_centro_origine_id', 'Lotti', ['centro_origine_id'])
    op.create_index('ix_lotti_stato_scadenza', 'Lotti', ['stato', 'data_scadenza'])

    # attore_id has no FK: automatic transitions use the system actor id
    op.create_table(
        'LogCambioStato',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lotto_id', sa.Integer(), nullable=False),
        sa.Column('stato_precedente', sa.String(length=10), nullable=False),
        sa.Column('stato_nuovo', sa.String(length=10), nullable=False),
        sa.Column('cambiato_il', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('attore_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['lotto_id'], ['Lotti.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_log_cambio_stato_lotto', 'LogCambioStato', ['lotto_id'])

    op.create_table(
        'Prenotazioni',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lotto_id', sa.Integer(), nullable=False),
        sa.Column('centro_ricevente_id', sa.Integer(), nullable=False),
        sa.Column('attore_id', sa.Integer(), nullable=True),
        sa.Column('stato', sa.String(length=16), nullable=False, server_default='Prenotato'),
        sa.Column('data_prenotazione', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('data_ritiro', sa.DateTime(timezone=True), nullable=True),
        sa.Column('data_consegna', sa.DateTime(timezone=True), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.CheckConstraint(
            "stato IN ('Attiva', 'Prenotato', 'InTransito', 'Consegnato', 'Annullato')",
            name='ck_prenotazioni_stato',
        ),
        sa.ForeignKeyConstraint(['lotto_id'], ['Lotti.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['centro_ricevente_id'], ['Centri.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['attore_id'], ['Attori.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_prenotazioni_lotto_stato', 'Prenotazioni', ['lotto_id', 'stato'])
    op.create_index('ix_Prenotazioni_centro_ricevente_id', 'Prenotazioni', ['centro_ricevente_id'])

    op.create_table(
        'Notifiche',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('destinatario_id', sa.Integer(), nullable=False),
        sa.Column('tipo', sa.String(length=32), nullable=False),
        sa.Column('titolo', sa.String(length=255), nullable=False),
        sa.Column('messaggio', sa.Text(), nullable=False),
        sa.Column('priorita', sa.String(length=10), nullable=False, server_default='Media'),
        sa.Column('letto', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('letto_il', sa.DateTime(timezone=True), nullable=True),
        sa.Column('riferimento_id', sa.Integer(), nullable=True),
        sa.Column('riferimento_tipo', sa.String(length=32), nullable=True),
        sa.Column('origine_id', sa.Integer(), nullable=True),
        sa.Column('centro_id', sa.Integer(), nullable=True),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['destinatario_id'], ['Attori.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_notifiche_destinatario_letto', 'Notifiche', ['destinatario_id', 'letto'])

    # ============================================================================
    # Archive mirrors: keep original ids, no foreign keys
    # ============================================================================
    op.create_table(
        'LottiArchivio',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('prodotto', sa.String(length=255), nullable=False),
        sa.Column('quantita', sa.Float(), nullable=False),
        sa.Column('unita_misura', sa.String(length=20), nullable=False),
        sa.Column('data_scadenza', sa.Date(), nullable=False),
        sa.Column('giorni_permanenza', sa.Integer(), nullable=False),
        sa.Column('stato', sa.String(length=10), nullable=False),
        sa.Column('centro_origine_id', sa.Integer(), nullable=False),
        sa.Column('inserito_da', sa.Integer(), nullable=True),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False),
        sa.Column('aggiornato_il', sa.DateTime(timezone=True), nullable=True),
        sa.Column('data_archiviazione', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'LogCambioStatoArchivio',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('lotto_id', sa.Integer(), nullable=False),
        sa.Column('stato_precedente', sa.String(length=10), nullable=False),
        sa.Column('stato_nuovo', sa.String(length=10), nullable=False),
        sa.Column('cambiato_il', sa.DateTime(timezone=True), nullable=False),
        sa.Column('attore_id', sa.Integer(), nullable=True),
        sa.Column('data_archiviazione', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_LogCambioStatoArchivio_lotto_id', 'LogCambioStatoArchivio', ['lotto_id'])

    op.create_table(
        'PrenotazioniArchivio',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('lotto_id', sa.Integer(), nullable=False),
        sa.Column('centro_ricevente_id', sa.Integer(), nullable=False),
        sa.Column('attore_id', sa.Integer(), nullable=True),
        sa.Column('stato', sa.String(length=16), nullable=False),
        sa.Column('data_prenotazione', sa.DateTime(timezone=True), nullable=False),
        sa.Column('data_ritiro', sa.DateTime(timezone=True), nullable=True),
        sa.Column('data_consegna', sa.DateTime(timezone=True), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('data_archiviazione', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_PrenotazioniArchivio_lotto_id', 'PrenotazioniArchivio', ['lotto_id'])

    op.create_table(
        'StatisticheGiornaliere',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('data_statistica', sa.Date(), nullable=False),
        sa.Column('totale_lotti', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lotti_verdi', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lotti_arancioni', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lotti_rossi', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantita_totale', sa.Float(), nullable=False, server_default='0'),
        sa.Column('totale_prenotazioni', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('prenotazioni_attive', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('prenotazioni_completate', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('prenotazioni_annullate', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('totale_utenti', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('utenti_operatori', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('utenti_amministratori', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('utenti_centri_sociali', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('utenti_centri_riciclaggio', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('data_statistica'),
        sqlite_autoincrement=True
    )


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('StatisticheGiornaliere')
    op.drop_table('PrenotazioniArchivio')
    op.drop_table('LogCambioStatoArchivio')
    op.drop_table('LottiArchivio')
    op.drop_table('Notifiche')
    op.drop_table('Prenotazioni')
    op.drop_table('LogCambioStato')
    op.drop_table('Lotti')
    op.drop_table('TokenAutenticazione')
    op.drop_table('AttoriCentri')
    op.drop_table('Attori')
    op.drop_table('Centri')
