"""reservation transport details

Revision ID: r003_trasporti
Revises: r002_categorie
Create Date: 2026-10-20 00:00:00.000000

Adds Trasporti (one row per reservation, removed with it).
"""
from alembic import op
import sqlalchemy as sa


revision = 'r003_trasporti'
down_revision = 'r002_categorie'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'Trasporti',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('prenotazione_id', sa.Integer(), nullable=False),
        sa.Column('mezzo', sa.String(length=64), nullable=False),
        sa.Column('distanza_km', sa.Float(), nullable=True),
        sa.Column('emissioni_co2', sa.Float(), nullable=True),
        sa.Column('costo', sa.Float(), nullable=True),
        sa.Column('autista', sa.String(length=120), nullable=True),
        sa.Column('telefono_autista', sa.String(length=32), nullable=True),
        sa.Column('orario_partenza', sa.DateTime(timezone=True), nullable=True),
        sa.Column('orario_arrivo', sa.DateTime(timezone=True), nullable=True),
        sa.Column('stato', sa.String(length=16), nullable=False, server_default='Pianificato'),
        sa.Column('creato_il', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint(
            "stato IN ('Pianificato', 'InCorso', 'Completato', 'Annullato')",
            name='ck_trasporti_stato',
        ),
        sa.ForeignKeyConstraint(['prenotazione_id'], ['Prenotazioni.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('prenotazione_id'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('Trasporti')
