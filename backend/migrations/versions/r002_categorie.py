"""optional lot categories

Revision ID: r002_categorie
Revises: r001_initial_schema
Create Date: 2026-10-19 00:00:01.000000

Adds Categorie and LottiCategorie. The application checks for these tables
once at startup; run `flask system init` or restart after upgrading.
"""
from alembic import op
import sqlalchemy as sa


revision = 'r002_categorie'
down_revision = 'r001_initial_schema'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'Categorie',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nome', sa.String(length=100), nullable=False),
        sa.Column('descrizione', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nome'),
        sqlite_autoincrement=True
    )
    op.create_table(
        'LottiCategorie',
        sa.Column('lotto_id', sa.Integer(), nullable=False),
        sa.Column('categoria_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['lotto_id'], ['Lotti.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['categoria_id'], ['Categorie.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('lotto_id', 'categoria_id')
    )


def downgrade():
    op.drop_table('LottiCategorie')
    op.drop_table('Categorie')
