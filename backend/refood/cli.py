# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/refood/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --email admin@refood.local --password "Password123!"
#   Create missing tables, refresh schema capabilities, create the first administrator.
# - python -m flask system capabilities
#   Show which optional tables (categories) the database provides.
#
# Actor inspection/bootstrap (accounts are also managed through /api/v1/attori):
# - python -m flask attori list
#   List all actors with role and active status.
# - python -m flask attori create --email op@refood.local --nome Mario --cognome Rossi --ruolo Operatore --password "Password123!"
#   Create an actor (prompts if options are omitted).
# - python -m flask attori associa --email op@refood.local --centro-id 1
#   Associate an actor with a center.
#
# Scheduled jobs, run once by hand:
# - python -m flask scheduler run-status-sweep [--date 2026-01-31]
# - python -m flask scheduler run-archive [--date 2026-01-31] [--retention-days 30]
# - python -m flask scheduler run-statistics [--date 2026-01-31]

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import RefoodError
from .extensions import db
from .models import Attore, AttoreCentro, Centro, RUOLI
from .services import auth_service, maintenance_service, schema_service
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--email', default='admin@refood.local', help='Administrator email')
@click.option('--password', default='Password123!', help='Administrator password')
@click.option('--nome', default='Admin', help='Administrator first name')
@click.option('--cognome', default='Refood', help='Administrator last name')
@with_appcontext
def init_system(email, password, nome, cognome):
    """
    Idempotent bootstrap: create tables, refresh schema capabilities and
    ensure an administrator exists.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing Refood...")

    db.create_all()
    caps = schema_service.refresh_capabilities(current_app._get_current_object())
    click.echo(f"PASS Schema ready (capabilities v{caps.version}, categorie={caps.categorie})")

    existing = db.session.query(Attore).filter_by(email=email.strip().lower()).first()
    if existing:
        click.echo(f"PASS Using existing administrator: {existing.email} (ID: {existing.id})")
        return

    try:
        admin = auth_service.create_attore(
            email=email, password=password, nome=nome, cognome=cognome, ruolo="Amministratore"
        )
    except RefoodError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"PASS Created administrator: {admin.email} (ID: {admin.id})")


@system_group.command('capabilities')
@with_appcontext
def show_capabilities():
    """Print the current schema capabilities snapshot."""
    caps = schema_service.get_capabilities()
    click.echo(f"version={caps.version} categorie={caps.categorie}")


@click.group('attori')
def attori_group():
    """Actor inspection and bootstrap commands."""


@attori_group.command('list')
@with_appcontext
def list_attori():
    attori = db.session.query(Attore).order_by(Attore.id.asc()).all()
    if not attori:
        click.echo("No actors found.")
        return
    for a in attori:
        status = "active" if a.attivo else "inactive"
        click.echo(f"{a.id}\t{a.email}\t{a.ruolo}\t{status}")


@attori_group.command('create')
@click.option('--email', prompt=True)
@click.option('--nome', prompt=True)
@click.option('--cognome', prompt=True)
@click.option('--ruolo', prompt=True, type=click.Choice(sorted(RUOLI)))
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_attore(email, nome, cognome, ruolo, password):
    try:
        attore = auth_service.create_attore(
            email=email, password=password, nome=nome, cognome=cognome, ruolo=ruolo
        )
    except RefoodError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"PASS Created {attore.ruolo}: {attore.email} (ID: {attore.id})")


@attori_group.command('associa')
@click.option('--email', required=True)
@click.option('--centro-id', required=True, type=int)
@click.option('--ruolo-specifico', default=None)
@with_appcontext
def associate_attore(email, centro_id, ruolo_specifico):
    attore = db.session.query(Attore).filter_by(email=email.strip().lower()).first()
    if not attore:
        raise click.ClickException(f"Actor {email} not found")
    if not db.session.get(Centro, centro_id):
        raise click.ClickException(f"Center {centro_id} not found")
    if db.session.query(AttoreCentro).filter_by(attore_id=attore.id, centro_id=centro_id).first():
        click.echo("PASS Already associated")
        return
    db.session.add(AttoreCentro(
        attore_id=attore.id,
        centro_id=centro_id,
        ruolo_specifico=ruolo_specifico,
        data_inizio=utcnow(),
    ))
    db.session.commit()
    click.echo(f"PASS Associated {attore.email} with center {centro_id}")


@click.group('scheduler')
def scheduler_group():
    """Run scheduled jobs by hand."""


@scheduler_group.command('run-status-sweep')
@click.option('--date', 'oggi', type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@with_appcontext
def run_status_sweep(oggi):
    result = maintenance_service.run_status_sweep(oggi=oggi.date() if oggi else None)
    click.echo(f"PASS {result.aggiornati} lots updated ({result.notifiche_fallite} notification failures)")
    for lotto_id, da, a in result.transizioni:
        click.echo(f"  lotto {lotto_id}: {da} -> {a}")


@scheduler_group.command('run-archive')
@click.option('--date', 'oggi', type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option('--retention-days', type=int, default=None)
@with_appcontext
def run_archive(oggi, retention_days):
    result = maintenance_service.archive_expired_lots(
        oggi=oggi.date() if oggi else None,
        retention_days=retention_days,
    )
    click.echo(
        f"PASS Archived {result.lotti} lots, {result.log} log rows, "
        f"{result.prenotazioni} reservations (cutoff {result.cutoff.isoformat()})"
    )


@scheduler_group.command('run-statistics')
@click.option('--date', 'oggi', type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@with_appcontext
def run_statistics(oggi):
    row, created = maintenance_service.collect_daily_statistics(oggi=oggi.date() if oggi else None)
    verb = "Recorded" if created else "Already recorded"
    click.echo(f"PASS {verb} statistics for {row.data_statistica.isoformat()} ({row.totale_lotti} lots)")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(attori_group)
    app.cli.add_command(scheduler_group)
