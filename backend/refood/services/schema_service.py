# Overview: Resolves which optional tables the connected database provides.

"""
Optional schema capabilities.

The category tables (Categorie, LottiCategorie) may be absent on older
databases. Rather than probing sqlite_master on every request, the app
resolves a SchemaCapabilities snapshot once at startup and keeps it in
app.extensions. refresh_capabilities() bumps the version; callers only
re-resolve on explicit request (startup, `flask system init`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import inspect

from ..extensions import db


logger = logging.getLogger(__name__)

EXTENSION_KEY = "refood.schema"
CATEGORY_TABLES = ("Categorie", "LottiCategorie")


@dataclass(frozen=True)
class SchemaCapabilities:
    version: int
    categorie: bool


def _inspect_tables() -> dict[str, bool]:
    tables = set(inspect(db.engine).get_table_names())
    return {"categorie": all(name in tables for name in CATEGORY_TABLES)}


def refresh_capabilities(app=None) -> SchemaCapabilities:
    """Inspect the database and store a new capabilities snapshot on the app."""
    app = app or current_app._get_current_object()
    previous = app.extensions.get(EXTENSION_KEY)
    version = previous.version + 1 if previous else 1

    with app.app_context():
        flags = _inspect_tables()

    caps = SchemaCapabilities(version=version, **flags)
    app.extensions[EXTENSION_KEY] = caps
    logger.info("Schema capabilities v%s resolved: categorie=%s", caps.version, caps.categorie)
    return caps


def get_capabilities() -> SchemaCapabilities:
    caps = current_app.extensions.get(EXTENSION_KEY)
    if caps is None:
        caps = refresh_capabilities()
    return caps


def has_categorie() -> bool:
    return get_capabilities().categorie
