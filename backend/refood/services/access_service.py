# Overview: Service-layer rules deciding which centers an actor may operate on.

from __future__ import annotations

from sqlalchemy import exists, or_

from ..extensions import db
from ..errors import ForbiddenError
from ..models import Attore, AttoreCentro, Centro


def associated_center_ids(attore_id: int) -> list[int]:
    rows = (
        db.session.query(AttoreCentro.centro_id)
        .filter(AttoreCentro.attore_id == attore_id)
        .all()
    )
    return sorted(row.centro_id for row in rows)


def _unclaimed_filter():
    """Centers with no actor association at all."""
    return ~exists().where(AttoreCentro.centro_id == Centro.id)


def visible_centers_query(attore: Attore):
    """
    Centers the actor operates on.

    Administrators see their associated centers plus any unclaimed center;
    everyone else sees only their associated centers.
    """
    associated = exists().where(
        AttoreCentro.centro_id == Centro.id,
        AttoreCentro.attore_id == attore.id,
    )
    query = db.session.query(Centro)
    if attore.is_admin:
        return query.filter(or_(associated, _unclaimed_filter()))
    return query.filter(associated)


def operable_center_ids(attore: Attore) -> list[int]:
    return sorted(c.id for c in visible_centers_query(attore).with_entities(Centro.id).all())


def can_operate_on(attore: Attore, centro_id: int) -> bool:
    return (
        visible_centers_query(attore)
        .filter(Centro.id == centro_id)
        .with_entities(Centro.id)
        .first()
        is not None
    )


def require_center_access(attore: Attore, centro_id: int) -> None:
    if not can_operate_on(attore, centro_id):
        raise ForbiddenError("Non hai i permessi per operare su questo centro")
