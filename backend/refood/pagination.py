from __future__ import annotations

from flask import request

from .errors import ValidationError

MAX_LIMIT = 100


def _positive_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
    if value < 1:
        raise ValidationError(f"{name} must be >= 1")
    return value


def page_args(default_limit: int = 20) -> tuple[int, int]:
    """Read ?page= and ?limit= from the query string."""
    page = _positive_int("page", 1)
    limit = min(_positive_int("limit", default_limit), MAX_LIMIT)
    return page, limit


def pagination_payload(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "pages": (total + limit - 1) // limit if total else 0,
        "page": page,
        "limit": limit,
    }
