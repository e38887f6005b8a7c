# Overview: Request decorators for API routes; bearer-token authentication and role checks.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_attore')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets:
    - g.current_attore: the authenticated Attore
    - g.session_context: the SessionContext
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_attore = context.attore
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*ruoli: str):
    """Require the authenticated actor to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_attore.ruolo not in ruoli:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(ruoli),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
