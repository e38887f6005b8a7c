# Overview: Domain exceptions and the JSON error handlers that translate them to HTTP responses.

"""
Refood error taxonomy.

Services raise these; route handlers let them propagate and the handlers
registered by register_error_handlers() turn them into {"error": ...} bodies.

    ValidationError      400  malformed or missing input
    AuthenticationError  401  missing / invalid / expired token
    ForbiddenError       403  authenticated, but not allowed on this resource
    NotFoundError        404  referenced entity does not exist
    ConflictError        409  business rule conflict (duplicate, active reservation)
    anything else        500  logged with traceback
"""

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class RefoodError(Exception):
    status_code = 500

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        body.update(self.details)
        return body


class ValidationError(RefoodError, ValueError):
    """400-level input problem."""
    status_code = 400


class AuthenticationError(RefoodError):
    status_code = 401


class ForbiddenError(RefoodError):
    status_code = 403


class NotFoundError(RefoodError, LookupError):
    status_code = 404


class ConflictError(RefoodError, ValueError):
    """409-level business rule conflict (e.g., lot with an active reservation)."""
    status_code = 409


def register_error_handlers(app) -> None:
    @app.errorhandler(RefoodError)
    def handle_refood_error(exc: RefoodError):
        if exc.status_code >= 500:
            current_app.logger.error("Unhandled domain error: %s", exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error while serving request")
        return jsonify({"error": "Internal server error"}), 500
