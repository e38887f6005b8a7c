# Overview: Flask API routes for auth operations; login, logout, token check and self-registration.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import AuthenticationError, ValidationError
from ..services import attori_service, auth_service, session_service
from refood.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an actor and issue a session token.

    The token goes in the Authorization header of later requests:
    Authorization: Bearer <token>
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        raise ValidationError("email and password required")

    attore = auth_service.authenticate(email, password)
    if not attore:
        raise AuthenticationError("Invalid credentials")

    session, token = session_service.create_session(
        attore.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )

    return jsonify({
        "attore": attore.to_dict(),
        "token": token,
        "scade_il": to_utc_z(session.scade_il),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logout effettuato"}), 200


@auth_bp.get("/verifica")
@require_auth
def verify_route():
    return jsonify({"valid": True, "attore": g.current_attore.to_dict()}), 200


@auth_bp.post("/register")
def register_route():
    """Self-registration for center accounts; other roles are created by an administrator."""
    attore = attori_service.register(request.get_json(silent=True))
    return jsonify({"message": "Registrazione completata", "attore": attore.to_dict()}), 201
