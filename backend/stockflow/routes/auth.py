# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

Shop owners sign up with email and password; operators can also create
accounts from the CLI (flask users create). Besides signing up, the API
logs in, logs out, reports the current user and checks a password again
before sensitive actions.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import bearer_token, require_auth
from ..errors import InvalidCredential, ReauthenticationError, StockflowError
from ..responses import json_error
from ..services import auth_service
from ..services import session_service
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Create a shop account and sign it in.

    The account gets an empty shop profile and the default units. Responds
    like /login (user, token, expires_at) with 201.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400
    if not isinstance(email, str) or not isinstance(password, str):
        return jsonify({"error": "email and password must be strings"}), 400

    try:
        user = auth_service.create_user(email, password)
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except StockflowError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Registered account %s", user.id)
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "message": "Registration successful"
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.warning("Failed login for %s", auth_service.normalize_email(email))
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "account_id": context.account_id,
        "expires_at": to_utc_z(context.session.expires_at),
    }), 200


@auth_bp.post("/reauthenticate")
@require_auth
def reauthenticate_route():
    """
    Check the current password without changing anything.

    403 {"error": "Wrong password"} distinguishes a typo from any other
    failure (502), so clients can prompt again.
    """
    data = request.get_json(silent=True) or {}
    password = data.get("password")
    if not password:
        return jsonify({"error": "password required", "field": "password"}), 400

    try:
        auth_service.reauthenticate(g.session_context, password)
    except (InvalidCredential, ReauthenticationError) as e:
        return json_error(e)

    return jsonify({"ok": True}), 200
