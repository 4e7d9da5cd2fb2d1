# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/reventa/routes/auth.py
"""
Registration and login.

There is no session layer: both endpoints return the user's session fields
and clients send userId on later calls.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..validation import ValidationError, ConflictError, AuthenticationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Check credentials.

    Unknown email and wrong password both return 401 with the same message.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.authenticate(data.get("email"), data.get("password"))
        return jsonify({"user": user.to_session_dict()})
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Error al iniciar sesión"}), 500


@auth_bp.post("/registro")
def register_route():
    """
    Create a reseller account.

    Duplicate email, handle and dni are checked in that order; each
    returns 400 with its own message.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register_user(
            email=data.get("email"),
            password=data.get("password"),
            name=data.get("name"),
            dni=data.get("dni"),
            telefono=data.get("telefono"),
            handle=data.get("handle"),
        )
        return jsonify({"user": user.to_session_dict()}), 201
    except (ValidationError, ConflictError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Error al registrar usuario"}), 500
