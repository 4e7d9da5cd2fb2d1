# Overview: Flask API routes for profiles and payout settings.

# backend/reventa/routes/profile.py
from flask import Blueprint, request, jsonify, current_app

from ..services import profile_service
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    AuthenticationError,
    parse_user_id,
)


profile_bp = Blueprint("profile", __name__, url_prefix="/api")


@profile_bp.get("/profile/public/<handle>")
def public_profile_route(handle):
    try:
        return jsonify(profile_service.get_public_profile(handle))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load public profile")
        return jsonify({"error": "Error al obtener perfil"}), 500


@profile_bp.get("/profile")
def get_profile_route():
    try:
        user_id = parse_user_id(request.args.get("userId"))
        return jsonify(profile_service.get_profile(user_id))
    except (AuthenticationError, ValidationError):
        return jsonify({"error": "userId es requerido"}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load profile")
        return jsonify({"error": "Error al obtener perfil"}), 500


@profile_bp.patch("/profile")
def update_profile_route():
    data = request.get_json(silent=True) or {}
    try:
        user_id = parse_user_id(data.get("userId"))
    except (AuthenticationError, ValidationError):
        return jsonify({"error": "userId es requerido"}), 400

    try:
        user = profile_service.update_profile(user_id, {k: v for k, v in data.items() if k != "userId"})
        return jsonify(user.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, ConflictError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Error al actualizar perfil"}), 500


@profile_bp.post("/profile/upload-photo")
def upload_photo_route():
    """Accept a base64 data URI and echo it back; nothing is stored."""
    data = request.get_json(silent=True) or {}
    try:
        if not data.get("userId") or not data.get("photo"):
            return jsonify({"error": "userId y photo son requeridos"}), 400
        url = profile_service.validate_photo(data.get("photo"))
        return jsonify({"success": True, "url": url})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to accept profile photo")
        return jsonify({"error": "Error al subir foto"}), 500


@profile_bp.put("/user/update")
def update_user_route():
    """Margin and payout details: {userId, margen?, cbu?, alias?}."""
    data = request.get_json(silent=True) or {}
    try:
        user_id = parse_user_id(data.get("userId"))
    except (AuthenticationError, ValidationError):
        return jsonify({"error": "userId es requerido"}), 400

    try:
        payload = {k: data[k] for k in ("margen", "cbu", "alias") if k in data}
        user = profile_service.update_payout(user_id, payload=payload)
        return jsonify({
            "success": True,
            "user": {
                **user.to_session_dict(),
                "cbu": user.cbu,
                "alias": user.alias,
            },
        })
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Error al actualizar usuario"}), 500
