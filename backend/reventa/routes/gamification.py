# Overview: Flask API routes for gamification stats and ranking.

# backend/reventa/routes/gamification.py
from flask import Blueprint, request, jsonify, current_app

from ..services import gamification_service
from ..validation import ValidationError, NotFoundError, AuthenticationError, parse_user_id


gamification_bp = Blueprint("gamification", __name__, url_prefix="/api/gamification")


@gamification_bp.get("/stats")
def stats_route():
    try:
        user_id = parse_user_id(request.args.get("userId"))
        return jsonify(gamification_service.get_user_stats(user_id))
    except (AuthenticationError, ValidationError):
        return jsonify({"error": "userId es requerido"}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load gamification stats")
        return jsonify({"error": "Error al obtener estadísticas"}), 500


@gamification_bp.get("/ranking")
def ranking_route():
    """?userId=&period=month|all (default month)."""
    try:
        user_id = parse_user_id(request.args.get("userId"))
    except (AuthenticationError, ValidationError):
        return jsonify({"error": "userId es requerido"}), 400

    try:
        period = request.args.get("period") or "month"
        return jsonify(gamification_service.get_ranking(user_id, period))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load ranking")
        return jsonify({"error": "Error al obtener ranking"}), 500
