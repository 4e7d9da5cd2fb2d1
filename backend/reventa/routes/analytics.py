# Overview: Flask API routes for sales analytics and customer history.

# backend/reventa/routes/analytics.py
from flask import Blueprint, request, jsonify, current_app

from ..services import analytics_service
from ..validation import ValidationError, NotFoundError, AuthenticationError, parse_user_id


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api")


@analytics_bp.get("/analytics")
def analytics_route():
    """?userId=&period=all|month|year (default all)."""
    try:
        user_id = parse_user_id(request.args.get("userId"))
    except (AuthenticationError, ValidationError):
        return jsonify({"error": "userId es requerido"}), 400

    try:
        period = request.args.get("period") or "all"
        return jsonify(analytics_service.get_analytics(user_id, period))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load analytics")
        return jsonify({"error": "Error al obtener analytics"}), 500


@analytics_bp.get("/clientas")
def clients_route():
    """?userId=[&cliente=name] lists every customer, or one customer's detail."""
    try:
        user_id = parse_user_id(request.args.get("userId"))
    except (AuthenticationError, ValidationError):
        return jsonify({"error": "userId es requerido"}), 400

    try:
        nombre = request.args.get("cliente")
        if nombre:
            return jsonify(analytics_service.get_client_detail(user_id, nombre))
        return jsonify({"clientas": analytics_service.list_clients(user_id)})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load clients")
        return jsonify({"error": "Error al obtener clientas"}), 500
