# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/reventa/routes/orders.py
from flask import Blueprint, request, jsonify, current_app

from ..services import order_service
from ..services.order_service import OrderError, InvalidTransitionError
from ..validation import (
    ValidationError,
    NotFoundError,
    AuthenticationError,
    parse_user_id,
    require_positive_int,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/pedidos")


def _create_from_request():
    data = request.get_json(silent=True) or {}
    try:
        user_id = parse_user_id(data.get("userId"))
        pedido = order_service.create_order(
            user_id=user_id,
            cliente=data.get("cliente"),
            telefono=data.get("telefono"),
            nota=data.get("nota"),
            items=data.get("items"),
        )
        return jsonify({"success": True, "pedido": pedido.to_dict()}), 201
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Error al crear pedido"}), 500


@orders_bp.post("")
def create_order_route():
    """Create a pendiente order with its lines."""
    return _create_from_request()


@orders_bp.post("/create")
def create_order_alias_route():
    """Same as POST /api/pedidos; kept for clients that post to /create."""
    return _create_from_request()


@orders_bp.get("")
def list_orders_route():
    """Orders of ?userId=, newest first."""
    try:
        user_id = parse_user_id(request.args.get("userId"))
        pedidos = order_service.list_orders(user_id)
        return jsonify([pedido.to_dict() for pedido in pedidos])
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Error al obtener pedidos"}), 500


@orders_bp.patch("/update-status")
def update_status_route():
    """
    Change an order's status.

    Body: {"pedidoId": int, "estado": str, "userId": int (optional)}
    When userId is sent the order must belong to that user.
    """
    data = request.get_json(silent=True) or {}
    try:
        pedido_id = data.get("pedidoId")
        if pedido_id is None:
            raise ValidationError("pedidoId es requerido")
        pedido_id = require_positive_int("pedidoId", pedido_id)
        user_id = parse_user_id(data["userId"]) if data.get("userId") is not None else None

        pedido, gamification = order_service.update_order_status(
            pedido_id,
            data.get("estado"),
            user_id=user_id,
        )
        return jsonify({
            "success": True,
            "pedido": pedido.to_dict(),
            "gamification": gamification,
        })
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransitionError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except (ValidationError, OrderError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Error al actualizar estado"}), 500
