# Overview: Flask API routes for consolidations; parses input and returns JSON responses.

# backend/reventa/routes/consolidations.py
from flask import Blueprint, request, jsonify, current_app

from ..services import consolidation_service
from ..services.consolidation_service import ConsolidationError
from ..validation import ValidationError, NotFoundError, AuthenticationError, parse_user_id


consolidations_bp = Blueprint("consolidations", __name__, url_prefix="/api/consolidar")


@consolidations_bp.get("")
def list_consolidations_route():
    try:
        user_id = parse_user_id(request.args.get("userId"))
        consolidaciones = consolidation_service.list_consolidations(user_id)
        return jsonify([c.to_dict() for c in consolidaciones])
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list consolidations")
        return jsonify({"error": "Error al obtener consolidaciones"}), 500


@consolidations_bp.post("")
def consolidate_route():
    """
    Consolidate pending orders.

    Body: userId, pedidoIds, formaPago, tipoEnvio, transporteNombre?,
    descuentoTotal?. The supplier CSV is returned as "csv".
    """
    data = request.get_json(silent=True) or {}
    try:
        user_id = parse_user_id(data.get("userId"))
        consolidacion, csv_content = consolidation_service.consolidate_orders(
            user_id=user_id,
            pedido_ids=data.get("pedidoIds"),
            forma_pago=data.get("formaPago"),
            tipo_envio=data.get("tipoEnvio"),
            transporte_nombre=data.get("transporteNombre"),
            descuento_total=data.get("descuentoTotal", 0),
        )
        payload = consolidacion.to_dict()
        payload["csv"] = csv_content
        return jsonify(payload), 201
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConsolidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to consolidate orders")
        return jsonify({"error": "Error al consolidar"}), 500


@consolidations_bp.patch("")
def record_payment_route():
    """Record what the supplier actually charged: {consolidacionId, costoReal}."""
    data = request.get_json(silent=True) or {}
    try:
        user_id = parse_user_id(data["userId"]) if data.get("userId") is not None else None
        consolidacion = consolidation_service.record_real_cost(
            data.get("consolidacionId"),
            data.get("costoReal"),
            user_id=user_id,
        )
        return jsonify(consolidacion.to_dict())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record consolidation cost")
        return jsonify({"error": "Error al actualizar pago"}), 500
