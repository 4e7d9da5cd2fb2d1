# Overview: Flask API routes for admin maintenance; badges, cache, sync and brands.

# backend/reventa/routes/admin.py
"""
Admin endpoints.

All routes are guarded by ADMIN_TOKEN (Authorization: Bearer <token>)
when it is configured.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_admin_token
from ..services import catalog_service, gamification_service
from ..validation import ValidationError, ConflictError, NotFoundError, parse_bool
from .cron import run_catalog_sync


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/seed-badges")
@require_admin_token
def seed_badges_route():
    """Idempotent: existing slugs are updated, never duplicated."""
    try:
        result = gamification_service.seed_badges()
        return jsonify({
            "success": True,
            "message": f"{result['created']} badges creados, {result['existing']} ya existían",
            **result,
        })
    except Exception:
        current_app.logger.exception("Failed to seed badges")
        return jsonify({"error": "Error al crear badges"}), 500


@admin_bp.post("/limpiar-cache")
@require_admin_token
def wipe_cache_route():
    try:
        deleted = catalog_service.wipe_cache()
        return jsonify({"success": True, "deleted": deleted, "message": f"{deleted} productos eliminados del caché"})
    except Exception:
        current_app.logger.exception("Failed to wipe catalog cache")
        return jsonify({"error": "Error al limpiar caché"}), 500


@admin_bp.get("/diagnostico-gamificacion")
@require_admin_token
def gamification_diagnostics_route():
    try:
        return jsonify(gamification_service.gamification_diagnostics())
    except Exception:
        current_app.logger.exception("Failed to build gamification diagnostics")
        return jsonify({"error": "Error en diagnóstico"}), 500


@admin_bp.post("/init-gamification")
@require_admin_token
def init_gamification_route():
    try:
        return jsonify({"success": True, **gamification_service.init_gamification()})
    except Exception:
        current_app.logger.exception("Failed to initialize gamification")
        return jsonify({"success": False, "error": "Error inicializando gamificación"}), 500


@admin_bp.get("/sync-status")
@require_admin_token
def sync_status_route():
    try:
        return jsonify(catalog_service.sync_status())
    except Exception:
        current_app.logger.exception("Failed to read sync status")
        return jsonify({"error": "Error al obtener estado de sincronización"}), 500


@admin_bp.route("/force-sync", methods=["GET", "POST"])
@require_admin_token
def force_sync_route():
    return run_catalog_sync()


@admin_bp.get("/brands")
@require_admin_token
def list_brands_route():
    try:
        return jsonify({"success": True, "brands": gamification_service.list_brands()})
    except Exception:
        current_app.logger.exception("Failed to list brands")
        return jsonify({"error": "Error al listar marcas"}), 500


@admin_bp.post("/brands")
@require_admin_token
def create_brand_route():
    data = request.get_json(silent=True) or {}
    try:
        brand = gamification_service.create_brand(
            brand_slug=data.get("brandSlug"),
            brand_name=data.get("brandName"),
            logo_emoji=data.get("logoEmoji"),
            logo_url=data.get("logoUrl"),
            is_active=parse_bool("isActive", data.get("isActive"), default=False),
        )
        return jsonify({
            "success": True,
            "brand": brand.to_dict(),
            "message": f"Marca {brand.brand_name} creada",
        }), 201
    except (ValidationError, ConflictError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create brand")
        return jsonify({"error": "Error al crear marca"}), 500


@admin_bp.patch("/brands")
@require_admin_token
def toggle_brand_route():
    """{brandSlug, isActive}"""
    data = request.get_json(silent=True) or {}
    try:
        brand = gamification_service.set_brand_active(data.get("brandSlug"), parse_bool("isActive", data.get("isActive")))
        return jsonify({"success": True, "brand": brand.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update brand")
        return jsonify({"error": "Error al actualizar marca"}), 500
