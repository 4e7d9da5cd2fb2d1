# Overview: Scheduler-triggered catalog sync.

# backend/reventa/routes/cron.py
from flask import Blueprint, jsonify, current_app

from ..decorators import require_cron_secret
from ..services import catalog_service
from ..services.catalog_service import CatalogSyncError
from ..services.store_client import StoreConfigError, get_store_client


cron_bp = Blueprint("cron", __name__, url_prefix="/api/cron")


def run_catalog_sync():
    """Shared by the cron endpoint and the admin force-sync endpoint."""
    try:
        with get_store_client() as client:
            result = catalog_service.sync_catalog(client)
        return jsonify({"success": True, **result})
    except StoreConfigError as e:
        current_app.logger.error("Catalog sync skipped: %s", e)
        return jsonify({"success": False, "error": "Tienda no configurada"}), 500
    except CatalogSyncError as e:
        return jsonify({"success": False, "error": f"Error sincronizando catálogo: {e}"}), 502
    except Exception:
        current_app.logger.exception("Failed to sync catalog")
        return jsonify({"success": False, "error": "Error sincronizando catálogo"}), 500


@cron_bp.route("/sync-catalog", methods=["GET", "POST"])
@require_cron_secret
def sync_catalog_route():
    """Full catalog resync within SYNC_MAX_DURATION_SECONDS."""
    return run_catalog_sync()
