# Overview: Flask API routes for the catalog; serves the local cache and live categories.

# backend/reventa/routes/catalog.py
"""
Catalog read endpoints.

Products are always served from catalogo_cache; reads never trigger a
sync. Only /categories goes to the store live.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..services.store_client import StoreAPIError, StoreConfigError, get_store_client, normalize_categories


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@catalog_bp.get("/catalogo")
def catalog_route():
    """
    Cached products.

    Query params: brand, category, subcategory, productType, sex, search,
    limit. ?stats=true returns cache statistics instead.
    """
    try:
        if _truthy(request.args.get("stats")):
            return jsonify(catalog_service.cache_stats())

        products = catalog_service.list_cached_products(
            brand=request.args.get("brand"),
            category=request.args.get("category"),
            subcategory=request.args.get("subcategory"),
            product_type=request.args.get("productType"),
            sex=request.args.get("sex"),
            search=request.args.get("search"),
            limit=request.args.get("limit", type=int),
        )
        return jsonify(products)
    except Exception:
        current_app.logger.exception("Failed to read catalog cache")
        return jsonify({"error": "Error al cargar catálogo"}), 500


@catalog_bp.get("/best-sellers")
def best_sellers_route():
    """Cached products by local sales count, ?limit= (default BEST_SELLERS_LIMIT)."""
    try:
        limit = request.args.get("limit", type=int)
        if limit is not None and limit <= 0:
            return jsonify({"error": "limit debe ser mayor a 0"}), 400
        return jsonify(catalog_service.list_best_sellers(limit))
    except Exception:
        current_app.logger.exception("Failed to read best sellers")
        return jsonify({"error": "Error al cargar más vendidos"}), 500


@catalog_bp.get("/filtros")
def filters_route():
    """Sizes and colors in stock for ?brand=&category=&subcategory=&productType=."""
    try:
        return jsonify(catalog_service.variant_facets(
            brand=request.args.get("brand"),
            category=request.args.get("category"),
            subcategory=request.args.get("subcategory"),
            product_type=request.args.get("productType"),
        ))
    except Exception:
        current_app.logger.exception("Failed to build catalog filters")
        return jsonify({"error": "Error al obtener filtros"}), 500


@catalog_bp.get("/catalogo/categories")
def categories_route():
    """Store categories with their full "A > B > C" paths."""
    try:
        with get_store_client() as client:
            categories = client.get_categories()
        return jsonify(normalize_categories(categories))
    except StoreConfigError:
        current_app.logger.exception("Store API not configured")
        return jsonify({"error": "Tienda no configurada"}), 500
    except StoreAPIError:
        current_app.logger.exception("Failed to fetch categories from store")
        return jsonify({"error": "Error al obtener categorías"}), 502
    except Exception:
        current_app.logger.exception("Failed to fetch categories")
        return jsonify({"error": "Error al obtener categorías"}), 500
