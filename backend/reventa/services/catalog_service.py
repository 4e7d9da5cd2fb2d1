# Overview: Service-layer operations for the catalog cache; sync job and read queries.

"""
Catalog cache.

The external store is the source of truth for products. sync_catalog()
pulls the full catalog and rewrites catalogo_cache in a single
transaction: rows are upserted by product id, rows for products that
disappeared are deleted, and local sales counts survive. A failure at any
point (store API, timeout, database) leaves the previous cache in place.
"""

from __future__ import annotations

import json
import time
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import CatalogoCache
from ..time_utils import utcnow, to_utc_z, minutes_since
from .concurrency import run_in_transaction
from .store_client import (
    StoreAPIError,
    StoreClient,
    CATEGORY_SEPARATOR,
    build_category_paths,
    format_products,
)


SYNC_WARNING_MINUTES = 30
SYNC_ERROR_MINUTES = 120


class CatalogSyncError(Exception):
    """The catalog could not be synchronized; the cache was not modified."""


def infer_sex(category: str, name: str) -> str:
    """Audience guessed from category path and product name keywords."""
    text = f"{category} {name}".lower()

    if "mujer" in text or "dama" in text or "femenin" in text:
        return "Mujer"
    if "hombre" in text or "masculin" in text or "caballero" in text:
        return "Hombre"
    if "niñ" in text or "kid" in text or "infant" in text:
        return "Niños"

    return "Unisex"


def _replace_cache(products: list[dict]) -> dict:
    now = utcnow()
    incoming = {str(p["id"]): p for p in products}
    existing = {row.product_id: row for row in db.session.query(CatalogoCache).all()}

    created = updated = 0
    for product_id, product in incoming.items():
        row = existing.get(product_id)
        if row is None:
            row = CatalogoCache(product_id=product_id, sales_count=0)
            db.session.add(row)
            created += 1
        else:
            updated += 1
        row.data = json.dumps(product, ensure_ascii=False)
        row.brand = product["brand"]
        row.category = product["category"]
        row.sex = infer_sex(product["category"], product["name"])
        row.updated_at = now

    stale_ids = [pid for pid in existing if pid not in incoming]
    deleted = 0
    if stale_ids:
        deleted = db.session.query(CatalogoCache).filter(
            CatalogoCache.product_id.in_(stale_ids)
        ).delete(synchronize_session=False)

    return {"count": len(incoming), "created": created, "updated": updated, "deleted": deleted}


def sync_catalog(client: StoreClient, *, max_duration_seconds: int | None = None) -> dict:
    """
    Fetch categories and products from the store and rewrite the cache.

    Returns counts and the duration in milliseconds.
    Raises CatalogSyncError; the cache is untouched in that case.
    """
    if max_duration_seconds is None:
        max_duration_seconds = current_app.config["SYNC_MAX_DURATION_SECONDS"]

    started = time.monotonic()
    deadline = started + max_duration_seconds
    logger = current_app.logger
    logger.info("Catalog sync started (budget %ss)", max_duration_seconds)

    try:
        categories = client.get_categories(deadline=deadline)
        raw_products = client.get_all_products(deadline=deadline)
    except StoreAPIError as exc:
        logger.error("Catalog sync aborted, cache left untouched: %s", exc)
        raise CatalogSyncError(str(exc)) from exc

    products = format_products(raw_products, build_category_paths(categories), logger=logger)
    if raw_products and not products:
        raise CatalogSyncError("Store returned products but none could be formatted")

    if time.monotonic() > deadline:
        raise CatalogSyncError("Catalog sync exceeded its time budget before writing")

    try:
        result = run_in_transaction(lambda: _replace_cache(products))
    except Exception as exc:
        logger.exception("Catalog sync failed while writing the cache")
        raise CatalogSyncError("Error writing catalog cache") from exc

    result["durationMs"] = int((time.monotonic() - started) * 1000)
    logger.info(
        "Catalog sync finished: %s products (%s new, %s updated, %s removed) in %sms",
        result["count"], result["created"], result["updated"], result["deleted"], result["durationMs"],
    )
    return result


def _matches_levels(category: str, category_filter, subcategory, product_type) -> bool:
    parts = [part.strip() for part in category.split(CATEGORY_SEPARATOR)]
    for level, wanted in enumerate((category_filter, subcategory, product_type)):
        if not wanted:
            continue
        if len(parts) <= level or wanted.lower() not in parts[level].lower():
            return False
    return True


def _matches_search(product: dict, search: str) -> bool:
    needle = search.lower()
    if needle in str(product.get("name", "")).lower():
        return True
    if needle in str(product.get("brand", "")).lower():
        return True
    return any(needle in str(v.get("sku") or "").lower() for v in product.get("variants") or [])


def _iter_cached_products(query, category, subcategory, product_type, search):
    """Decoded products matching the category levels and search, in query order."""
    for row in query.all():
        if (category or subcategory or product_type) and not _matches_levels(row.category, category, subcategory, product_type):
            continue
        try:
            product = json.loads(row.data)
        except ValueError:
            current_app.logger.warning("Skipping malformed catalog cache row for product %s", row.product_id)
            continue
        if not isinstance(product, dict):
            current_app.logger.warning("Skipping non-object catalog cache row for product %s", row.product_id)
            continue
        if search and not _matches_search(product, search):
            continue
        product["salesCount"] = row.sales_count
        yield product


def list_cached_products(
    *,
    brand: str | None = None,
    category: str | None = None,
    subcategory: str | None = None,
    product_type: str | None = None,
    sex: str | None = None,
    search: str | None = None,
    sort_by_sales: bool = False,
    limit: int | None = None,
) -> list[dict]:
    """
    Cached products, optionally filtered and sorted by sales count.

    Each row is decoded on its own; a malformed row is skipped with a
    warning instead of failing the whole listing. At most
    CATALOG_PAGE_SIZE products are returned.
    """
    page_size = current_app.config["CATALOG_PAGE_SIZE"]
    limit = page_size if limit is None else max(0, min(limit, page_size))

    query = db.session.query(CatalogoCache)
    if brand:
        query = query.filter(CatalogoCache.brand == brand)
    if sex:
        query = query.filter(CatalogoCache.sex == sex)

    if sort_by_sales:
        query = query.order_by(CatalogoCache.sales_count.desc(), CatalogoCache.updated_at.desc(), CatalogoCache.id)
    else:
        query = query.order_by(CatalogoCache.id)

    products: list[dict] = []
    for product in _iter_cached_products(query, category, subcategory, product_type, search):
        if len(products) >= limit:
            break
        products.append(product)

    return products


def _talle_sort_key(talle: str):
    # numeric sizes first, in numeric order; then the rest alphabetically
    if talle.isdigit():
        return (0, int(talle), talle)
    return (1, 0, talle)


def variant_facets(
    *,
    brand: str | None = None,
    category: str | None = None,
    subcategory: str | None = None,
    product_type: str | None = None,
) -> dict:
    """
    Sizes and colors available (stock > 0) across the matching cached
    products, for building filter menus. Not capped by page size.
    """
    query = db.session.query(CatalogoCache)
    if brand:
        query = query.filter(CatalogoCache.brand == brand)
    query = query.order_by(CatalogoCache.id)

    talles: set[str] = set()
    colores: set[str] = set()
    for product in _iter_cached_products(query, category, subcategory, product_type, None):
        for variant in product.get("variants") or []:
            if not isinstance(variant, dict):
                continue
            stock = variant.get("stock")
            if not isinstance(stock, (int, float)) or stock <= 0:
                continue
            talle = variant.get("talle")
            if isinstance(talle, str) and talle.strip():
                talles.add(talle.strip())
            color = variant.get("color")
            if isinstance(color, str) and color.strip():
                colores.add(color.strip())

    return {"talles": sorted(talles, key=_talle_sort_key), "colores": sorted(colores)}


def list_best_sellers(limit: int | None = None) -> list[dict]:
    if limit is None:
        limit = current_app.config["BEST_SELLERS_LIMIT"]
    return list_cached_products(sort_by_sales=True, limit=limit)


def wipe_cache() -> int:
    """Delete every cached product; returns the number of rows removed."""
    deleted = run_in_transaction(
        lambda: db.session.query(CatalogoCache).delete(synchronize_session=False)
    )
    current_app.logger.info("Catalog cache wiped: %s rows", deleted)
    return deleted


def adjust_sales_counts(quantities: dict[str, int]) -> None:
    """
    Add (or subtract) sold quantities to cached products.

    Runs inside the caller's transaction. Products not in the cache are
    ignored; counts never drop below zero.
    """
    if not quantities:
        return
    rows = db.session.query(CatalogoCache).filter(
        CatalogoCache.product_id.in_(list(quantities.keys()))
    ).all()
    for row in rows:
        row.sales_count = max(0, row.sales_count + quantities[row.product_id])


def _last_update():
    return db.session.query(func.max(CatalogoCache.updated_at)).scalar()


def cache_stats() -> dict:
    total = db.session.query(CatalogoCache).count()
    last_update = _last_update()
    ttl = timedelta(minutes=current_app.config["CATALOG_CACHE_TTL_MINUTES"])
    return {
        "totalProducts": total,
        "lastUpdate": to_utc_z(last_update),
        "nextUpdate": to_utc_z(last_update + ttl) if last_update else None,
    }


def sync_status() -> dict:
    """Freshness of the cache for monitoring: ok, warning (>30 min) or error (>2 h / never)."""
    last_update = _last_update()
    total = db.session.query(CatalogoCache).count()
    brands = (
        db.session.query(CatalogoCache.brand, func.count(CatalogoCache.id))
        .group_by(CatalogoCache.brand)
        .order_by(func.count(CatalogoCache.id).desc(), CatalogoCache.brand)
        .all()
    )

    minutes = minutes_since(last_update)
    if minutes is None:
        estado, mensaje = "error", "El catálogo nunca fue sincronizado"
    elif minutes > SYNC_ERROR_MINUTES:
        estado, mensaje = "error", "Hace más de 2 horas - revisar el cron de sincronización"
    elif minutes > SYNC_WARNING_MINUTES:
        estado, mensaje = "warning", "Hace más de 30 minutos desde la última sincronización"
    else:
        estado, mensaje = "ok", "Sincronización reciente"

    return {
        "timestamp": to_utc_z(utcnow()),
        "estado": estado,
        "mensaje": mensaje,
        "sincronizacion": {
            "ultima": to_utc_z(last_update),
            "minutosAtras": minutes,
            "horasAtras": minutes // 60 if minutes is not None else None,
            "diasAtras": minutes // 1440 if minutes is not None else None,
        },
        "productos": {
            "total": total,
            "marcasUnicas": len(brands),
        },
        "topMarcas": [{"marca": brand, "cantidad": count} for brand, count in brands[:10]],
    }
