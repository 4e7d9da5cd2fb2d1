# Overview: HTTP client for the external store API that feeds the catalog.

"""
Client for the Tiendanube-style store API.

Requests go to {TN_API_BASE}/{TN_STORE_ID}{endpoint} with the store's
"Authentication: bearer <token>" header. Listing endpoints are paginated at
200 items per page; a page shorter than that is the last one.

Each page is retried with linear backoff. A page that still fails aborts
the whole listing: callers never receive a partial catalog.
"""

from __future__ import annotations

import time
from typing import Any, Callable

import httpx
from flask import current_app


PER_PAGE = 200
CATEGORY_SEPARATOR = " > "

NO_NAME = "Sin nombre"
NO_BRAND = "Sin marca"
NO_CATEGORY = "Sin categoría"
PLACEHOLDER_IMAGE = "/placeholder.png"


class StoreAPIError(Exception):
    """The store API failed or returned something unusable."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StoreConfigError(StoreAPIError):
    """Store credentials are missing from configuration."""


class StoreClient:
    def __init__(
        self,
        *,
        api_base: str | None,
        store_id: str | None,
        access_token: str | None,
        user_agent: str = "Reventa App",
        timeout: float = 30,
        transport: httpx.BaseTransport | None = None,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        page_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        logger=None,
    ):
        missing = [
            name for name, value in (
                ("TN_API_BASE", api_base),
                ("TN_STORE_ID", store_id),
                ("TN_ACCESS_TOKEN", access_token),
            )
            if not value
        ]
        if missing:
            raise StoreConfigError(f"Store configuration incomplete: missing {', '.join(missing)}")

        self.base_url = f"{api_base.rstrip('/')}/{store_id}"
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.page_delay = page_delay
        self._sleep = sleep
        self._logger = logger
        self._http = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                "Authentication": f"bearer {access_token}",
                "User-Agent": user_agent,
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_config(cls, config, **kwargs) -> "StoreClient":
        options = dict(
            api_base=config.get("TN_API_BASE"),
            store_id=config.get("TN_STORE_ID"),
            access_token=config.get("TN_ACCESS_TOKEN"),
            user_agent=config.get("TN_USER_AGENT") or "Reventa App",
            timeout=config.get("TN_TIMEOUT_SECONDS", 30),
            transport=config.get("STORE_HTTP_TRANSPORT"),
            retry_delay=config.get("STORE_RETRY_DELAY_SECONDS", 1.0),
            page_delay=config.get("STORE_PAGE_DELAY_SECONDS", 0.5),
        )
        options.update(kwargs)
        return cls(**options)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _log(self, level: str, message: str, *args) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(message, *args)

    def fetch(self, endpoint: str, params: dict | None = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self._http.get(url, params=params or None)
        except httpx.HTTPError as exc:
            raise StoreAPIError(f"Store API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise StoreAPIError(
                f"Store API error {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise StoreAPIError("Store API returned invalid JSON") from exc

    def _fetch_with_retry(self, endpoint: str, params: dict, label: str) -> Any:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return self.fetch(endpoint, params)
            except StoreAPIError as exc:
                self._log("warning", "Store API %s failed (attempt %s/%s): %s", label, attempt, self.retry_attempts, exc)
                if attempt == self.retry_attempts:
                    raise
                self._sleep(self.retry_delay * attempt)

    def _fetch_all_pages(
        self,
        endpoint: str,
        params: dict,
        *,
        max_pages: int,
        deadline: float | None,
        label: str,
    ) -> list:
        items: list = []
        page = 1
        while page <= max_pages:
            if deadline is not None and time.monotonic() > deadline:
                raise StoreAPIError(f"Store API {label} listing exceeded its time budget at page {page}")

            batch = self._fetch_with_retry(
                endpoint,
                {**params, "page": str(page), "per_page": str(PER_PAGE)},
                f"{label} page {page}",
            )
            if not isinstance(batch, list):
                raise StoreAPIError(f"Store API {label} page {page} is not a list")
            if not batch:
                break

            items.extend(batch)
            self._log("info", "Store API %s page %s: %s items (total %s)", label, page, len(batch), len(items))

            if len(batch) < PER_PAGE:
                break
            page += 1
            if self.page_delay:
                self._sleep(self.page_delay)

        return items

    def get_all_products(
        self,
        *,
        only_published: bool = True,
        sort_by: str | None = None,
        max_pages: int = 100,
        deadline: float | None = None,
    ) -> list[dict]:
        params: dict[str, str] = {}
        if only_published:
            params["published"] = "true"
        if sort_by:
            params["sort_by"] = sort_by
        return self._fetch_all_pages(
            "/products", params, max_pages=max_pages, deadline=deadline, label="products",
        )

    def get_best_selling_products(self, limit: int = 50) -> list[dict]:
        max_pages = max(1, -(-limit // PER_PAGE))
        products = self._fetch_all_pages(
            "/products",
            {"published": "true", "sort_by": "best-selling"},
            max_pages=max_pages,
            deadline=None,
            label="best sellers",
        )
        return products[:limit]

    def get_product(self, product_id: str | int) -> dict:
        return self.fetch(f"/products/{product_id}")

    def get_categories(self, *, max_pages: int = 20, deadline: float | None = None) -> list[dict]:
        return self._fetch_all_pages(
            "/categories", {}, max_pages=max_pages, deadline=deadline, label="categories",
        )


def get_store_client() -> StoreClient:
    """Client configured from the current app."""
    return StoreClient.from_config(current_app.config, logger=current_app.logger)


def _localized(value: Any, default: str = "") -> str:
    """Store texts come as {"es": "..."}; plain strings are accepted too."""
    if isinstance(value, dict):
        value = value.get("es") or next((v for v in value.values() if v), None)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def build_category_paths(categories: list[dict]) -> dict[int, str]:
    """Map category id -> "Root > Child > Leaf"."""
    by_id = {c.get("id"): c for c in categories if c.get("id") is not None}
    paths: dict[int, str] = {}

    def path_for(category_id, seen: frozenset = frozenset()) -> str:
        if category_id in paths:
            return paths[category_id]
        category = by_id[category_id]
        name = _localized(category.get("name"), NO_CATEGORY)
        parent_id = category.get("parent")
        if parent_id in by_id and parent_id not in seen and parent_id != category_id:
            path = f"{path_for(parent_id, seen | {category_id})}{CATEGORY_SEPARATOR}{name}"
        else:
            path = name
        paths[category_id] = path
        return path

    for category_id in by_id:
        path_for(category_id)
    return paths


def normalize_categories(categories: list[dict]) -> list[dict]:
    paths = build_category_paths(categories)
    return [
        {
            "id": c.get("id"),
            "name": _localized(c.get("name"), NO_CATEGORY),
            "parent": c.get("parent"),
            "path": paths.get(c.get("id"), _localized(c.get("name"), NO_CATEGORY)),
        }
        for c in categories
        if c.get("id") is not None
    ]


def _product_category(raw: dict, category_paths: dict[int, str] | None) -> str:
    categories = raw.get("categories") or []
    if not categories:
        return NO_CATEGORY

    if category_paths:
        known = [category_paths[c["id"]] for c in categories if c.get("id") in category_paths]
        if known:
            # Deepest path wins; products are tagged with every ancestor too
            return max(known, key=lambda path: path.count(CATEGORY_SEPARATOR))

    return _localized(categories[0].get("name"), NO_CATEGORY)


def _variant_value(values: list, index: int) -> str:
    if len(values) > index:
        return _localized(values[index])
    return ""


def _price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def format_product(raw: dict, category_paths: dict[int, str] | None = None) -> dict:
    """
    Flatten one store product for the catalog.

    Variant option values are ordered color, size (talle).
    """
    images = raw.get("images") or []
    variants = []
    for variant in raw.get("variants") or []:
        values = variant.get("values") or []
        variants.append({
            "id": variant.get("id"),
            "sku": variant.get("sku") or "",
            "price": _price(variant.get("price")),
            "stock": variant.get("stock") or 0,
            "talle": _variant_value(values, 1),
            "color": _variant_value(values, 0),
        })

    return {
        "id": raw["id"],
        "name": _localized(raw.get("name"), NO_NAME),
        "brand": _localized(raw.get("brand"), NO_BRAND),
        "category": _product_category(raw, category_paths),
        "image": (images[0].get("src") if images else None) or PLACEHOLDER_IMAGE,
        "variants": variants,
        "published": bool(raw.get("published", True)),
    }


def format_products(products: list[dict], category_paths: dict[int, str] | None = None, logger=None) -> list[dict]:
    """Format every product, skipping (and logging) ones without usable data."""
    formatted = []
    for raw in products:
        try:
            formatted.append(format_product(raw, category_paths))
        except (KeyError, TypeError, AttributeError) as exc:
            if logger is not None:
                logger.warning("Skipping malformed store product %r: %s", raw.get("id") if isinstance(raw, dict) else raw, exc)
    return formatted
