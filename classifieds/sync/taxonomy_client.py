"""Upstream category taxonomy API client.

Usage:
    async with TaxonomyClient() as client:
        categories = await client.fetch_categories()
        fields = await client.fetch_category_fields({c["externalID"] for c in categories})

The two fetches fail differently. ``fetch_categories`` never raises: any
failure is logged and yields an empty list, which a sync treats as nothing to
do. ``fetch_category_fields`` raises ``TaxonomyError`` so a broken response can
never be persisted as an empty schema for categories that exist.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from ..config import settings
from .cache import (
    CATEGORY_FIELDS_CACHE_PREFIX,
    CacheBackend,
    categories_cache_key,
    category_fields_cache_key,
    taxonomy_cache,
)

logger = logging.getLogger(__name__)

FIELDS_QUERY_FLAGS = {
    "includeWithoutCategory": "true",
    "splitByCategoryIDs": "true",
    "flatChoices": "true",
    "groupChoicesBySection": "true",
    "flat": "true",
}

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class TaxonomyError(Exception):
    """Upstream taxonomy request failed or returned an unusable body."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(self.message)


class TaxonomyClient:
    """Cached, retrying client for the upstream categories API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        retries: int | None = None,
        retry_wait: float | None = None,
        cache_ttl: float | None = None,
        cache: CacheBackend | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url or settings.taxonomy_base_url
        self.timeout = settings.taxonomy_timeout_seconds if timeout is None else timeout
        self.retries = max(1, settings.taxonomy_retries if retries is None else retries)
        self.retry_wait = settings.taxonomy_retry_wait_seconds if retry_wait is None else retry_wait
        self.cache_ttl = settings.taxonomy_cache_ttl_seconds if cache_ttl is None else cache_ttl
        self.cache: CacheBackend = cache if cache is not None else taxonomy_cache
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "TaxonomyClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "User-Agent": settings.taxonomy_user_agent,
                    "Accept": "application/json",
                },
            )
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict | None = None) -> Any:
        """GET with a fixed number of attempts and a fixed wait between them."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        last_exc: Exception | None = None
        for attempt in range(1, self.retries + 1):
            try:
                response = await self._client.get(path, params=params)
            except httpx.TransportError as exc:
                last_exc = exc
                logger.warning(
                    "Taxonomy request %s failed (attempt %d/%d): %s",
                    path, attempt, self.retries, exc,
                )
            else:
                if response.status_code in _RETRYABLE_STATUS and attempt < self.retries:
                    logger.warning(
                        "Taxonomy request %s returned %d (attempt %d/%d)",
                        path, response.status_code, attempt, self.retries,
                    )
                elif response.status_code >= 400:
                    raise TaxonomyError(
                        f"Taxonomy API returned status: {response.status_code}",
                        response.status_code,
                        response.text,
                    )
                else:
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise TaxonomyError(
                            "Taxonomy API returned a body that is not JSON",
                            response.status_code,
                            response.text,
                        ) from exc

            if attempt < self.retries:
                await asyncio.sleep(self.retry_wait)

        raise TaxonomyError(f"Taxonomy request {path} failed after {self.retries} attempts") from last_exc

    async def fetch_categories(self, force_refresh: bool = False) -> list[dict[str, Any]]:
        """All upstream categories, or ``[]`` on any failure."""
        key = categories_cache_key()
        if force_refresh:
            await self.cache.invalidate(key)
        else:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        logger.info("Fetching categories from taxonomy API")
        try:
            body = await self._get(settings.taxonomy_categories_path)
        except TaxonomyError as exc:
            logger.warning(
                "Taxonomy categories request failed: %s (status=%s)", exc.message, exc.status_code
            )
            return []
        except httpx.HTTPError as exc:
            logger.error("HTTP error fetching categories: %s", exc)
            return []

        if isinstance(body, list):
            items = body
        elif isinstance(body, dict) and isinstance(body.get("data"), list):
            items = body["data"]
        else:
            logger.warning("Taxonomy categories response missing data list")
            return []

        categories = [item for item in items if isinstance(item, dict)]
        logger.info("Fetched %d categories", len(categories))
        await self.cache.put(key, categories, self.cache_ttl)
        return categories

    async def fetch_category_fields(
        self, external_ids: Iterable[str], force_refresh: bool = False
    ) -> dict[str, dict[str, Any]]:
        """Field groups keyed by an opaque per-category id. Raises TaxonomyError."""
        ids = list(dict.fromkeys(str(i) for i in external_ids if str(i).strip()))
        key = category_fields_cache_key(ids)
        if force_refresh:
            await self.cache.invalidate(key)
        else:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        ids_csv = ",".join(ids)
        logger.info("Fetching category fields from taxonomy API for %d categories", len(ids))
        try:
            body = await self._get(
                settings.taxonomy_category_fields_path,
                params={"categoryExternalIDs": ids_csv, **FIELDS_QUERY_FLAGS},
            )
        except TaxonomyError:
            logger.error("Failed to fetch category fields for %s", ids_csv)
            raise
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch category fields for %s: %s", ids_csv, exc)
            raise TaxonomyError(f"HTTP error fetching category fields: {exc}") from exc

        if not isinstance(body, dict):
            raise TaxonomyError("Invalid response structure from taxonomy API", body=body)
        groups = body["data"] if "data" in body else body
        if not isinstance(groups, dict):
            raise TaxonomyError("Invalid response structure from taxonomy API", body=body)

        result = {str(group_key): group for group_key, group in groups.items()}
        logger.info("Fetched category fields for %d groups", len(result))
        await self.cache.put(key, result, self.cache_ttl)
        return result

    async def fetch_fields_for_category(
        self, external_id: str, force_refresh: bool = False
    ) -> dict[str, Any]:
        groups = await self.fetch_category_fields([external_id], force_refresh)
        return groups.get(str(external_id), {})

    async def clear_cache(self) -> None:
        """Drop every cached taxonomy response."""
        await self.cache.invalidate(categories_cache_key())
        dropped = await self.cache.invalidate_prefix(CATEGORY_FIELDS_CACHE_PREFIX)
        logger.info("Cleared taxonomy cache (%d field entries)", dropped)
