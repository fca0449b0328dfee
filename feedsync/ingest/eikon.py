"""Eikon product feed."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from feedsync.ingest.cache import FeedCache
from feedsync.ingest.models import FeedSource, RemoteRecord, to_int, to_money
from feedsync.settings import SourceCredentials

logger = logging.getLogger(__name__)

CACHE_KEY = "eikon_products"
TIMEOUT_SECONDS = 60.0


class EikonClient:
    def __init__(
        self,
        source: FeedSource,
        credentials: SourceCredentials,
        cache: FeedCache,
        *,
        session: httpx.AsyncClient | None = None,
    ) -> None:
        self.source = source
        self.credentials = credentials
        self.cache = cache
        self.session = session or httpx.AsyncClient(timeout=TIMEOUT_SECONDS)

    async def close(self) -> None:
        await self.session.aclose()

    async def fetch_all(self, limit: int | None = None) -> list[RemoteRecord] | None:
        cached = self.cache.get(CACHE_KEY)
        if cached is not None:
            return [RemoteRecord.from_payload(item) for item in cached][:limit]

        token = await self._auth_token()
        if not token:
            return None
        try:
            response = await self.session.get(
                self.source.base_url,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            )
            response.raise_for_status()
            raw_products = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Eikon products request failed: %s", exc)
            return None
        except ValueError as exc:
            logger.warning("Eikon products payload is not JSON: %s", exc)
            return None
        if not isinstance(raw_products, list):
            logger.warning("Eikon products payload is not a list")
            return None
        if not all(isinstance(raw, dict) for raw in raw_products):
            logger.warning("Eikon products payload has non-object items")
            return None

        records = [record for record in map(normalize_product, raw_products) if record]
        self.cache.set(CACHE_KEY, [record.to_payload() for record in records], self.source.cache_ttl)
        logger.info("Fetched %s products from Eikon", len(records))
        return records[:limit]

    async def _auth_token(self) -> str | None:
        if not self.credentials.complete:
            logger.warning("Eikon credentials not configured")
            return None
        try:
            response = await self.session.post(
                self.source.auth_url,
                data={
                    "Username": self.credentials.account_id,
                    "Password": self.credentials.access_token,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Eikon authentication failed: %s", exc)
            return None
        return response.text.strip().strip('"') or None


def normalize_product(raw: dict[str, Any]) -> RemoteRecord | None:
    """Map a raw Eikon product to a record, or None for placeholder rows."""
    product = {key: value.strip() if isinstance(value, str) else value for key, value in raw.items()}
    sku = str(product.get("codigo") or "").strip()
    if not sku or sku == "0000" or sku.startswith("*"):
        return None
    return RemoteRecord(
        sku=sku,
        name=product.get("decripcion") or "",
        stock=to_int(product.get("existencia")),
        price=to_money(product.get("precio")),
        wholesale_price=to_money(product.get("precio_mayorista")),
        classification={
            "brand": product.get("marca_descripcion") or "",
            "category": product.get("rubro_descripcion") or "",
            "subcategory": product.get("familia_descripcion") or "",
        },
    )
