"""GVAmax real-estate listing feed."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from feedsync.ingest.cache import FeedCache, url_cache_key
from feedsync.ingest.models import Coordinate, FeedSource, RemoteRecord, Zone, to_money
from feedsync.settings import SourceCredentials

logger = logging.getLogger(__name__)

CACHE_KEY = "gvamax_properties"
TIMEOUT_SECONDS = 60.0

ATTRIBUTE_KEYS = (
    "supterr",
    "supcub",
    "ambientes",
    "dormitorios",
    "antiguedad",
    "banos",
    "calle",
    "nro",
    "barrio",
    "localidad",
)


class FeedError(RuntimeError):
    pass


class GvamaxClient:
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
        if not self.credentials.complete:
            logger.warning("GVAmax credentials not configured")
            return None
        try:
            listings = await self._get_json("/propiedades")
            images = flatten_images(await self._get_json("/fotos"))
            contacts = _contacts_by_agent(await self._get_json("/agentes"))
        except (httpx.HTTPError, ValueError, FeedError, AttributeError) as exc:
            logger.warning("GVAmax listing request failed: %s", exc)
            return None
        if not isinstance(listings, list):
            logger.warning("GVAmax listing payload is not a list")
            return None
        if not all(isinstance(raw, dict) for raw in listings):
            logger.warning("GVAmax listing payload has non-object items")
            return None

        records = []
        for raw in listings:
            record = normalize_listing(raw, images=images, contacts=contacts)
            if record:
                records.append(record)
        self.cache.set(CACHE_KEY, [record.to_payload() for record in records], self.source.cache_ttl)
        logger.info("Fetched %s properties from GVAmax", len(records))
        return records[:limit]

    async def fetch_zones(self) -> list[Zone] | None:
        if not self.credentials.complete:
            return None
        try:
            raw_zones = await self._get_json("/zonas")
            zones = []
            for raw in raw_zones or []:
                zone_id = str(raw.get("id", "")).strip()
                name = str(raw.get("nombre", "")).strip()
                if not zone_id or not name:
                    continue
                polygon = parse_polygon(await self._get_json(f"/zonas/{zone_id}/poligono"))
                if len(polygon) < 3:
                    logger.info("Zone %s has no usable boundary", name)
                    continue
                zones.append(Zone(id=zone_id, name=name, polygon=polygon))
        except (httpx.HTTPError, ValueError, FeedError, AttributeError) as exc:
            logger.warning("GVAmax zone request failed: %s", exc)
            return None
        return zones

    async def _get_json(self, path: str) -> Any:
        url = self.source.base_url.rstrip("/") + path
        params = {"cuenta": self.credentials.account_id, "key": self.credentials.access_token}
        key = url_cache_key("gvamax", str(httpx.URL(url, params=params)))
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        response = await self.session.get(url, params=params)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            raise FeedError(str(data["error"]))
        self.cache.set(key, data, self.source.cache_ttl)
        return data


def normalize_listing(
    raw: dict[str, Any],
    *,
    images: dict[str, list[str]] | None = None,
    contacts: dict[str, str] | None = None,
) -> RemoteRecord | None:
    listing = {key: value.strip() if isinstance(value, str) else value for key, value in raw.items()}
    sku = str(listing.get("id") or "").strip()
    if not sku or sku == "0000" or sku.startswith("*"):
        return None
    urls = (images or {}).get(sku, [])
    agent = str(listing.get("agente_id") or "").strip()
    return RemoteRecord(
        sku=sku,
        name=listing.get("titulo") or "",
        price=to_money(listing.get("precio")),
        classification={
            "operation": listing.get("operacion") or "",
            "suboperation": listing.get("suboperacion") or "",
            "type": listing.get("tipo") or "",
            "subtype": listing.get("subtipo") or "",
            "zone": listing.get("zona") or "",
        },
        coordinate=_coordinate(listing.get("lat"), listing.get("lng")),
        last_modified=listing.get("fecha_modificacion") or None,
        image_url=urls[0] if urls else None,
        gallery_urls=tuple(urls[1:]),
        attributes={
            key: str(listing[key]).strip()
            for key in ATTRIBUTE_KEYS
            if listing.get(key) not in (None, "")
        },
        contact=(contacts or {}).get(agent) or None,
    )


def flatten_images(payload: Any) -> dict[str, list[str]]:
    """Turn ``{propiedades: [{id, fotos: [{imagenes: [{url}]}]}]}`` into ``{id: [url, ...]}``."""
    flattened: dict[str, list[str]] = {}
    entries = payload.get("propiedades", []) if isinstance(payload, dict) else payload or []
    for entry in entries:
        sku = str(entry.get("id") or "").strip()
        if not sku:
            continue
        urls = flattened.setdefault(sku, [])
        for group in entry.get("fotos") or []:
            for image in group.get("imagenes") or []:
                url = (image.get("url") or "").strip()
                if url and url not in urls:
                    urls.append(url)
    return flattened


def parse_polygon(payload: Any) -> tuple[tuple[float, float], ...]:
    points = payload.get("puntos", []) if isinstance(payload, dict) else payload or []
    polygon = []
    for point in points:
        coordinate = _coordinate(point.get("lat"), point.get("lng"))
        if coordinate:
            polygon.append(coordinate.as_point())
    return tuple(polygon)


def _contacts_by_agent(payload: Any) -> dict[str, str]:
    contacts = {}
    for agent in payload or []:
        agent_id = str(agent.get("id") or "").strip()
        number = "".join(ch for ch in str(agent.get("whatsapp") or "") if ch.isdigit())
        if agent_id and number:
            contacts[agent_id] = number
    return contacts


def _coordinate(latitude: Any, longitude: Any) -> Coordinate | None:
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return None
    if lat == 0 and lng == 0:
        return None
    return Coordinate(latitude=lat, longitude=lng)
