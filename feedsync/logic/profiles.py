"""Per-source import rules.

A profile tells the reconciler how a feed's records map onto catalog
records: which taxonomy paths to attach, which fields to write, which fields
are compared when deciding whether to update, and whether the remote
last-modified timestamp drives staleness.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from feedsync.ingest.gvamax import GvamaxClient
from feedsync.ingest.models import RemoteRecord, Zone
from feedsync.logic.geofence import zones_containing
from feedsync.logic.taxonomy import CategoryPath

logger = logging.getLogger(__name__)

WHOLESALE_PRICE_FIELD = "wholesale_customer_wholesale_price"
LATITUDE_FIELD = "_latitude"
LONGITUDE_FIELD = "_longitude"
WHATSAPP_FIELD = "_whatsapp"
ATTRIBUTE_PREFIX = "attribute:"

FIELDS = "fields"
TIMESTAMP = "timestamp"


def _as_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    return round(float(value), 2)


def _as_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(float(value))


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True, slots=True)
class TrackedField:
    """A value compared between the remote record and the catalog record.

    ``column`` names a catalog column; otherwise ``key`` names a stored field.
    """

    name: str
    read: Callable[[RemoteRecord], Any]
    coerce: Callable[[Any], Any]
    column: str | None = None
    key: str | None = None


class ProductProfile:
    """Eikon products: field-level diff on stock, price and wholesale price."""

    staleness = FIELDS
    tracked = (
        TrackedField("stock", lambda r: r.stock, _as_int, column="stock"),
        TrackedField("price", lambda r: r.price, _as_float, column="price"),
        TrackedField(
            "wholesale price", lambda r: r.wholesale_price, _as_float, key=WHOLESALE_PRICE_FIELD
        ),
    )

    def __init__(self, source: str = "eikon") -> None:
        self.source = source

    async def prepare(self) -> None:
        return None

    def category_paths(self, record: RemoteRecord) -> list[CategoryPath]:
        return [
            CategoryPath((record.label("brand"),), root="Marcas"),
            CategoryPath((record.label("category"), record.label("subcategory"))),
        ]

    def record_fields(self, record: RemoteRecord) -> dict[str, Any]:
        return {"name": record.name, "price": record.price, "stock": record.stock}

    def extra_fields(self, record: RemoteRecord) -> dict[str, Any]:
        return {WHOLESALE_PRICE_FIELD: record.wholesale_price}

    def media(self, record: RemoteRecord) -> tuple[str | None, tuple[str, ...]]:
        return None, ()


class ListingProfile:
    """GVAmax listings: timestamp staleness, zone enrichment, media replace."""

    staleness = TIMESTAMP
    tracked = (
        TrackedField("name", lambda r: r.name, _as_str, column="name"),
        TrackedField("price", lambda r: r.price, _as_float, column="price"),
    )

    def __init__(
        self,
        client: GvamaxClient | None = None,
        *,
        zones: list[Zone] | None = None,
        source: str = "gvamax",
    ) -> None:
        self.client = client
        self.zones: list[Zone] = list(zones or [])
        self.source = source
        self._prepared = zones is not None

    async def prepare(self) -> None:
        if self._prepared or self.client is None:
            return
        zones = await self.client.fetch_zones()
        if zones is None:
            logger.warning("Zone boundaries unavailable; listings keep only their own zone label")
            zones = []
        self.zones = zones
        self._prepared = True

    def category_paths(self, record: RemoteRecord) -> list[CategoryPath]:
        paths = [
            CategoryPath((record.label("operation"), record.label("suboperation")), root="Operación"),
            CategoryPath((record.label("type"), record.label("subtype")), root="Tipo"),
        ]
        zone_names = [zone.name for zone in zones_containing(record.coordinate, self.zones)]
        own_zone = record.label("zone")
        if own_zone and own_zone not in zone_names:
            zone_names.insert(0, own_zone)
        paths.extend(CategoryPath((name,), root="Zona") for name in zone_names)
        return paths

    def record_fields(self, record: RemoteRecord) -> dict[str, Any]:
        return {"name": record.name, "price": record.price, "stock": None}

    def extra_fields(self, record: RemoteRecord) -> dict[str, Any]:
        fields: dict[str, Any] = {WHATSAPP_FIELD: record.contact}
        if record.coordinate:
            fields[LATITUDE_FIELD] = record.coordinate.latitude
            fields[LONGITUDE_FIELD] = record.coordinate.longitude
        for key, value in record.attributes.items():
            fields[f"{ATTRIBUTE_PREFIX}{key}"] = value
        return fields

    def media(self, record: RemoteRecord) -> tuple[str | None, tuple[str, ...]]:
        return record.image_url, record.gallery_urls
