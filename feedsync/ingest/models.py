"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

EIKON = "eikon"
GVAMAX = "gvamax"


@dataclass(slots=True)
class FeedSource:
    name: str
    kind: str
    base_url: str
    auth_url: str | None = None
    cache_ttl: int = 300
    batch_size: int = 50


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def as_point(self) -> tuple[float, float]:
        return (self.longitude, self.latitude)


@dataclass(frozen=True, slots=True)
class Zone:
    id: str
    name: str
    polygon: tuple[tuple[float, float], ...]


@dataclass(frozen=True, slots=True)
class RemoteRecord:
    sku: str
    name: str
    price: float | None = None
    stock: int | None = None
    wholesale_price: float | None = None
    classification: Mapping[str, str] = field(default_factory=dict)
    coordinate: Coordinate | None = None
    last_modified: str | None = None
    image_url: str | None = None
    gallery_urls: tuple[str, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict)
    contact: str | None = None

    def label(self, key: str) -> str:
        return self.classification.get(key) or ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "name": self.name,
            "price": self.price,
            "stock": self.stock,
            "wholesale_price": self.wholesale_price,
            "classification": dict(self.classification),
            "coordinate": (
                [self.coordinate.latitude, self.coordinate.longitude] if self.coordinate else None
            ),
            "last_modified": self.last_modified,
            "image_url": self.image_url,
            "gallery_urls": list(self.gallery_urls),
            "attributes": dict(self.attributes),
            "contact": self.contact,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "RemoteRecord":
        coordinate = data.get("coordinate")
        return cls(
            sku=data["sku"],
            name=data.get("name") or "",
            price=data.get("price"),
            stock=data.get("stock"),
            wholesale_price=data.get("wholesale_price"),
            classification=dict(data.get("classification") or {}),
            coordinate=Coordinate(*coordinate) if coordinate else None,
            last_modified=data.get("last_modified"),
            image_url=data.get("image_url"),
            gallery_urls=tuple(data.get("gallery_urls") or ()),
            attributes=dict(data.get("attributes") or {}),
            contact=data.get("contact"),
        )


def to_money(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        return None


def to_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None
