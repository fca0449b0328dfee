"""Read-only display accessors for imported real-estate listings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from feedsync.db.catalog import CatalogStore
from feedsync.logic.profiles import (
    ATTRIBUTE_PREFIX,
    LATITUDE_FIELD,
    LONGITUDE_FIELD,
    WHATSAPP_FIELD,
)

RECEPTION_WHATSAPP_NUMBER = "5493512359666"

WHATSAPP_MESSAGE = (
    "¡Hola! Me comunico porque me interesa esta propiedad: \n"
    '"{name}"\n'
    "¿Podrías por favor enviarme más detalles?"
)


@dataclass(slots=True)
class PropertyView:
    sku: str
    name: str
    price: float | None
    status: str
    fields: dict[str, str | None]
    terms: dict[str, list[str]]

    def attribute(self, key: str) -> str | None:
        return self.fields.get(f"{ATTRIBUTE_PREFIX}{key}") or None

    @property
    def operation_name(self) -> str | None:
        names = self.terms.get("Operación") or []
        return names[-1] if names else None

    @property
    def zone_names(self) -> list[str]:
        return list(self.terms.get("Zona") or [])

    @property
    def primary_zone_name(self) -> str | None:
        names = self.zone_names
        return names[0] if names else None

    @property
    def type_name(self) -> str | None:
        names = self.terms.get("Tipo") or []
        return names[-1] if names else None

    @property
    def whatsapp_number(self) -> str:
        return self.fields.get(WHATSAPP_FIELD) or RECEPTION_WHATSAPP_NUMBER

    @property
    def whatsapp_url(self) -> str:
        message = quote(WHATSAPP_MESSAGE.format(name=self.name))
        return f"https://wa.me/{self.whatsapp_number}?text={message}"

    @property
    def terrain_m2(self) -> str | None:
        return self.attribute("supterr")

    @property
    def covered_m2(self) -> str | None:
        return self.attribute("supcub")

    @property
    def environments(self) -> str | None:
        return self.attribute("ambientes")

    @property
    def bedrooms(self) -> str | None:
        return self.attribute("dormitorios")

    @property
    def antiquity(self) -> str | None:
        return self.attribute("antiguedad")

    @property
    def bathrooms(self) -> str | None:
        return self.attribute("banos")

    @property
    def address(self) -> str:
        parts = (self.attribute("calle"), self.attribute("nro"))
        return " ".join(part for part in parts if part)

    @property
    def neighborhood(self) -> str | None:
        return self.attribute("barrio")

    @property
    def city(self) -> str | None:
        return self.attribute("localidad")

    @property
    def coordinates(self) -> dict[str, float]:
        return {
            "latitude": _float(self.fields.get(LATITUDE_FIELD)),
            "longitude": _float(self.fields.get(LONGITUDE_FIELD)),
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "name": self.name,
            "price": self.price,
            "status": self.status,
            "operation": self.operation_name,
            "type": self.type_name,
            "zones": self.zone_names,
            "primary_zone": self.primary_zone_name,
            "whatsapp": self.whatsapp_number,
            "whatsapp_url": self.whatsapp_url,
            "terrain_m2": self.terrain_m2,
            "covered_m2": self.covered_m2,
            "environments": self.environments,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "antiquity": self.antiquity,
            "address": self.address,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "coordinates": self.coordinates,
        }


def property_view(store: CatalogStore, sku: str) -> PropertyView | None:
    """Build the view of the listing ``sku``, or None when it is not imported.

    ``terms`` groups the record's attached terms by grouping root, keeping the
    attachment order: the last operation and type entries are the most specific
    and the listing's own zone label comes before geofenced zones.
    """
    product_id = store.find_by_sku(sku)
    if product_id is None:
        return None
    record = store.get_record(product_id)
    attached = store.term_ids(product_id)
    terms: dict[str, list[str]] = {}
    for root in ("Operación", "Tipo", "Zona"):
        root_id = store.find_term(root)
        if root_id is None:
            continue
        descendants = set(store.term_children(root_id))
        labels = []
        for term_id in attached:
            if term_id in descendants:
                term = store.get_term(term_id)
                if term:
                    labels.append(term.label)
        terms[root] = labels
    return PropertyView(
        sku=record["sku"],
        name=record["name"],
        price=record["price"],
        status=record["status"],
        fields=store.get_fields(product_id),
        terms=terms,
    )


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
