"""SQL-backed catalog store.

Every product belongs to one feed source. The reconciler only ever sees the
products of the source it was built for, while taxonomy terms are shared by
all sources.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql import text

logger = logging.getLogger(__name__)

PUBLISHED = "publish"
DRAFT = "draft"

RECORD_COLUMNS = ("sku", "name", "price", "stock", "status")


@dataclass(slots=True)
class MediaItem:
    id: int
    role: str
    position: int
    url: str


@dataclass(slots=True)
class Term:
    id: int
    label: str
    parent_id: int | None


class CatalogStore:
    def __init__(self, engine: Engine, source: str) -> None:
        self.engine = engine
        self.source = source

    # records

    def find_by_sku(self, sku: str) -> int | None:
        with self.engine.connect() as conn:
            return conn.execute(
                text("SELECT id FROM catalog_products WHERE source = :source AND sku = :sku"),
                {"source": self.source, "sku": sku},
            ).scalar_one_or_none()

    def get_record(self, product_id: int) -> dict[str, Any] | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(
                    """
                    SELECT id, sku, name, price, stock, status
                    FROM catalog_products
                    WHERE id = :id AND source = :source
                    """
                ),
                {"id": product_id, "source": self.source},
            ).mappings().first()
        return dict(row) if row else None

    def create_record(self, fields: Mapping[str, Any]) -> int:
        values = _record_values(fields)
        if not values.get("sku"):
            raise ValueError("A catalog record needs a sku")
        values.setdefault("name", "")
        values.setdefault("price", None)
        values.setdefault("stock", None)
        values.setdefault("status", PUBLISHED)
        with self.engine.begin() as conn:
            result = conn.execute(
                text(
                    """
                    INSERT INTO catalog_products (source, sku, name, price, stock, status)
                    VALUES (:source, :sku, :name, :price, :stock, :status)
                    RETURNING id
                    """
                ),
                {"source": self.source, **values},
            )
            return int(result.scalar_one())

    def update_record(self, product_id: int, fields: Mapping[str, Any]) -> None:
        values = _record_values(fields)
        if not values:
            return
        assignments = ", ".join(f"{column} = :{column}" for column in values)
        with self.engine.begin() as conn:
            conn.execute(
                text(f"UPDATE catalog_products SET {assignments} WHERE id = :id AND source = :source"),
                {"id": product_id, "source": self.source, **values},
            )

    def set_status(self, product_id: int, status: str) -> None:
        if status not in (PUBLISHED, DRAFT):
            raise ValueError(f"Unknown status {status!r}")
        self.update_record(product_id, {"status": status})

    def list_ids(self, *, status: str | None = None) -> list[int]:
        return list(self.sku_index(status=status))

    def sku_index(self, *, status: str | None = None) -> dict[int, str]:
        query = "SELECT id, sku FROM catalog_products WHERE source = :source"
        params: dict[str, Any] = {"source": self.source}
        if status:
            query += " AND status = :status"
            params["status"] = status
        query += " ORDER BY id"
        with self.engine.connect() as conn:
            return {row.id: row.sku for row in conn.execute(text(query), params)}

    # fields

    def get_field(self, product_id: int, key: str) -> str | None:
        with self.engine.connect() as conn:
            return conn.execute(
                text("SELECT value FROM catalog_fields WHERE product_id = :id AND key = :key"),
                {"id": product_id, "key": key},
            ).scalar_one_or_none()

    def get_fields(self, product_id: int) -> dict[str, str | None]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                text("SELECT key, value FROM catalog_fields WHERE product_id = :id"),
                {"id": product_id},
            )
            return {row.key: row.value for row in rows}

    def set_field(self, product_id: int, key: str, value: object) -> None:
        self.set_fields(product_id, {key: value})

    def set_fields(self, product_id: int, values: Mapping[str, object]) -> None:
        if not values:
            return
        with self.engine.begin() as conn:
            for key, value in values.items():
                conn.execute(
                    text(
                        """
                        INSERT INTO catalog_fields (product_id, key, value)
                        VALUES (:id, :key, :value)
                        ON CONFLICT (product_id, key) DO UPDATE SET value = EXCLUDED.value
                        """
                    ),
                    {"id": product_id, "key": key, "value": None if value is None else str(value)},
                )

    # media

    def attach_media(self, product_id: int, urls: Iterable[str], *, role: str = "gallery") -> list[int]:
        ids: list[int] = []
        with self.engine.begin() as conn:
            offset = conn.execute(
                text("SELECT COUNT(*) FROM catalog_media WHERE product_id = :id AND role = :role"),
                {"id": product_id, "role": role},
            ).scalar_one()
            for position, url in enumerate(urls, start=offset):
                result = conn.execute(
                    text(
                        """
                        INSERT INTO catalog_media (product_id, role, position, url)
                        VALUES (:id, :role, :position, :url)
                        RETURNING id
                        """
                    ),
                    {"id": product_id, "role": role, "position": position, "url": url},
                )
                ids.append(int(result.scalar_one()))
        return ids

    def list_media(self, product_id: int) -> list[MediaItem]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT id, role, position, url
                    FROM catalog_media
                    WHERE product_id = :id
                    ORDER BY CASE WHEN role = 'image' THEN 0 ELSE 1 END, position, id
                    """
                ),
                {"id": product_id},
            )
            return [MediaItem(id=row.id, role=row.role, position=row.position, url=row.url) for row in rows]

    def delete_media(self, media_ids: Sequence[int]) -> None:
        if not media_ids:
            return
        with self.engine.begin() as conn:
            for media_id in media_ids:
                conn.execute(text("DELETE FROM catalog_media WHERE id = :id"), {"id": media_id})

    # taxonomy

    def set_terms(self, product_id: int, term_ids: Iterable[int]) -> None:
        unique_ids = list(dict.fromkeys(term_id for term_id in term_ids if term_id is not None))
        with self.engine.begin() as conn:
            conn.execute(
                text("DELETE FROM catalog_product_terms WHERE product_id = :id"), {"id": product_id}
            )
            for position, term_id in enumerate(unique_ids):
                conn.execute(
                    text(
                        """
                        INSERT INTO catalog_product_terms (product_id, term_id, position)
                        VALUES (:id, :term_id, :position)
                        """
                    ),
                    {"id": product_id, "term_id": term_id, "position": position},
                )

    def term_ids(self, product_id: int) -> list[int]:
        """Attached term ids in the order they were attached."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                text("SELECT term_id FROM catalog_product_terms WHERE product_id = :id ORDER BY position, term_id"),
                {"id": product_id},
            )
            return [row.term_id for row in rows]

    def find_term(self, label: str, parent_id: int | None = None) -> int | None:
        with self.engine.connect() as conn:
            return _find_term(conn, label, parent_id)

    def create_term(self, label: str, parent_id: int | None = None) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                text(
                    """
                    INSERT INTO catalog_terms (label, parent_id)
                    VALUES (:label, :parent_id)
                    RETURNING id
                    """
                ),
                {"label": label, "parent_id": parent_id},
            )
            return int(result.scalar_one())

    def get_term(self, term_id: int) -> Term | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT id, label, parent_id FROM catalog_terms WHERE id = :id"), {"id": term_id}
            ).first()
        if row is None:
            return None
        return Term(id=row.id, label=row.label, parent_id=row.parent_id)

    def term_children(self, term_id: int) -> list[int]:
        """Ids of every descendant of ``term_id``."""
        children: list[int] = []
        frontier = [term_id]
        with self.engine.connect() as conn:
            while frontier:
                parent = frontier.pop(0)
                rows = conn.execute(
                    text("SELECT id FROM catalog_terms WHERE parent_id = :parent ORDER BY id"),
                    {"parent": parent},
                )
                found = [row.id for row in rows]
                children.extend(found)
                frontier.extend(found)
        return children


def _find_term(conn: Connection, label: str, parent_id: int | None) -> int | None:
    if parent_id is None:
        return conn.execute(
            text("SELECT id FROM catalog_terms WHERE label = :label AND parent_id IS NULL"),
            {"label": label},
        ).scalar_one_or_none()
    return conn.execute(
        text("SELECT id FROM catalog_terms WHERE label = :label AND parent_id = :parent"),
        {"label": label, "parent": parent_id},
    ).scalar_one_or_none()


def _record_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(RECORD_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown catalog columns: {', '.join(sorted(unknown))}")
    return dict(fields)
