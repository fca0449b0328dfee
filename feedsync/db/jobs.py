"""Import job markers for the tiered run → batch → record mode."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

PENDING = "pending"
COMPLETE = "complete"
CANCELLED = "cancelled"

BATCH = "batch"
RECORD = "record"


@dataclass(slots=True)
class ImportJob:
    id: int
    source: str
    generation: int
    kind: str
    payload: dict[str, Any]
    status: str


class JobStore:
    def __init__(self, engine: Engine, source: str) -> None:
        self.engine = engine
        self.source = source

    def add(self, generation: int, kind: str, payload: dict[str, Any]) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                text(
                    """
                    INSERT INTO import_jobs (source, generation, kind, payload, status)
                    VALUES (:source, :generation, :kind, :payload, :status)
                    RETURNING id
                    """
                ),
                {
                    "source": self.source,
                    "generation": generation,
                    "kind": kind,
                    "payload": json.dumps(payload),
                    "status": PENDING,
                },
            )
            return int(result.scalar_one())

    def get(self, job_id: int) -> ImportJob | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(
                    """
                    SELECT id, source, generation, kind, payload, status
                    FROM import_jobs
                    WHERE id = :id AND source = :source
                    """
                ),
                {"id": job_id, "source": self.source},
            ).mappings().first()
        if row is None:
            return None
        return ImportJob(
            id=row["id"],
            source=row["source"],
            generation=row["generation"],
            kind=row["kind"],
            payload=json.loads(row["payload"]),
            status=row["status"],
        )

    def finish(self, job_id: int, status: str = COMPLETE) -> None:
        if status not in (COMPLETE, CANCELLED):
            raise ValueError(f"Not a terminal status: {status!r}")
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE import_jobs SET status = :status WHERE id = :id"),
                {"status": status, "id": job_id},
            )

    def count(self, status: str, *, generation: int | None = None, kind: str | None = None) -> int:
        query = "SELECT COUNT(*) FROM import_jobs WHERE source = :source AND status = :status"
        params: dict[str, Any] = {"source": self.source, "status": status}
        if generation is not None:
            query += " AND generation = :generation"
            params["generation"] = generation
        if kind is not None:
            query += " AND kind = :kind"
            params["kind"] = kind
        with self.engine.connect() as conn:
            return int(conn.execute(text(query), params).scalar_one())

    def pending_count(self, generation: int | None = None) -> int:
        return self.count(PENDING, generation=generation)

    def purge_terminal(self) -> int:
        """Delete completed and cancelled jobs, returning how many went."""
        with self.engine.begin() as conn:
            result = conn.execute(
                text(
                    """
                    DELETE FROM import_jobs
                    WHERE source = :source AND status IN (:complete, :cancelled)
                    """
                ),
                {"source": self.source, "complete": COMPLETE, "cancelled": CANCELLED},
            )
            return result.rowcount or 0

    def next_generation(self) -> int:
        with self.engine.connect() as conn:
            current = conn.execute(
                text("SELECT MAX(generation) FROM import_jobs WHERE source = :source"),
                {"source": self.source},
            ).scalar_one_or_none()
        return (current or 0) + 1

    def record_skus(self, generation: int) -> set[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT payload FROM import_jobs
                    WHERE source = :source AND generation = :generation AND kind = :kind
                    """
                ),
                {"source": self.source, "generation": generation, "kind": RECORD},
            )
            return {json.loads(row.payload)["record"]["sku"] for row in rows}
