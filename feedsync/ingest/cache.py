"""Shared response cache for remote feeds."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Callable

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

logger = logging.getLogger(__name__)


def url_cache_key(prefix: str, url: str) -> str:
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()
    return f"{prefix}_{digest}"


class FeedCache:
    def __init__(self, engine: Engine, *, clock: Callable[[], float] = time.time) -> None:
        self.engine = engine
        self.clock = clock

    def get(self, key: str) -> Any | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT value, expires_at FROM feed_cache WHERE key = :key"), {"key": key}
            ).first()
        if row is None or row.expires_at <= self.clock():
            return None
        try:
            return json.loads(row.value)
        except json.JSONDecodeError:
            logger.warning("Invalid cache entry %s; ignoring", key)
            return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO feed_cache (key, value, expires_at)
                    VALUES (:key, :value, :expires_at)
                    ON CONFLICT (key) DO UPDATE SET
                      value = EXCLUDED.value,
                      expires_at = EXCLUDED.expires_at
                    """
                ),
                {"key": key, "value": json.dumps(value), "expires_at": self.clock() + ttl},
            )

    def delete(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("DELETE FROM feed_cache WHERE key = :key"), {"key": key})
