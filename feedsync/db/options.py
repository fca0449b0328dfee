"""Durable key/value options."""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text


class OptionStore:
    """String options kept in the ``options`` table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get(self, key: str, default: str | None = None) -> str | None:
        with self.engine.connect() as conn:
            value = conn.execute(
                text("SELECT value FROM options WHERE key = :key"), {"key": key}
            ).scalar_one_or_none()
        return default if value is None else value

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        if value in (None, ""):
            return default
        try:
            return int(float(value))
        except ValueError:
            return default

    def set(self, key: str, value: object) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO options (key, value)
                    VALUES (:key, :value)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                    """
                ),
                {"key": key, "value": None if value is None else str(value)},
            )

    def delete(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("DELETE FROM options WHERE key = :key"), {"key": key})
