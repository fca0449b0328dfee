"""Datetime helpers."""

from __future__ import annotations

import os

import pendulum
from pendulum.parsing.exceptions import ParserError

DEFAULT_TZ = "America/Argentina/Buenos_Aires"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def parse_timestamp(value: str) -> pendulum.DateTime:
    """Parse a remote timestamp, assuming the local timezone when it has none.

    Raises ``ValueError`` when the value is not a recognizable date.
    """
    try:
        parsed = pendulum.parse(value, tz=timezone_name())
    except (ParserError, ValueError) as exc:
        raise ValueError(f"Unparseable timestamp: {value!r}") from exc
    if not isinstance(parsed, pendulum.DateTime):
        raise ValueError(f"Not a point in time: {value!r}")
    return parsed


def format_timestamp(value: pendulum.DateTime) -> str:
    return value.to_iso8601_string()


def format_date(value) -> str:
    return value.strftime("%Y%m%d")
