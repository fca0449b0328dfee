"""Durable log sink for import runs."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from feedsync.utils.dates import format_date, now_in_tz

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

_configured = False


def log_path(directory: Path | None = None) -> Path:
    directory = directory or Path(os.environ.get("LOG_DIR", "logs"))
    return directory / f"feedsync_{format_date(now_in_tz())}.log"


def configure_logging(directory: Path | None = None, *, level: int | None = None) -> Path:
    """Send feedsync logs to stderr and to a daily file. Safe to call twice."""
    global _configured
    path = log_path(directory)
    if _configured:
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    if level is None:
        level = logging.DEBUG if os.environ.get("DEBUG") else logging.INFO
    formatter = logging.Formatter(LOG_FORMAT)
    root = logging.getLogger("feedsync")
    root.setLevel(level)
    for handler in (logging.StreamHandler(), logging.FileHandler(path, encoding="utf-8")):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    _configured = True
    return path
