"""Ingestion helpers."""

from __future__ import annotations

import pathlib

import yaml

from feedsync.ingest.models import FeedSource

SOURCES_PATH = pathlib.Path(__file__).with_name("sources.yml")


def load_sources(names: list[str] | None = None) -> list[FeedSource]:
    data = yaml.safe_load(SOURCES_PATH.read_text())
    sources = [FeedSource(**item) for item in data]
    if names:
        wanted = set(names)
        return [source for source in sources if source.name in wanted]
    return sources


def get_source(name: str) -> FeedSource:
    for source in load_sources():
        if source.name == name:
            return source
    raise KeyError(f"Unknown feed source: {name}")
