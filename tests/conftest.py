import json
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from feedsync.db.catalog import CatalogStore
from feedsync.db.migrate import run_migrations
from feedsync.db.options import OptionStore
from feedsync.ingest.models import RemoteRecord

FIXTURES = Path(__file__).parent / "fixtures" / "http"


def load_fixture(path: str) -> str:
    return (FIXTURES / path).read_text()


def load_json_fixture(path: str):
    return json.loads(load_fixture(path))


def make_engine():
    # one shared connection so TestClient threads see the same in-memory db
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    run_migrations(engine)
    return engine


class StaticFeed:
    """Feed stand-in returning a fixed record list (or None when unavailable)."""

    def __init__(self, records):
        self.records = records
        self.calls = 0

    async def fetch_all(self, limit=None):
        self.calls += 1
        if self.records is None:
            return None
        return list(self.records)[:limit]

    async def close(self):
        return None


class Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountdownBudget:
    """Budget that runs out after a fixed number of records."""

    def __init__(self, records: int):
        self.left = records

    def start(self):
        return None

    def elapsed(self):
        return 0.0

    def remaining(self):
        self.left -= 1
        return self.left > 0


def product(sku: str, **overrides) -> RemoteRecord:
    values = {
        "sku": sku,
        "name": f"Producto {sku}",
        "price": 100.0,
        "stock": 5,
        "wholesale_price": 80.0,
        "classification": {"brand": "Bosch", "category": "Herramientas", "subcategory": "Eléctricas"},
    }
    values.update(overrides)
    return RemoteRecord(**values)


def snapshot(engine) -> dict[str, list[tuple]]:
    tables = {
        "catalog_products": "SELECT id, source, sku, name, price, stock, status FROM catalog_products ORDER BY id",
        "catalog_fields": "SELECT product_id, key, value FROM catalog_fields ORDER BY product_id, key",
        "catalog_terms": "SELECT id, label, parent_id FROM catalog_terms ORDER BY id",
        "catalog_product_terms": "SELECT product_id, term_id FROM catalog_product_terms ORDER BY product_id, term_id",
        "catalog_media": "SELECT id, product_id, role, position, url FROM catalog_media ORDER BY id",
    }
    with engine.connect() as conn:
        return {name: [tuple(row) for row in conn.execute(text(query))] for name, query in tables.items()}


@pytest.fixture()
def engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture()
def options(engine):
    return OptionStore(engine)


@pytest.fixture()
def eikon_store(engine):
    return CatalogStore(engine, "eikon")


@pytest.fixture()
def gvamax_store(engine):
    return CatalogStore(engine, "gvamax")
