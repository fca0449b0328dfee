import pytest
from sqlalchemy import text

from feedsync.db.catalog import DRAFT
from feedsync.db.jobs import CANCELLED, COMPLETE, PENDING, RECORD, JobStore
from feedsync.ingest.cache import FeedCache, url_cache_key

from conftest import Clock


def test_records_are_scoped_by_source(eikon_store, gvamax_store):
    product_id = eikon_store.create_record({"sku": "X1", "name": "Taladro", "price": 10.5, "stock": 2})
    listing_id = gvamax_store.create_record({"sku": "X1", "name": "Casa"})

    assert product_id != listing_id
    assert eikon_store.find_by_sku("X1") == product_id
    assert gvamax_store.find_by_sku("X1") == listing_id
    assert eikon_store.get_record(listing_id) is None
    assert eikon_store.sku_index() == {product_id: "X1"}


def test_record_validation(eikon_store):
    with pytest.raises(ValueError):
        eikon_store.create_record({"name": "sin sku"})
    product_id = eikon_store.create_record({"sku": "X2"})
    with pytest.raises(ValueError):
        eikon_store.update_record(product_id, {"colour": "red"})
    with pytest.raises(ValueError):
        eikon_store.set_status(product_id, "trash")

    eikon_store.set_status(product_id, DRAFT)
    assert eikon_store.list_ids(status=DRAFT) == [product_id]


def test_fields_upsert(eikon_store):
    product_id = eikon_store.create_record({"sku": "X3"})
    eikon_store.set_fields(product_id, {"a": 1, "b": None})
    eikon_store.set_field(product_id, "a", 2)

    assert eikon_store.get_fields(product_id) == {"a": "2", "b": None}
    assert eikon_store.get_field(product_id, "missing") is None


def test_media_positions_continue(eikon_store):
    product_id = eikon_store.create_record({"sku": "X4"})
    eikon_store.attach_media(product_id, ["g1", "g2"])
    eikon_store.attach_media(product_id, ["main"], role="image")
    eikon_store.attach_media(product_id, ["g3"])

    media = eikon_store.list_media(product_id)
    assert [(item.role, item.position, item.url) for item in media] == [
        ("image", 0, "main"),
        ("gallery", 0, "g1"),
        ("gallery", 1, "g2"),
        ("gallery", 2, "g3"),
    ]
    eikon_store.delete_media([item.id for item in media[1:]])
    assert [item.url for item in eikon_store.list_media(product_id)] == ["main"]


def test_terms_replace_and_descendants(eikon_store):
    product_id = eikon_store.create_record({"sku": "X5"})
    root = eikon_store.create_term("Tipo")
    casa = eikon_store.create_term("Casa", root)
    chalet = eikon_store.create_term("Chalet", casa)

    eikon_store.set_terms(product_id, [casa, chalet, casa, None])
    assert eikon_store.term_ids(product_id) == [casa, chalet]
    eikon_store.set_terms(product_id, [chalet])
    assert eikon_store.term_ids(product_id) == [chalet]

    assert eikon_store.term_children(root) == [casa, chalet]
    assert eikon_store.find_term("Casa", root) == casa
    assert eikon_store.find_term("Casa") is None


def test_options_get_int(options):
    assert options.get_int("missing", 7) == 7
    options.set("cursor", 12)
    assert options.get_int("cursor") == 12
    options.set("cursor", "garbage")
    assert options.get_int("cursor", 3) == 3
    options.delete("cursor")
    assert options.get("cursor") is None


def test_job_store(engine):
    jobs = JobStore(engine, "gvamax")
    first = jobs.add(1, RECORD, {"record": {"sku": "1001"}})
    second = jobs.add(1, RECORD, {"record": {"sku": "1002"}})
    jobs.add(1, RECORD, {"record": {"sku": "1003"}})

    jobs.finish(first)
    jobs.finish(second, CANCELLED)
    with pytest.raises(ValueError):
        jobs.finish(second, PENDING)

    assert jobs.pending_count(1) == 1
    assert jobs.count(COMPLETE) == 1
    assert jobs.record_skus(1) == {"1001", "1002", "1003"}
    assert jobs.next_generation() == 2
    assert jobs.purge_terminal() == 2
    assert JobStore(engine, "eikon").pending_count() == 0


def test_feed_cache_expiry_and_corruption(engine):
    clock = Clock()
    cache = FeedCache(engine, clock=clock)
    cache.set("k", {"a": [1, 2]}, ttl=60)
    assert cache.get("k") == {"a": [1, 2]}

    clock.advance(61)
    assert cache.get("k") is None

    cache.set("k", [1], ttl=60)
    with engine.begin() as conn:
        conn.execute(text("UPDATE feed_cache SET value = '{broken' WHERE key = 'k'"))
    assert cache.get("k") is None


def test_url_cache_key_is_stable():
    key = url_cache_key("gvamax", "https://gvamax.com.ar/api/v1/zonas?cuenta=1")
    assert key.startswith("gvamax_")
    assert key == url_cache_key("gvamax", "https://gvamax.com.ar/api/v1/zonas?cuenta=1")
    assert key != url_cache_key("gvamax", "https://gvamax.com.ar/api/v1/zonas?cuenta=2")
