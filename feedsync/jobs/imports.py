"""Import job orchestration.

Builds the feed client, profile and reconciler for each configured source.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx
from dotenv import load_dotenv
from sqlalchemy.engine import Engine

from feedsync.db.catalog import CatalogStore
from feedsync.db.jobs import JobStore
from feedsync.db.options import OptionStore
from feedsync.db.session import create_engine_from_env
from feedsync.ingest import get_source, load_sources
from feedsync.ingest.cache import FeedCache
from feedsync.ingest.eikon import EikonClient
from feedsync.ingest.gvamax import GvamaxClient
from feedsync.ingest.models import EIKON, GVAMAX, FeedSource
from feedsync.jobs.tiered import TieredImporter
from feedsync.jobs.trigger import ImportTrigger
from feedsync.logic.budget import ExecutionBudget
from feedsync.logic.profiles import ListingProfile, ProductProfile
from feedsync.logic.reconcile import SUSPENDED, CatalogReconciler, RunResult, cursor_key
from feedsync.settings import load_credentials
from feedsync.utils.logs import configure_logging

logger = logging.getLogger(__name__)

BATCH_TASK = "feedsync.jobs.imports.run_batch"
RECORD_TASK = "feedsync.jobs.imports.run_record"


def build_reconciler(
    engine: Engine,
    source: FeedSource,
    *,
    session: httpx.AsyncClient | None = None,
    budget: ExecutionBudget | None = None,
) -> CatalogReconciler:
    options = OptionStore(engine)
    credentials = load_credentials(options, source.name)
    cache = FeedCache(engine)
    if source.kind == EIKON:
        feed = EikonClient(source, credentials, cache, session=session)
        profile = ProductProfile(source.name)
    elif source.kind == GVAMAX:
        feed = GvamaxClient(source, credentials, cache, session=session)
        profile = ListingProfile(feed, source=source.name)
    else:
        raise ValueError(f"Unknown feed kind {source.kind!r} for {source.name}")
    return CatalogReconciler(
        CatalogStore(engine, source.name),
        options,
        feed,
        profile,
        budget=budget,
        credentials=credentials,
    )


async def run_import(
    engine: Engine,
    source: FeedSource,
    *,
    limit: int | None = None,
    session: httpx.AsyncClient | None = None,
    budget: ExecutionBudget | None = None,
) -> RunResult:
    reconciler = build_reconciler(engine, source, session=session, budget=budget)
    try:
        return await reconciler.run(limit)
    finally:
        if session is None:
            await reconciler.feed.close()


async def run_imports(
    names: list[str] | None = None,
    *,
    engine: Engine | None = None,
    limit: int | None = None,
    budget: ExecutionBudget | None = None,
) -> list[RunResult]:
    """Import each source in turn within one shared execution budget.

    Sources reached after the budget is spent are left for the next run.
    """
    load_dotenv()
    engine = engine or create_engine_from_env()
    if budget is None:
        budget = ExecutionBudget()
        budget.start()
    options = OptionStore(engine)
    results = []
    for source in load_sources(names):
        if not budget.remaining():
            logger.info("Deferred import of %s: run budget spent after %.0fs", source.name, budget.elapsed())
            results.append(
                RunResult(source.name, SUSPENDED, cursor=options.get_int(cursor_key(source.name), 0))
            )
            continue
        results.append(await run_import(engine, source, limit=limit, budget=budget))
    return results


def build_trigger(engine: Engine) -> ImportTrigger:
    return ImportTrigger(OptionStore(engine), lambda: run_imports(engine=engine))


def _send_task(name: str, source: str) -> Callable[[int], None]:
    def enqueue(job_id: int) -> None:
        from feedsync.jobs.celery_app import celery_app

        celery_app.send_task(name, args=[source, job_id])

    return enqueue


def build_tiered(
    engine: Engine,
    source: FeedSource,
    *,
    session: httpx.AsyncClient | None = None,
    enqueue_batch: Callable[[int], None] | None = None,
    enqueue_record: Callable[[int], None] | None = None,
) -> TieredImporter:
    return TieredImporter(
        build_reconciler(engine, source, session=session),
        JobStore(engine, source.name),
        enqueue_batch=enqueue_batch or _send_task(BATCH_TASK, source.name),
        enqueue_record=enqueue_record or _send_task(RECORD_TASK, source.name),
        batch_size=source.batch_size,
    )


async def start_tiered(names: list[str] | None = None, *, engine: Engine | None = None) -> dict[str, int | None]:
    load_dotenv()
    engine = engine or create_engine_from_env()
    generations = {}
    for source in load_sources(names):
        importer = build_tiered(engine, source)
        try:
            generations[source.name] = await importer.start()
        finally:
            await importer.reconciler.feed.close()
    return generations


async def run_batch(source_name: str, job_id: int, *, engine: Engine | None = None) -> int:
    load_dotenv()
    importer = build_tiered(engine or create_engine_from_env(), get_source(source_name))
    try:
        return await importer.run_batch(job_id)
    finally:
        await importer.reconciler.feed.close()


async def run_record(source_name: str, job_id: int, *, engine: Engine | None = None) -> str | None:
    load_dotenv()
    importer = build_tiered(engine or create_engine_from_env(), get_source(source_name))
    try:
        return await importer.run_record(job_id)
    finally:
        await importer.reconciler.feed.close()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(run_imports())
