"""Celery configuration for scheduled imports."""

from __future__ import annotations

import os

from celery import Celery

from feedsync.settings import EXTERNAL, TIERED, TIMER
from feedsync.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

TIMER_SECONDS = float(os.environ.get("IMPORT_TIMER_SECONDS", 350))
TIERED_SECONDS = float(os.environ.get("IMPORT_TIERED_SECONDS", 30 * 60))


def beat_schedule(mode: str) -> dict[str, dict[str, object]]:
    """Periodic tasks for a cron mode. External mode is driven by ``/cron`` only."""
    if mode == TIMER:
        return {
            "feedsync-import": {
                "task": "feedsync.jobs.imports.run_imports",
                "schedule": TIMER_SECONDS,
            },
        }
    if mode == TIERED:
        return {
            "feedsync-tiered-import": {
                "task": "feedsync.jobs.imports.start_tiered",
                "schedule": TIERED_SECONDS,
            },
        }
    if mode == EXTERNAL:
        return {}
    raise ValueError(f"Unknown cron mode {mode!r}")


celery_app = Celery("feedsync", broker=broker_url, backend=backend_url)
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = beat_schedule(os.environ.get("CRON_MODE", TIMER))


@celery_app.task(name="feedsync.jobs.imports.run_imports")
def run_imports_task():  # pragma: no cover - executed by worker
    import asyncio

    from feedsync.db.session import create_engine_from_env
    from feedsync.jobs.imports import build_trigger
    from feedsync.utils.logs import configure_logging

    configure_logging()
    engine = create_engine_from_env()
    results = asyncio.run(build_trigger(engine).on_timer_fire())
    return [result.as_dict() for result in results]


@celery_app.task(name="feedsync.jobs.imports.start_tiered")
def start_tiered_task():  # pragma: no cover - executed by worker
    import asyncio

    from feedsync.jobs.imports import start_tiered
    from feedsync.utils.logs import configure_logging

    configure_logging()
    return asyncio.run(start_tiered())


@celery_app.task(name="feedsync.jobs.imports.run_batch")
def run_batch_task(source: str, job_id: int):  # pragma: no cover - executed by worker
    import asyncio

    from feedsync.jobs.imports import run_batch
    from feedsync.utils.logs import configure_logging

    configure_logging()
    return asyncio.run(run_batch(source, job_id))


@celery_app.task(name="feedsync.jobs.imports.run_record")
def run_record_task(source: str, job_id: int):  # pragma: no cover - executed by worker
    import asyncio

    from feedsync.jobs.imports import run_record
    from feedsync.utils.logs import configure_logging

    configure_logging()
    return asyncio.run(run_record(source, job_id))
