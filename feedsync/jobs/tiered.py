"""Tiered imports: one run job fans out into batch jobs, each batch into record jobs.

Every job is a row in ``import_jobs``. A new generation only starts once the
previous one has no pending jobs, and records missing from the feed are only
retired after a generation finished without a cancelled job.
"""

from __future__ import annotations

import logging
from typing import Callable

from feedsync.db.jobs import BATCH, CANCELLED, PENDING, RECORD, ImportJob, JobStore
from feedsync.ingest.models import RemoteRecord
from feedsync.logic.reconcile import CatalogReconciler

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50

Enqueue = Callable[[int], None]


class FeedUnavailable(RuntimeError):
    pass


class TieredImporter:
    def __init__(
        self,
        reconciler: CatalogReconciler,
        jobs: JobStore,
        *,
        enqueue_batch: Enqueue,
        enqueue_record: Enqueue,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.reconciler = reconciler
        self.jobs = jobs
        self.enqueue_batch = enqueue_batch
        self.enqueue_record = enqueue_record
        self.batch_size = batch_size

    @property
    def source(self) -> str:
        return self.jobs.source

    async def start(self) -> int | None:
        """Enqueue a new generation of batch jobs and return its number.

        Returns None when a previous generation is still pending or the feed
        has nothing to import.
        """
        pending = self.jobs.pending_count()
        if pending:
            logger.info("%s import still has %s pending jobs; not starting", self.source, pending)
            return None

        generation = self.jobs.next_generation()
        purged = self.jobs.purge_terminal()
        if purged:
            logger.debug("Deleted %s finished %s jobs", purged, self.source)

        records = await self.reconciler.feed.fetch_all()
        if not records:
            logger.warning("Stopped %s import: no records fetched", self.source)
            return None

        for offset in range(0, len(records), self.batch_size):
            job_id = self.jobs.add(generation, BATCH, {"offset": offset, "length": self.batch_size})
            self.enqueue_batch(job_id)
        logger.info(
            "Started %s generation %s: %s records in batches of %s",
            self.source,
            generation,
            len(records),
            self.batch_size,
        )
        return generation

    async def run_batch(self, job_id: int) -> int:
        """Enqueue one record job per record in the batch range."""
        job = self._job(job_id)
        if job.status != PENDING:
            logger.info("%s batch job %s already %s; nothing to do", self.source, job_id, job.status)
            return 0
        enqueued = 0
        try:
            records = await self.reconciler.feed.fetch_all()
            if records is None:
                raise FeedUnavailable(f"{self.source} feed unavailable for batch {job_id}")
            offset = job.payload["offset"]
            chunk = records[offset : offset + job.payload["length"]]
            for index, record in enumerate(chunk, start=offset):
                payload = {"batch": job_id, "index": index, "record": record.to_payload()}
                record_job = self.jobs.add(job.generation, RECORD, payload)
                self.enqueue_record(record_job)
                enqueued += 1
        except Exception:
            self.jobs.finish(job_id, CANCELLED)
            logger.exception("Cancelled %s batch job %s", self.source, job_id)
            raise
        self.jobs.finish(job_id)
        self.finalize(job.generation)
        return enqueued

    async def run_record(self, job_id: int) -> str | None:
        job = self._job(job_id)
        if job.status != PENDING:
            logger.info("%s record job %s already %s; nothing to do", self.source, job_id, job.status)
            return None
        try:
            await self.reconciler.profile.prepare()
            outcome = self.reconciler.import_record(RemoteRecord.from_payload(job.payload["record"]))
        except Exception:
            self.jobs.finish(job_id, CANCELLED)
            logger.exception("Cancelled %s record job %s", self.source, job_id)
            raise
        self.jobs.finish(job_id)
        self.finalize(job.generation)
        return outcome

    def finalize(self, generation: int) -> list[int] | None:
        """Retire missing records once ``generation`` has no pending jobs left."""
        if self.jobs.pending_count(generation):
            return None
        cancelled = self.jobs.count(CANCELLED, generation=generation)
        if cancelled:
            logger.warning(
                "%s generation %s had %s cancelled jobs; retirement skipped",
                self.source,
                generation,
                cancelled,
            )
            return None
        skus = self.jobs.record_skus(generation)
        if not skus:
            logger.warning("%s generation %s imported no records; retirement skipped", self.source, generation)
            return None
        retired = self.reconciler.retire(skus)
        logger.info("Finished %s generation %s; retired %s records", self.source, generation, len(retired))
        return retired

    def _job(self, job_id: int) -> ImportJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise LookupError(f"No {self.source} import job {job_id}")
        return job
