"""Reconcile a remote feed into the local catalog.

A run fetches the full remote record set, walks it from the persisted cursor
in remote order and creates, updates or skips each record. After a full pass
every published local record missing from the feed is retired to draft.

The run is resumable: the cursor and a heartbeat are written after every
record, and when the execution budget runs out the run stops and the next one
picks up where this one left off. A status flag keeps two runs of the same
source from overlapping; a flag whose heartbeat is older than the execution
ceiling belongs to a crashed run and is cleared.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError

from feedsync.db.catalog import DRAFT, PUBLISHED, CatalogStore
from feedsync.db.options import OptionStore
from feedsync.ingest.models import RemoteRecord
from feedsync.logic.budget import MAX_EXECUTION_SECONDS, ExecutionBudget
from feedsync.logic.profiles import TIMESTAMP, TrackedField
from feedsync.logic.taxonomy import TaxonomyResolver
from feedsync.settings import SourceCredentials
from feedsync.utils.dates import format_timestamp, now_in_tz, parse_timestamp

logger = logging.getLogger(__name__)

LAST_SYNCED_FIELD = "_last_synced_at"

IDLE = "idle"
IMPORTING = "importing"

# record outcomes
CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED = "skipped"
FAILED = "failed"

# run statuses
COMPLETED = "completed"
SUSPENDED = "suspended"
ABORTED = "aborted"


class Feed(Protocol):
    async def fetch_all(self, limit: int | None = None) -> list[RemoteRecord] | None: ...


def cursor_key(source: str) -> str:
    return f"{source}:cursor"


def status_key(source: str) -> str:
    return f"{source}:status"


def heartbeat_key(source: str) -> str:
    return f"{source}:status_updated"


def read_progress(options: OptionStore, source: str) -> dict[str, Any]:
    """Cursor, status flag and heartbeat of ``source``."""
    return {
        "cursor": options.get_int(cursor_key(source), 0),
        "status": options.get(status_key(source), IDLE),
        "status_updated": options.get_int(heartbeat_key(source), 0) or None,
    }


@dataclass(slots=True)
class RunResult:
    source: str
    status: str
    total: int = 0
    start: int = 0
    cursor: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    retired: int = 0

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class CatalogReconciler:
    def __init__(
        self,
        store: CatalogStore,
        options: OptionStore,
        feed: Feed,
        profile,
        *,
        taxonomy: TaxonomyResolver | None = None,
        budget: ExecutionBudget | None = None,
        credentials: SourceCredentials | None = None,
        clock: Callable[[], float] = time.time,
        ceiling: float = MAX_EXECUTION_SECONDS,
    ) -> None:
        self.store = store
        self.options = options
        self.feed = feed
        self.profile = profile
        self.taxonomy = taxonomy or TaxonomyResolver(store)
        # a budget passed in is shared across sources and started by the caller
        self.owns_budget = budget is None
        self.budget = budget or ExecutionBudget(ceiling, clock=clock)
        self.credentials = credentials
        self.clock = clock
        self.ceiling = ceiling

    @property
    def source(self) -> str:
        return self.store.source

    # state

    def cursor(self) -> int:
        return self.options.get_int(cursor_key(self.source), 0)

    def is_importing(self) -> bool:
        """True while another run of this source holds a live status flag."""
        if self.options.get(status_key(self.source), IDLE) != IMPORTING:
            return False
        heartbeat = self.options.get_int(heartbeat_key(self.source), 0)
        if self.clock() - heartbeat >= self.ceiling:
            logger.warning(
                "Import of %s was flagged running for over %ss; clearing stale flag",
                self.source,
                self.ceiling,
            )
            self._set_status(IDLE)
            return False
        return True

    def _set_status(self, status: str) -> None:
        self.options.set(status_key(self.source), status)
        self.options.set(heartbeat_key(self.source), int(self.clock()))

    def _save_cursor(self, value: int) -> None:
        self.options.set(cursor_key(self.source), value)
        self.options.set(heartbeat_key(self.source), int(self.clock()))

    # runs

    async def run(self, limit: int | None = None) -> RunResult:
        if self.is_importing():
            logger.info("Import of %s already running; skipping", self.source)
            return RunResult(self.source, SKIPPED, cursor=self.cursor())
        if self.credentials is not None and not self.credentials.complete:
            logger.warning("Stopped import of %s: credentials not configured", self.source)
            return RunResult(self.source, ABORTED, cursor=self.cursor())

        if self.owns_budget:
            self.budget.start()
        self._set_status(IMPORTING)
        try:
            return await self._run(limit)
        finally:
            self._set_status(IDLE)

    async def _run(self, limit: int | None) -> RunResult:
        records = await self.feed.fetch_all(limit)
        if not records:
            logger.warning("Stopped import of %s: no records fetched", self.source)
            return RunResult(self.source, ABORTED, cursor=self.cursor())

        await self.profile.prepare()
        self.taxonomy.reset()

        start = min(self.cursor(), len(records))
        result = RunResult(self.source, COMPLETED, total=len(records), start=start, cursor=start)
        logger.info("Importing %s from %s/%s", self.source, start, len(records))

        for index in range(start, len(records)):
            result.count(self.import_guarded(records[index]))
            result.cursor = index + 1
            self._save_cursor(result.cursor)
            if not self.budget.remaining():
                logger.info(
                    "Suspended import of %s at %s/%s after %.0fs",
                    self.source,
                    result.cursor,
                    len(records),
                    self.budget.elapsed(),
                )
                result.status = SUSPENDED
                return result

        if limit is None:
            result.retired = len(self.retire({record.sku for record in records}))
        else:
            logger.info("Limited import of %s; retirement skipped", self.source)
        self._save_cursor(0)
        result.cursor = 0
        logger.info(
            "Finished import of %s: %s created, %s updated, %s unchanged, %s skipped, %s failed, %s retired",
            self.source,
            result.created,
            result.updated,
            result.unchanged,
            result.skipped,
            result.failed,
            result.retired,
        )
        return result

    def import_guarded(self, record: RemoteRecord) -> str:
        try:
            return self.import_record(record)
        except SQLAlchemyError:
            logger.exception("Failed to import %s record %s", self.source, record.sku)
            return FAILED

    # records

    def import_record(self, record: RemoteRecord) -> str:
        product_id = self.store.find_by_sku(record.sku)
        if product_id is None:
            self._create(record)
            logger.debug("Created %s record %s", self.source, record.sku)
            return CREATED

        current = self.store.get_record(product_id)
        if self.profile.staleness == TIMESTAMP and record.last_modified:
            return self._update_if_newer(product_id, current, record)
        return self._update_changed_fields(product_id, current, record)

    def _create(self, record: RemoteRecord) -> int:
        fields = dict(self.profile.record_fields(record))
        fields.update(sku=record.sku, status=PUBLISHED)
        product_id = self.store.create_record(fields)
        self._write_details(product_id, record)
        self._attach_media(product_id, record)
        self._mark_synced(product_id)
        return product_id

    def _update_if_newer(self, product_id: int, current: dict[str, Any], record: RemoteRecord) -> str:
        try:
            modified = parse_timestamp(record.last_modified)
        except ValueError:
            logger.warning(
                "Skipped %s record %s: bad last-modified date %r",
                self.source,
                record.sku,
                record.last_modified,
            )
            return SKIPPED

        synced = self._last_synced(product_id)
        if synced is not None and modified <= synced:
            if current["status"] == DRAFT:
                self.store.set_status(product_id, PUBLISHED)
                logger.info("Republished %s record %s", self.source, record.sku)
                return UPDATED
            return UNCHANGED

        fields = dict(self.profile.record_fields(record))
        if current["status"] == DRAFT:
            fields["status"] = PUBLISHED
        self.store.update_record(product_id, fields)
        self._write_details(product_id, record)
        self.store.delete_media([item.id for item in self.store.list_media(product_id)])
        self._attach_media(product_id, record)
        self._mark_synced(product_id)
        logger.debug("Updated %s record %s", self.source, record.sku)
        return UPDATED

    def _update_changed_fields(self, product_id: int, current: dict[str, Any], record: RemoteRecord) -> str:
        columns: dict[str, Any] = {}
        fields: dict[str, Any] = {}
        for tracked in self.profile.tracked:
            new = tracked.coerce(tracked.read(record))
            old = self._stored_value(product_id, current, tracked)
            if old == new:
                continue
            logger.debug(
                "-- Updating %s of %s from [ %s ] to [ %s ]", tracked.name, record.sku, old, new
            )
            if tracked.column:
                columns[tracked.column] = new
            else:
                fields[tracked.key] = new
        if current["status"] == DRAFT:
            columns["status"] = PUBLISHED

        if not columns and not fields:
            return UNCHANGED
        if columns:
            self.store.update_record(product_id, columns)
        if fields:
            self.store.set_fields(product_id, fields)
        self._mark_synced(product_id)
        return UPDATED

    def _stored_value(self, product_id: int, current: dict[str, Any], tracked: TrackedField) -> Any:
        raw = current.get(tracked.column) if tracked.column else self.store.get_field(product_id, tracked.key)
        try:
            return tracked.coerce(raw)
        except (TypeError, ValueError):
            return None

    def _write_details(self, product_id: int, record: RemoteRecord) -> None:
        extra = {key: value for key, value in self.profile.extra_fields(record).items() if value is not None}
        self.store.set_fields(product_id, extra)
        paths = self.profile.category_paths(record)
        self.store.set_terms(product_id, self.taxonomy.resolve_paths(paths))

    def _attach_media(self, product_id: int, record: RemoteRecord) -> None:
        image, gallery = self.profile.media(record)
        if image:
            self.store.attach_media(product_id, [image], role="image")
        if gallery:
            self.store.attach_media(product_id, gallery, role="gallery")

    def _mark_synced(self, product_id: int) -> None:
        self.store.set_field(product_id, LAST_SYNCED_FIELD, format_timestamp(now_in_tz()))

    def _last_synced(self, product_id: int):
        value = self.store.get_field(product_id, LAST_SYNCED_FIELD)
        if not value:
            return None
        try:
            return parse_timestamp(value)
        except ValueError:
            return None

    # retirement

    def retire(self, remote_skus: set[str]) -> list[int]:
        """Move published records missing from ``remote_skus`` to draft."""
        retired = []
        for product_id, sku in self.store.sku_index(status=PUBLISHED).items():
            if sku in remote_skus:
                continue
            self.store.set_status(product_id, DRAFT)
            logger.info("Retired %s record %s", self.source, sku)
            retired.append(product_id)
        return retired
