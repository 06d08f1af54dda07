# src/drive_inventory/core/scheduler.py
"""
Crawl scheduler: the resumable batch loop.

One call to :meth:`CrawlScheduler.run` is one invocation. It loads the
checkpoint (or starts a fresh run), then repeatedly:

1. requests a page of up to ``batch_size`` listings at the stored cursor
2. fetches metadata and sharing, builds, filters, classifies and aggregates
3. saves the checkpoint with the next cursor
4. completes, pauses, or continues with the next page

A run is decomposed into many short invocations. A process killed mid-batch
resumes from the last saved checkpoint, so no file is counted twice.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Tuple

import psutil

from drive_inventory.core.aggregator import Aggregator
from drive_inventory.core.checkpoint import CheckpointStore
from drive_inventory.core.classifier import FileClassifier
from drive_inventory.core.config import Config
from drive_inventory.core.exceptions import (
    CheckpointError,
    ClassificationError,
    ConfigurationError,
    InventoryLockedError,
    RemoteError,
)
from drive_inventory.core.models import (
    AggregateState,
    CheckpointRecord,
    ErrorKind,
    InventoryStatus,
    ReportModel,
    RunStatus,
)
from drive_inventory.core.records import InclusionFilter, RecordBuilder
from drive_inventory.core.remote import FileHandle, ListPage, RemoteFileClient
from drive_inventory.utils.date_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class PauseReason(str, Enum):
    """Why an invocation stopped before the listing was exhausted."""
    TIME_BUDGET = "time_budget"
    MEMORY_BUDGET = "memory_budget"
    STOP_REQUESTED = "stop_requested"
    LISTING_FAILED = "listing_failed"


@dataclass
class RunOutcome:
    """Result of one scheduler invocation."""
    status: RunStatus
    files_processed: int = 0
    files_skipped: int = 0
    batches: int = 0
    total_files: int = 0
    cursor: Optional[str] = None
    pause_reason: Optional[PauseReason] = None
    continuation_scheduled: bool = False
    error: Optional[str] = None
    state: Optional[AggregateState] = None
    report: Optional[ReportModel] = None
    duration_seconds: float = 0.0


@dataclass
class _Progress:
    started: datetime
    files: int = 0
    skipped: int = 0
    batches: int = 0
    peak_memory_mb: float = 0.0


def process_memory_mb() -> float:
    """Resident set size of this process in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


class CrawlScheduler:
    """
    Drives an inventory run across any number of invocations.

    Collaborators are injected so the host environment stays outside the
    engine: ``schedule_continuation(delay)`` asks the host to invoke
    :meth:`run` again later, ``report_sink(report)`` renders a completed run,
    and ``clock``/``sleep`` make timing testable. ``client`` may be None for
    the operator controls, which only touch the checkpoint store.
    """

    def __init__(
        self,
        config: Config,
        client: Optional[RemoteFileClient],
        store: CheckpointStore,
        schedule_continuation: Optional[Callable[[float], None]] = None,
        report_sink: Optional[Callable[[ReportModel], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        stop_event: Optional[threading.Event] = None,
        memory_probe: Optional[Callable[[], float]] = None
    ):
        self.config = config
        self.crawl = config.crawl
        self.client = client
        self.store = store
        self.aggregator = Aggregator(config.analysis)
        self.inclusion = InclusionFilter(config.crawl, config.analysis.large_file_threshold_bytes)

        self._schedule_continuation = schedule_continuation
        self._report_sink = report_sink
        self._clock = clock or utc_now
        self._sleep = sleep or time.sleep
        self._stop_event = stop_event or threading.Event()
        self._memory_probe = memory_probe or process_memory_mb

    # Operator controls

    def request_stop(self) -> None:
        """Ask the running invocation to pause at the next batch boundary."""
        logger.info("Stop requested; pausing at the next batch boundary")
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def status(self) -> InventoryStatus:
        """Current checkpoint status; NOT_STARTED when no checkpoint exists."""
        record = self.store.load()
        if record is None:
            return InventoryStatus(inventory_name=self.config.inventory_name, status=RunStatus.NOT_STARTED)
        return InventoryStatus(
            inventory_name=self.config.inventory_name,
            status=record.status,
            batch_count=record.batch_count,
            files_processed=record.state.total_files,
            total_bytes=record.state.total_bytes,
            errors=record.state.errors,
            has_cursor=record.cursor is not None,
            started_at=record.started_at,
            updated_at=record.updated_at,
            last_error=record.last_error,
        )

    def reset(self) -> None:
        """Discard the checkpoint; the next run starts from the beginning."""
        self.store.clear()
        logger.info(f"Inventory '{self.config.inventory_name}' reset")

    def partial_report(self) -> Optional[ReportModel]:
        """Finalize whatever the checkpoint holds, at any status."""
        record = self.store.load()
        if record is None:
            return None
        return self._finalize(record, record.status)

    # Run

    def run(self, force: bool = False) -> RunOutcome:
        """
        Execute one invocation.

        Args:
            force: Take over a RUNNING checkpoint even if it looks live

        Returns:
            RunOutcome with status PAUSED, COMPLETE or ERROR

        Raises:
            ConfigurationError: No remote client was given
            InventoryLockedError: Another invocation holds the checkpoint, or
                the stored run ended in ERROR and ``force`` is not set
        """
        if self.client is None:
            raise ConfigurationError("A remote client is required to run an inventory")

        progress = _Progress(started=self._clock())

        try:
            record = self.store.load()
        except CheckpointError as e:
            logger.error(f"Cannot load checkpoint: {e}")
            return self._finish(RunOutcome(status=RunStatus.ERROR, error=str(e)), progress)

        if record is None:
            record = CheckpointRecord(
                started_at=progress.started,
                updated_at=progress.started,
                status=RunStatus.RUNNING,
            )
            logger.info(f"Starting inventory '{self.config.inventory_name}'")
        else:
            if record.status == RunStatus.RUNNING and not force and self._is_live(record, progress.started):
                raise InventoryLockedError(
                    f"Inventory '{self.config.inventory_name}' is held by a running invocation "
                    f"(last checkpoint {record.updated_at.isoformat()})"
                )
            if record.status == RunStatus.ERROR and not force:
                raise InventoryLockedError(
                    f"Inventory '{self.config.inventory_name}' stopped with an error: {record.last_error}. "
                    f"Reset it, or force a run to resume from the last saved checkpoint"
                )
            logger.info(
                f"Resuming inventory '{self.config.inventory_name}' ({record.status.value}) "
                f"after {record.batch_count} batches, {record.state.total_files} files"
            )

        try:
            if record.status == RunStatus.COMPLETE:
                return self._complete(record, progress)

            record.status = RunStatus.RUNNING
            record.last_error = None
            self._save(record)
            return self._run_batches(record, progress)
        except (CheckpointError, ClassificationError) as e:
            return self._fail(record, progress, e)
        except Exception as e:
            logger.exception(f"Inventory run failed: {e}")
            return self._fail(record, progress, e)

    def _is_live(self, record: CheckpointRecord, now: datetime) -> bool:
        age = (ensure_utc(now) - ensure_utc(record.updated_at)).total_seconds()
        return age < self.crawl.lock_timeout_seconds

    def _run_batches(self, record: CheckpointRecord, progress: _Progress) -> RunOutcome:
        classifier = FileClassifier(as_of=record.started_at)
        builder = RecordBuilder(self.client, self.crawl)

        while True:
            if self._stop_event.is_set():
                return self._pause(record, progress, PauseReason.STOP_REQUESTED)

            page, listing_error = self._list_page(record.cursor)
            if page is None:
                return self._pause(record, progress, PauseReason.LISTING_FAILED, listing_error)

            self._process_page(record, page, classifier, builder, progress)

            exhausted = (
                not page.items
                or len(page.items) < self.crawl.batch_size
                or not page.has_more
                or page.next_cursor is None
            )
            record.batch_count += 1
            record.page_offset = 0
            record.cursor = None if exhausted else page.next_cursor
            record.status = RunStatus.COMPLETE if exhausted else RunStatus.RUNNING
            progress.batches += 1
            size = self._save(record)

            memory_mb = self._memory_probe()
            progress.peak_memory_mb = max(progress.peak_memory_mb, memory_mb)
            logger.info(
                f"Batch {record.batch_count}: {len(page.items)} listings, "
                f"{record.state.total_files} files total, checkpoint {size} bytes, "
                f"memory {memory_mb:.0f} MB"
            )

            # A finished listing has no cursor to resume from, so it wins over the budgets
            if exhausted:
                return self._complete(record, progress)

            elapsed = (self._clock() - progress.started).total_seconds()
            if elapsed > self.crawl.max_runtime_seconds:
                return self._pause(record, progress, PauseReason.TIME_BUDGET)

            limit = self.crawl.memory_limit_mb
            if limit is not None and memory_mb > limit:
                logger.warning(f"Memory usage {memory_mb:.0f} MB exceeds limit {limit:.0f} MB")
                return self._pause(record, progress, PauseReason.MEMORY_BUDGET)

            if self.crawl.inter_batch_delay_seconds > 0:
                self._sleep(self.crawl.inter_batch_delay_seconds)

    def _list_page(self, cursor: Optional[str]) -> Tuple[Optional[ListPage], Optional[str]]:
        """Request one page, retrying with exponential backoff."""
        attempts = self.crawl.max_listing_retries + 1
        last_error = None
        for attempt in range(attempts):
            try:
                return self.client.list_files(cursor, self.crawl.batch_size), None
            except RemoteError as e:
                last_error = f"Listing failed: {e}"
                if attempt + 1 < attempts:
                    delay = self.crawl.retry_backoff_seconds * (2 ** attempt)
                    logger.warning(
                        f"{last_error} (attempt {attempt + 1}/{attempts}), retrying in {delay:.1f}s"
                    )
                    self._sleep(delay)
        logger.error(f"{last_error}; giving up after {attempts} attempts")
        return None, last_error

    def _process_page(
        self,
        record: CheckpointRecord,
        page: ListPage,
        classifier: FileClassifier,
        builder: RecordBuilder,
        progress: _Progress
    ) -> None:
        start = record.page_offset
        if start > len(page.items):
            logger.warning(
                f"Checkpoint offset {start} is past the end of a {len(page.items)} item page; "
                f"listing order may have changed"
            )
        elif start:
            logger.info(f"Skipping {start} listings already processed in this batch")

        interval = self.crawl.save_interval
        for index in range(start, len(page.items)):
            self._process_listing(record.state, page.items[index], classifier, builder, progress)
            record.listings_seen += 1

            done = index + 1
            if interval and done % interval == 0 and done < len(page.items):
                record.page_offset = done
                self._save(record)

    def _process_listing(
        self,
        state: AggregateState,
        handle: FileHandle,
        classifier: FileClassifier,
        builder: RecordBuilder,
        progress: _Progress
    ) -> None:
        try:
            metadata = self.client.get_metadata(handle)
        except Exception as e:
            logger.warning(f"Metadata fetch failed for {handle.file_id}: {e}")
            self.aggregator.record_error(state, ErrorKind.METADATA)
            return

        if not self.inclusion.prefilter(metadata):
            progress.skipped += 1
            return

        sharing = None
        if self.crawl.track_permissions:
            try:
                sharing = self.client.get_sharing(handle)
            except Exception as e:
                logger.debug(f"Sharing fetch failed for {handle.file_id}, treating as private: {e}")
                self.aggregator.record_error(state, ErrorKind.SHARING)

        try:
            file_record = builder.build(metadata, sharing)
        except Exception as e:
            logger.warning(f"Could not build record for {handle.file_id}: {e}")
            self.aggregator.record_error(state, ErrorKind.PROCESSING)
            return

        if not self.inclusion.includes(file_record):
            progress.skipped += 1
            return

        try:
            classification = classifier.classify(file_record)
        except Exception as e:
            raise ClassificationError(f"Classifier failed for {file_record.file_id}: {e}") from e

        self.aggregator.update(state, classification, file_record)
        progress.files += 1

    # Transitions

    def _save(self, record: CheckpointRecord) -> int:
        record.updated_at = self._clock()
        return self.store.save(record)

    def _finalize(self, record: CheckpointRecord, status: RunStatus) -> ReportModel:
        return self.aggregator.finalize(
            record.state,
            inventory_name=self.config.inventory_name,
            status=status,
            started_at=record.started_at,
            batch_count=record.batch_count,
            generated_at=self._clock(),
        )

    def _pause(
        self,
        record: CheckpointRecord,
        progress: _Progress,
        reason: PauseReason,
        error: Optional[str] = None
    ) -> RunOutcome:
        record.status = RunStatus.PAUSED
        record.last_error = error
        try:
            self._save(record)
        except CheckpointError as e:
            return self._fail(record, progress, e)

        if reason == PauseReason.STOP_REQUESTED:
            self._stop_event.clear()

        scheduled = False
        if reason != PauseReason.STOP_REQUESTED and self._schedule_continuation is not None:
            self._schedule_continuation(self.crawl.continuation_delay_seconds)
            scheduled = True

        logger.info(
            f"Inventory paused ({reason.value}) after {record.state.total_files} files; "
            f"continuation {'scheduled' if scheduled else 'not scheduled'}"
        )
        return self._finish(RunOutcome(
            status=RunStatus.PAUSED,
            total_files=record.state.total_files,
            cursor=record.cursor,
            pause_reason=reason,
            continuation_scheduled=scheduled,
            error=error,
            state=record.state,
        ), progress)

    def _complete(self, record: CheckpointRecord, progress: _Progress) -> RunOutcome:
        report = self._finalize(record, RunStatus.COMPLETE)

        if self._report_sink is not None:
            try:
                self._report_sink(report)
            except Exception as e:
                # Checkpoint stays COMPLETE so the report can be rendered again
                logger.exception(f"Report rendering failed: {e}")
                return self._finish(RunOutcome(
                    status=RunStatus.ERROR,
                    total_files=record.state.total_files,
                    error=f"Report rendering failed: {e}",
                    state=record.state,
                    report=report,
                ), progress)

        self.store.clear()
        logger.info(
            f"Inventory complete: {record.state.total_files} files in {record.batch_count} batches, "
            f"{record.state.errors} errors"
        )
        return self._finish(RunOutcome(
            status=RunStatus.COMPLETE,
            total_files=record.state.total_files,
            state=record.state,
            report=report,
        ), progress)

    def _fail(self, record: CheckpointRecord, progress: _Progress, error: Exception) -> RunOutcome:
        logger.error(f"Inventory '{self.config.inventory_name}' failed; last saved checkpoint kept: {error}")
        try:
            if not self.store.mark_error(str(error)):
                logger.warning("No saved checkpoint to flag as ERROR")
        except CheckpointError as e:
            logger.error(f"Could not flag checkpoint as ERROR: {e}")
        record.status = RunStatus.ERROR
        record.last_error = str(error)
        return self._finish(RunOutcome(
            status=RunStatus.ERROR,
            total_files=record.state.total_files,
            cursor=record.cursor,
            error=str(error),
            state=record.state,
        ), progress)

    def _finish(self, outcome: RunOutcome, progress: _Progress) -> RunOutcome:
        outcome.files_processed = progress.files
        outcome.files_skipped = progress.skipped
        outcome.batches = progress.batches
        outcome.duration_seconds = (self._clock() - progress.started).total_seconds()
        logger.debug(
            f"Invocation finished in {outcome.duration_seconds:.1f}s: {progress.files} files, "
            f"{progress.skipped} skipped, peak memory {progress.peak_memory_mb:.0f} MB"
        )
        try:
            self.store.record_run(
                outcome.status,
                outcome.files_processed,
                outcome.batches,
                outcome.duration_seconds,
                outcome.error,
            )
        except Exception as e:
            logger.warning(f"Could not record run history: {e}")
        return outcome
