"""Refresh runner: the trigger surface used by the HTTP app and the CLI.

The runner owns the engine and configuration for the process and makes sure
at most one refresh is in flight at a time. Refreshes can be started
synchronously (``run``) or on a supervised background worker
(``start_background``) whose Future the host can await or cancel.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from sqlalchemy import Engine

from sales_ingest.config import IngestConfig
from sales_ingest.exceptions import RefreshCancelled, RefreshInProgress, SalesIngestError
from sales_ingest.ingest.refresh import RefreshResult, RefreshState, refresh_data

logger = logging.getLogger(__name__)


class RefreshRunner:
    """Serialize refresh runs against one store.

    Every requested run gets its own cancel event, registered as soon as the
    run is requested. ``cancel`` sets the events of the run in flight and of
    any run still waiting for the lock, so a waiting run never starts.

    Attributes:
        engine: Store the refreshes write to.
        config: Source and batching settings.
        last_result: Result of the most recent finished run, if any.
    """

    def __init__(self, engine: Engine, config: IngestConfig) -> None:
        self.engine = engine
        self.config = config
        self.last_result: RefreshResult | None = None
        self._lock = threading.Lock()
        self._events_lock = threading.Lock()
        self._cancel_events: set[threading.Event] = set()
        self._executor: ThreadPoolExecutor | None = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, wait: bool = True) -> RefreshResult:
        """Refresh the store from the configured source.

        Failures of the pipeline are not raised; they come back as a
        RefreshResult with status "failed" and the original reason.

        Args:
            wait: Block until a refresh already in flight has finished.
                When False, fail fast instead.

        Returns:
            RefreshResult of this run.

        Raises:
            RefreshInProgress: If ``wait`` is False and another refresh holds
                the lock.
        """
        return self._run(self._register(), wait)

    def start_background(self) -> Future[RefreshResult]:
        """Run a refresh on the background worker.

        Returns:
            Future resolving to the RefreshResult. Unexpected exceptions
            (anything outside SalesIngestError) are logged and set on the
            Future.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sales-refresh")
        cancel_event = self._register()
        future = self._executor.submit(self._run, cancel_event, True)
        # a future cancelled before it ran never reaches _run's cleanup
        future.add_done_callback(lambda _: self._forget(cancel_event))
        future.add_done_callback(_log_unexpected_failure)
        return future

    def cancel(self) -> None:
        """Ask the refresh in flight and any waiting refresh to roll back and stop."""
        with self._events_lock:
            events = list(self._cancel_events)
        if events:
            logger.info("Cancelling data refresh (%d requested runs)", len(events))
        for event in events:
            event.set()

    def shutdown(self, cancel: bool = True) -> None:
        """Stop the background worker, waiting for the current run to end."""
        if cancel:
            self.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None

    def _register(self) -> threading.Event:
        event = threading.Event()
        with self._events_lock:
            self._cancel_events.add(event)
        return event

    def _forget(self, event: threading.Event) -> None:
        with self._events_lock:
            self._cancel_events.discard(event)

    def _run(self, cancel_event: threading.Event, wait: bool) -> RefreshResult:
        try:
            if not self._lock.acquire(blocking=wait):
                raise RefreshInProgress("a data refresh is already in progress")
            try:
                logger.info("Starting data refresh from %s", self.config.source_path)
                try:
                    if cancel_event.is_set():
                        raise RefreshCancelled("refresh cancelled before it started")
                    result = refresh_data(self.engine, self.config, cancel_event=cancel_event)
                except SalesIngestError as e:
                    logger.error("Error refreshing data: %s", e)
                    result = RefreshResult(
                        status="failed",
                        state=RefreshState.FAILED,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                self.last_result = result
                return result
            finally:
                self._lock.release()
        finally:
            self._forget(cancel_event)


def _log_unexpected_failure(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("Background data refresh crashed: %s", error, exc_info=error)
