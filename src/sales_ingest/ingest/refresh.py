"""Refresh orchestrator: load the sales file into the store in one transaction.

A run walks through these states:

    IDLE -> OPENING -> STREAMING <-> FLUSHING -> COMMITTING -> DONE

and ends in FAILED from any non-terminal state. The transaction is begun
before the first record is read and is committed only after the final batch
has been written, so a run is all-or-nothing: any failure rolls back every
batch written by the run, and the original error is raised to the caller.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from sales_ingest.config import IngestConfig
from sales_ingest.exceptions import (
    CommitFailure,
    RefreshCancelled,
    StoreUnavailable,
)
from sales_ingest.ingest.batch import Batch, BatchAccumulator
from sales_ingest.ingest.normalize import ColumnMap, normalize_record
from sales_ingest.ingest.parser import RecordSource
from sales_ingest.store.upsert import execute_batch

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RefreshResult:
    """Outcome of a refresh run.

    Attributes:
        status: "ok" or "failed".
        records: Data records read from the source.
        batches: Number of batches flushed.
        batch_sizes: Record count of each flushed batch, in order.
        duration_s: Wall-clock duration in seconds.
        state: Last state reached.
        error: Failure reason, None on success.
        error_type: Exception class name of the failure, None on success.
    """

    status: str
    records: int = 0
    batches: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    duration_s: float = 0.0
    state: RefreshState = RefreshState.IDLE
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "records": self.records,
            "batches": self.batches,
            "batch_sizes": list(self.batch_sizes),
            "duration_s": round(self.duration_s, 3),
            "state": self.state.value,
            "error": self.error,
            "error_type": self.error_type,
        }


class RefreshRun:
    """A single pass of the pipeline over one source file.

    Not reusable: create one per refresh. The connection and transaction
    are owned by the run and released before ``execute`` returns.
    """

    def __init__(
        self,
        engine: Engine,
        config: IngestConfig,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.engine = engine
        self.config = config
        self.cancel_event = cancel_event
        self.state = RefreshState.IDLE
        self.result = RefreshResult(status="running")

    def _transition(self, state: RefreshState) -> None:
        logger.debug("Refresh state %s -> %s", self.state.value, state.value)
        self.state = state
        self.result.state = state

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RefreshCancelled(
                f"refresh cancelled after {self.result.records} records "
                f"in {self.result.batches} batches"
            )

    def execute(self) -> RefreshResult:
        """Run the pipeline to completion.

        Returns:
            RefreshResult with status "ok".

        Raises:
            SalesIngestError: The original failure, after the transaction
                has been rolled back.
        """
        if self.state is not RefreshState.IDLE:
            raise RuntimeError("RefreshRun can only be executed once")

        started = time.perf_counter()
        self._transition(RefreshState.OPENING)
        try:
            connection = self.engine.connect()
        except SQLAlchemyError as e:
            error = StoreUnavailable(f"error connecting to database: {e}")
            self._fail(error, started)
            raise error from e

        try:
            try:
                transaction = connection.begin()
            except SQLAlchemyError as e:
                error = StoreUnavailable(f"error starting transaction: {e}")
                self._fail(error, started)
                raise error from e

            try:
                self._stream(connection)
                self._commit(transaction)
            except BaseException as e:
                self._rollback(connection, transaction)
                self._fail(e, started)
                raise
        finally:
            connection.close()

        self.result.status = "ok"
        self.result.duration_s = time.perf_counter() - started
        logger.info(
            "Data refresh completed. Processed %d records in %d batches",
            self.result.records,
            self.result.batches,
        )
        return self.result

    def _stream(self, connection: Connection) -> None:
        accumulator = BatchAccumulator(self.config.batch_size)
        with RecordSource(self.config.source_path, delimiter=self.config.delimiter) as source:
            assert source.header is not None
            columns = ColumnMap.from_header(source.header)
            self._transition(RefreshState.STREAMING)

            for record in source:
                self._check_cancelled()
                self.result.records += 1
                if accumulator.append(normalize_record(record, columns)):
                    self._flush(connection, accumulator.drain(), final=False)
                    self._check_cancelled()

        if len(accumulator):
            self._flush(connection, accumulator.drain(), final=True)

    def _flush(self, connection: Connection, batch: Batch, final: bool) -> None:
        self._transition(RefreshState.FLUSHING)
        batch_number = self.result.batches + 1
        label = "final batch" if final else "batch"
        logger.info("Processing %s %d (%d records)...", label, batch_number, len(batch))
        execute_batch(connection, batch, batch_number=batch_number)
        self.result.batches = batch_number
        self.result.batch_sizes.append(len(batch))
        logger.info(
            "Batch %d completed. Total records processed: %d", batch_number, self.result.records
        )
        if not final:
            self._transition(RefreshState.STREAMING)

    def _commit(self, transaction) -> None:
        self._check_cancelled()
        self._transition(RefreshState.COMMITTING)
        try:
            transaction.commit()
        except SQLAlchemyError as e:
            raise CommitFailure(f"error committing transaction: {e}") from e
        self._transition(RefreshState.DONE)

    def _rollback(self, connection: Connection, transaction) -> None:
        try:
            if transaction.is_active:
                transaction.rollback()
            else:
                # a failed commit leaves the DBAPI connection in an unknown state;
                # drop it so the pool never hands out its open transaction
                connection.invalidate()
        except SQLAlchemyError as e:
            # the original failure is what the caller sees
            logger.error("Rollback failed: %s", e)
        else:
            logger.warning(
                "Rolled back refresh: %d records in %d batches discarded",
                self.result.records,
                self.result.batches,
            )

    def _fail(self, error: BaseException, started: float) -> None:
        self._transition(RefreshState.FAILED)
        self.result.status = "failed"
        self.result.error = str(error)
        self.result.error_type = type(error).__name__
        self.result.duration_s = time.perf_counter() - started


def refresh_data(
    engine: Engine,
    config: IngestConfig,
    cancel_event: threading.Event | None = None,
) -> RefreshResult:
    """Ingest ``config.source_path`` into the store behind ``engine``.

    Args:
        engine: Store to write to; its schema must exist.
        config: Source path, delimiter and batch size.
        cancel_event: Optional event; when set the run rolls back and
            raises RefreshCancelled at the next record or batch boundary.

    Returns:
        RefreshResult for the committed run.

    Raises:
        SourceUnavailable, HeaderReadError, MalformedRecord: Source problems.
        StoreUnavailable, UpsertFailure, CommitFailure: Store problems.
        RefreshCancelled: If ``cancel_event`` was set during the run.

    Examples:
        >>> from sales_ingest.store.schema import get_engine
        >>> config = IngestConfig(database_url="sqlite:///sales.db")
        >>> result = refresh_data(get_engine(config.database_url), config)
        >>> result.batch_sizes
        [1000, 1000, 500]
    """
    return RefreshRun(engine, config, cancel_event=cancel_event).execute()


__all__ = [
    "RefreshResult",
    "RefreshRun",
    "RefreshState",
    "refresh_data",
]
