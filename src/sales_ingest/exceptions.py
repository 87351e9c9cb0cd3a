"""Domain-specific exceptions for sales ingestion.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from SalesIngestError for easy catching.
"""

from __future__ import annotations


class SalesIngestError(Exception):
    """Base exception for all sales ingestion errors.

    Callers can catch this exception to handle any failure of a refresh run.
    """

    pass


class ConfigError(SalesIngestError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Invalid configuration values are provided (e.g. batch size below 1)
    - Required configuration is missing (e.g. no database URL)
    - The configured database dialect has no upsert support
    """

    pass


class SourceError(SalesIngestError):
    """Raised when the sales source file cannot be read."""

    pass


class SourceUnavailable(SourceError):
    """Raised when the source file cannot be opened or stops being readable."""

    pass


class HeaderReadError(SourceError):
    """Raised when the header line of the source cannot be read."""

    pass


class MalformedRecord(SourceError):
    """Raised when a data line cannot be decoded as a field tuple.

    Attributes:
        record_number: 1-based index of the data record (header excluded).
        line_number: Line in the source file where the record ends.
    """

    def __init__(self, message: str, record_number: int, line_number: int | None = None):
        super().__init__(message)
        self.record_number = record_number
        self.line_number = line_number


class StoreError(SalesIngestError):
    """Raised when the relational store rejects an operation."""

    pass


class StoreUnavailable(StoreError):
    """Raised when a connection or transaction cannot be opened."""

    pass


class UpsertFailure(StoreError):
    """Raised when an insert-or-update statement fails.

    Attributes:
        entity: Entity type whose statement failed ("customers", "products"
            or "orders").
        batch_number: Batch in which the failure happened, if known.
    """

    def __init__(self, message: str, entity: str, batch_number: int | None = None):
        super().__init__(message)
        self.entity = entity
        self.batch_number = batch_number


class CommitFailure(StoreError):
    """Raised when the refresh transaction cannot be committed."""

    pass


class RefreshCancelled(SalesIngestError):
    """Raised when a running refresh is cancelled by its caller."""

    pass


class RefreshInProgress(SalesIngestError):
    """Raised when a refresh is requested while another one is running."""

    pass


class DataQualityError(SalesIngestError):
    """Raised when post-load checks on the store find critical issues.

    This exception is raised when:
    - Orders reference customers or products that do not exist
    - Monetary columns still carry a currency prefix
    """

    pass
