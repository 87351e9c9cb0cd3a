"""Sales Ingest - load a flat sales file into a relational schema.

This package reads a delimited sales export, splits every record into
customer, product and order rows, and upserts them into a SQL store in
bounded batches under a single transaction.

Module Structure:
    sales_ingest.ingest: Parser, normalizer, batch accumulator, refresh orchestrator
    sales_ingest.store: Table definitions and batch upsert statements
    sales_ingest.runner: Serialized refresh trigger with a background worker
    sales_ingest.api: FastAPI app exposing the refresh trigger
    sales_ingest.qa: Post-load checks over the ingested tables
    sales_ingest.config: IngestConfig configuration

Quick Start:
    >>> from sales_ingest import IngestConfig, refresh_data
    >>> from sales_ingest.store import create_schema, get_engine
    >>>
    >>> config = IngestConfig(database_url="sqlite:///sales.db", source_path="data/data.csv")
    >>> engine = get_engine(config.database_url)
    >>> create_schema(engine)
    >>> result = refresh_data(engine, config)
    >>> print(result.records, result.batches)

Table Reference:
    - customers: one row per customer id
    - products: one row per product id
    - orders: one row per order id, referencing customers and products
"""

__version__ = "0.1.0"

from sales_ingest.config import IngestConfig
from sales_ingest.exceptions import (
    CommitFailure,
    ConfigError,
    DataQualityError,
    HeaderReadError,
    MalformedRecord,
    RefreshCancelled,
    RefreshInProgress,
    SalesIngestError,
    SourceUnavailable,
    StoreUnavailable,
    UpsertFailure,
)
from sales_ingest.ingest.refresh import RefreshResult, RefreshState, refresh_data
from sales_ingest.runner import RefreshRunner

__all__ = [
    "CommitFailure",
    "ConfigError",
    "DataQualityError",
    "HeaderReadError",
    "IngestConfig",
    "MalformedRecord",
    "RefreshCancelled",
    "RefreshInProgress",
    "RefreshResult",
    "RefreshRunner",
    "RefreshState",
    "SalesIngestError",
    "SourceUnavailable",
    "StoreUnavailable",
    "UpsertFailure",
    "__version__",
    "refresh_data",
]
