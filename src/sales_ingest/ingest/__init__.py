"""Ingestion pipeline: parse, normalize, batch and load sales records.

Example:
    >>> from sales_ingest.ingest import RecordSource, normalize_record
    >>>
    >>> with RecordSource("data/data.csv") as source:
    ...     for record in source:
    ...         projections = normalize_record(record)
"""

from sales_ingest.ingest.batch import Batch, BatchAccumulator
from sales_ingest.ingest.normalize import (
    SOURCE_COLUMNS,
    ColumnMap,
    CustomerRow,
    NormalizedRecord,
    OrderRow,
    ProductRow,
    normalize_record,
)
from sales_ingest.ingest.parser import RecordSource, read_records

__all__ = [
    "SOURCE_COLUMNS",
    "Batch",
    "BatchAccumulator",
    "ColumnMap",
    "CustomerRow",
    "NormalizedRecord",
    "OrderRow",
    "ProductRow",
    "RecordSource",
    "normalize_record",
    "read_records",
]
