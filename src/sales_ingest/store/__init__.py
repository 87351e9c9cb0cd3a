"""Relational store: schema and batch upserts."""

from sales_ingest.store.schema import (
    ENTITY_TABLES,
    create_schema,
    customers,
    get_engine,
    metadata,
    orders,
    products,
)
from sales_ingest.store.upsert import BatchResult, build_upsert, execute_batch

__all__ = [
    "ENTITY_TABLES",
    "BatchResult",
    "build_upsert",
    "create_schema",
    "customers",
    "execute_batch",
    "get_engine",
    "metadata",
    "orders",
    "products",
]
