"""Upsert executor: apply one batch to the store inside the caller's transaction.

For every batch three multi-row statements are issued, customers first, then
products, then orders, so that every order row finds its customer and product
already written. Each statement inserts all rows of the batch in one round
trip and overwrites every non-key column when the primary key exists.

Supported dialects:
    - sqlite, postgresql: INSERT ... ON CONFLICT (id) DO UPDATE
    - mysql, mariadb: INSERT ... ON DUPLICATE KEY UPDATE
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

from sqlalchemy import Connection, Table
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.dml import Insert

from sales_ingest.exceptions import ConfigError, UpsertFailure
from sales_ingest.ingest.batch import Batch
from sales_ingest.store.schema import customers, orders, products

logger = logging.getLogger(__name__)

_ON_CONFLICT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}
_ON_DUPLICATE_KEY_DIALECTS = {"mysql": mysql.insert, "mariadb": mysql.insert}

# Dialects that refuse to touch the same key twice in one statement
_SINGLE_TOUCH_DIALECTS = {"postgresql"}


@dataclass(frozen=True)
class BatchResult:
    """Rows sent per entity for one applied batch."""

    batch_number: int | None
    customers: int
    products: int
    orders: int


def build_upsert(table: Table, rows: Sequence[NamedTuple], dialect_name: str) -> Insert:
    """Build a multi-row insert-or-update statement for ``table``.

    Args:
        table: Target table; its primary key is the conflict target.
        rows: Projections whose field names match the table's columns.
        dialect_name: Name of the engine dialect the statement will run on.

    Returns:
        Insert statement with an upsert clause for the dialect.

    Raises:
        ValueError: If ``rows`` is empty.
        ConfigError: If the dialect has no supported upsert form.
    """
    if not rows:
        raise ValueError(f"cannot build an upsert for {table.name} without rows")

    values = [row._asdict() for row in rows]
    key_columns = [c.name for c in table.primary_key.columns]
    update_columns = [c.name for c in table.columns if not c.primary_key]

    if dialect_name in _SINGLE_TOUCH_DIALECTS:
        values = _last_occurrence_wins(values, key_columns)

    if dialect_name in _ON_CONFLICT_DIALECTS:
        stmt = _ON_CONFLICT_DIALECTS[dialect_name](table).values(values)
        return stmt.on_conflict_do_update(
            index_elements=key_columns,
            set_={name: stmt.excluded[name] for name in update_columns},
        )

    if dialect_name in _ON_DUPLICATE_KEY_DIALECTS:
        stmt = _ON_DUPLICATE_KEY_DIALECTS[dialect_name](table).values(values)
        return stmt.on_duplicate_key_update(
            {name: stmt.inserted[name] for name in update_columns}
        )

    raise ConfigError(f"Upsert is not supported for database dialect '{dialect_name}'")


def _last_occurrence_wins(values: list[dict], key_columns: list[str]) -> list[dict]:
    by_key: dict[tuple, dict] = {}
    for value in values:
        by_key[tuple(value[k] for k in key_columns)] = value
    return list(by_key.values())


def execute_batch(
    connection: Connection,
    batch: Batch,
    batch_number: int | None = None,
) -> BatchResult:
    """Write one batch through ``connection`` in customers, products, orders order.

    The connection must already be inside a transaction; nothing is
    committed or rolled back here.

    Args:
        connection: Connection holding the refresh transaction.
        batch: Non-empty batch of projections.
        batch_number: Batch index, used in log lines and errors.

    Returns:
        BatchResult with the number of rows sent per entity.

    Raises:
        ValueError: If the batch is empty.
        UpsertFailure: If a statement fails; ``entity`` names the table.
    """
    if len(batch) == 0:
        raise ValueError("cannot execute an empty batch")

    dialect_name = connection.dialect.name
    for table, rows in (
        (customers, batch.customers),
        (products, batch.products),
        (orders, batch.orders),
    ):
        stmt = build_upsert(table, rows, dialect_name)
        try:
            connection.execute(stmt)
        except SQLAlchemyError as e:
            raise UpsertFailure(
                f"error batch inserting {table.name}: {e}",
                entity=table.name,
                batch_number=batch_number,
            ) from e
        logger.debug("Upserted %d %s rows (batch %s)", len(rows), table.name, batch_number)

    return BatchResult(
        batch_number=batch_number,
        customers=len(batch.customers),
        products=len(batch.products),
        orders=len(batch.orders),
    )
