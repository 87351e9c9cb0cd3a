"""Shared fixtures: generated sales CSVs and SQLite-backed stores."""

from __future__ import annotations

import csv
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy import Engine, select

from sales_ingest.config import IngestConfig
from sales_ingest.store.schema import create_schema, get_engine

HEADER = [
    "Order ID",
    "Product ID",
    "Customer ID",
    "Product Name",
    "Category",
    "Region",
    "Sale Date",
    "Quantity",
    "Unit Price",
    "Discount",
    "Shipping Cost",
    "Payment Method",
    "Customer Name",
    "Customer Email",
    "Customer Address",
]


def sales_row(i: int, n_customers: int = 50, n_products: int = 20) -> list[str]:
    """Build source row ``i`` with ids cycling over customers and products."""
    c = i % n_customers
    p = i % n_products
    return [
        f"O{i:05d}",
        f"P{p:03d}",
        f"C{c:03d}",
        f"Product {p}",
        ["Electronics", "Books", "Clothing", "Home"][p % 4],
        ["North", "South", "East", "West"][i % 4],
        f"2024-01-{(i % 28) + 1:02d}",
        str((i % 5) + 1),
        f"${(p + 1) * 2.5:.2f}",
        "0.1" if i % 3 == 0 else "0",
        f"${(i % 7) * 1.25:.2f}" if i % 2 else f"{(i % 7) * 1.25:.2f}",
        ["card", "cash", "paypal"][i % 3],
        f"Customer {c}",
        f"customer{c}@example.com",
        f"{c} Main Street",
    ]


@pytest.fixture
def write_sales_csv(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a sales CSV with ``rows`` generated records.

    Args (of the returned callable):
        rows: Number of data records.
        malformed_at: 1-based record number to write with a missing field.
        header: Header row to write; defaults to HEADER.
        name: File name inside tmp_path.
    """

    def _write(
        rows: int,
        malformed_at: int | None = None,
        header: list[str] | None = None,
        name: str = "data.csv",
    ) -> Path:
        path = tmp_path / name
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(header if header is not None else HEADER)
            for i in range(1, rows + 1):
                row = sales_row(i)
                if malformed_at == i:
                    row = row[:-1]
                writer.writerow(row)
        return path

    return _write


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed SQLite store with the sales schema created."""
    eng = get_engine(f"sqlite:///{tmp_path / 'sales.db'}")
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def make_config(engine: Engine) -> Callable[..., IngestConfig]:
    def _make(source_path: Path, batch_size: int = 1000, **kwargs) -> IngestConfig:
        return IngestConfig(
            database_url=engine.url.render_as_string(hide_password=False),
            source_path=source_path,
            batch_size=batch_size,
            **kwargs,
        )

    return _make


def fetch_all(engine: Engine, table) -> list[tuple]:
    """All rows of ``table`` ordered by primary key."""
    with engine.connect() as conn:
        return [tuple(r) for r in conn.execute(select(table).order_by(table.c.id))]


def count_rows(engine: Engine, table) -> int:
    return len(fetch_all(engine, table))


class FailingReader:
    """Stand-in for a csv reader whose file fails after ``rows`` are read."""

    def __init__(self, rows: list[list[str]]) -> None:
        self._rows = iter(rows)
        self.line_num = 1

    def __iter__(self) -> FailingReader:
        return self

    def __next__(self) -> list[str]:
        row = next(self._rows, None)
        if row is None:
            raise OSError(5, "Input/output error")
        self.line_num += 1
        return row
