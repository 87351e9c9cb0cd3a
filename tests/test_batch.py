"""Tests for the batch accumulator."""

import math

import pytest

from sales_ingest.exceptions import ConfigError
from sales_ingest.ingest.batch import BatchAccumulator
from sales_ingest.ingest.normalize import normalize_record

from conftest import sales_row


def _record(i: int):
    return normalize_record(sales_row(i))


def _flush_sizes(total: int, batch_size: int) -> list[int]:
    """Drive an accumulator the way the refresh loop does."""
    acc = BatchAccumulator(batch_size)
    sizes = []
    for i in range(1, total + 1):
        if acc.append(_record(i)):
            sizes.append(len(acc.drain()))
    if len(acc):
        sizes.append(len(acc.drain()))
    return sizes


def test_append_signals_flush_at_cap() -> None:
    """Test that append returns True exactly when the cap is reached."""
    acc = BatchAccumulator(batch_size=3)

    assert acc.append(_record(1)) is False
    assert acc.append(_record(2)) is False
    assert acc.append(_record(3)) is True
    assert acc.is_full


def test_drain_returns_aligned_buffers_and_resets() -> None:
    """Test that drain returns index-aligned projections and empties the buffers."""
    acc = BatchAccumulator(batch_size=2)
    acc.append(_record(1))
    acc.append(_record(2))

    batch = acc.drain()

    assert len(batch) == 2
    assert [o.id for o in batch.orders] == ["O00001", "O00002"]
    assert [c.id for c in batch.customers] == [o.customer_id for o in batch.orders]
    assert [p.id for p in batch.products] == [o.product_id for o in batch.orders]
    assert len(acc) == 0


def test_no_stale_entries_after_drain() -> None:
    """Test that a drained batch is not affected by later appends."""
    acc = BatchAccumulator(batch_size=2)
    acc.append(_record(1))
    acc.append(_record(2))
    first = acc.drain()

    acc.append(_record(3))
    second = acc.drain()

    assert [o.id for o in second.orders] == ["O00003"]
    assert len(second.customers) == len(second.products) == 1
    # earlier snapshots are not affected by later appends
    assert [o.id for o in first.orders] == ["O00001", "O00002"]


def test_duplicates_are_kept() -> None:
    """Test that repeated records are buffered as-is."""
    acc = BatchAccumulator(batch_size=10)
    acc.append(_record(1))
    acc.append(_record(1))

    batch = acc.drain()

    assert len(batch) == 2
    assert batch.customers[0] == batch.customers[1]


def test_append_to_full_accumulator_raises() -> None:
    """Test that appending to a full accumulator is refused."""
    acc = BatchAccumulator(batch_size=1)
    acc.append(_record(1))

    with pytest.raises(RuntimeError, match="drain"):
        acc.append(_record(2))


@pytest.mark.parametrize("size", [0, -5])
def test_invalid_batch_size(size: int) -> None:
    """Test that a batch size below 1 raises ConfigError."""
    with pytest.raises(ConfigError):
        BatchAccumulator(batch_size=size)


@pytest.mark.parametrize(
    ("total", "batch_size"),
    [(0, 10), (1, 10), (10, 10), (25, 10), (30, 10), (7, 1)],
)
def test_flush_count_invariant(total: int, batch_size: int) -> None:
    """Test that R records with cap C flush ceil(R / C) batches of the expected sizes."""
    sizes = _flush_sizes(total, batch_size)

    assert len(sizes) == math.ceil(total / batch_size)
    assert sum(sizes) == total
    if total:
        remainder = total % batch_size
        assert sizes[-1] == (remainder or batch_size)
        assert all(s == batch_size for s in sizes[:-1])
