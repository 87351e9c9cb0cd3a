"""Batch accumulator for normalized sales records."""

from __future__ import annotations

from dataclasses import dataclass

from sales_ingest.config import DEFAULT_BATCH_SIZE
from sales_ingest.exceptions import ConfigError
from sales_ingest.ingest.normalize import CustomerRow, NormalizedRecord, OrderRow, ProductRow


@dataclass(frozen=True)
class Batch:
    """Projections collected between two flushes.

    The three tuples always have the same length: entry i of each belongs
    to the i-th source record of the batch.
    """

    customers: tuple[CustomerRow, ...]
    products: tuple[ProductRow, ...]
    orders: tuple[OrderRow, ...]

    def __len__(self) -> int:
        return len(self.orders)


class BatchAccumulator:
    """Buffer normalized records until ``batch_size`` is reached.

    ``append`` reports when the batch is full; the caller then calls
    ``drain`` to take the batch and empty the buffers. No deduplication
    happens here; repeated keys are left to the store's upsert.

    Examples:
        >>> acc = BatchAccumulator(batch_size=2)
        >>> acc.append(rec1)
        False
        >>> acc.append(rec2)
        True
        >>> len(acc.drain()), len(acc)
        (2, 0)
    """

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ConfigError(f"batch_size must be at least 1, got {batch_size}")
        self.batch_size = batch_size
        self._customers: list[CustomerRow] = []
        self._products: list[ProductRow] = []
        self._orders: list[OrderRow] = []

    def __len__(self) -> int:
        return len(self._orders)

    @property
    def is_full(self) -> bool:
        return len(self._orders) >= self.batch_size

    def append(self, record: NormalizedRecord) -> bool:
        """Add one record to all three buffers.

        Returns:
            True when the buffers reached ``batch_size`` and must be flushed.

        Raises:
            RuntimeError: If the accumulator is already full.
        """
        if self.is_full:
            raise RuntimeError("batch is full; drain() before appending")
        self._customers.append(record.customer)
        self._products.append(record.product)
        self._orders.append(record.order)
        return self.is_full

    def drain(self) -> Batch:
        """Return the buffered records and reset the buffers to empty."""
        batch = Batch(
            customers=tuple(self._customers),
            products=tuple(self._products),
            orders=tuple(self._orders),
        )
        self._customers.clear()
        self._products.clear()
        self._orders.clear()
        return batch
