"""Record parser: stream raw field tuples out of a delimited sales file.

The source is opened and its header consumed up front, so that open and
header failures surface before any record is requested. Records are then
produced lazily, one row at a time, and the sequence cannot be restarted.

Examples:
    >>> with RecordSource(Path("data/data.csv")) as source:
    ...     for record in source:
    ...         print(record[0])
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import IO

from sales_ingest.exceptions import HeaderReadError, MalformedRecord, SourceUnavailable

logger = logging.getLogger(__name__)

RawRecord = tuple[str, ...]


class RecordSource:
    """Delimited sales file opened for a single pass.

    Attributes:
        path: Location of the source file.
        delimiter: Field delimiter.
        header: Header fields, available once the source is open.
        records_read: Number of data records produced so far.
    """

    def __init__(self, path: str | Path, delimiter: str = ",") -> None:
        self.path = Path(path)
        self.delimiter = delimiter
        self.header: RawRecord | None = None
        self.records_read = 0
        self._handle: IO[str] | None = None
        self._reader = None
        self._consumed = False

    def open(self) -> RecordSource:
        """Open the file and read exactly one header line.

        Raises:
            SourceUnavailable: If the file cannot be opened.
            HeaderReadError: If the header line is missing or undecodable.
        """
        try:
            # utf-8-sig drops a leading BOM from the first header label
            self._handle = open(self.path, encoding="utf-8-sig", newline="")
        except OSError as e:
            raise SourceUnavailable(f"error opening file {self.path}: {e}") from e

        self._reader = csv.reader(self._handle, delimiter=self.delimiter, strict=True)
        try:
            header = next(self._reader)
        except StopIteration:
            self.close()
            raise HeaderReadError(f"error reading header: {self.path} is empty") from None
        except (csv.Error, UnicodeDecodeError) as e:
            self.close()
            raise HeaderReadError(f"error reading header: {e}") from e

        if not header:
            self.close()
            raise HeaderReadError(f"error reading header: first line of {self.path} is blank")

        self.header = tuple(header)
        logger.debug("Opened %s with %d header fields", self.path, len(self.header))
        return self

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> RecordSource:
        if self._handle is None:
            self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[RawRecord]:
        if self._reader is None or self.header is None:
            raise RuntimeError("RecordSource must be opened before iterating")
        if self._consumed:
            raise RuntimeError("RecordSource can only be iterated once")
        self._consumed = True
        return self._records()

    def _records(self) -> Iterator[RawRecord]:
        assert self._reader is not None and self.header is not None
        expected = len(self.header)
        while True:
            record_number = self.records_read + 1
            try:
                row = next(self._reader)
            except StopIteration:
                return
            except OSError as e:
                raise SourceUnavailable(
                    f"error reading file {self.path} at record {record_number}: {e}"
                ) from e
            except (csv.Error, UnicodeDecodeError) as e:
                raise MalformedRecord(
                    f"error reading CSV: record {record_number}: {e}",
                    record_number=record_number,
                    line_number=self._reader.line_num,
                ) from e

            if not row:
                # blank line
                continue
            if len(row) != expected:
                raise MalformedRecord(
                    f"error reading CSV: record {record_number} on line "
                    f"{self._reader.line_num}: wrong number of fields "
                    f"(expected {expected}, got {len(row)})",
                    record_number=record_number,
                    line_number=self._reader.line_num,
                )

            self.records_read = record_number
            yield tuple(row)


def read_records(path: str | Path, delimiter: str = ",") -> Iterator[RawRecord]:
    """Yield the data records of ``path``, header excluded.

    Unlike RecordSource, open and header errors surface on the first
    ``next()`` call. The file is closed once the iterator is exhausted or
    garbage collected.
    """
    with RecordSource(path, delimiter=delimiter) as source:
        yield from source
