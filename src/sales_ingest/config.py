"""Configuration for sales ingestion.

This module provides a single configuration class used by the refresh
pipeline, the runner, the HTTP app and the CLI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from sales_ingest.exceptions import ConfigError

DEFAULT_SOURCE_PATH = Path("./data/data.csv")
DEFAULT_BATCH_SIZE = 1000

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class IngestConfig:
    """Settings for a refresh run.

    Attributes:
        database_url: SQLAlchemy URL of the target store.
        source_path: Delimited sales file to ingest.
        batch_size: Maximum number of records per upsert batch.
        delimiter: Field delimiter of the source file.
        refresh_on_startup: Whether the HTTP app launches a background
            refresh when it starts.
    """

    database_url: str
    source_path: Path = DEFAULT_SOURCE_PATH
    batch_size: int = DEFAULT_BATCH_SIZE
    delimiter: str = ","
    refresh_on_startup: bool = True

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> IngestConfig:
        """Build a configuration from environment variables.

        Reads DATABASE_URL (required), SALES_SOURCE_PATH, SALES_BATCH_SIZE,
        SALES_DELIMITER and SALES_REFRESH_ON_STARTUP.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Validated IngestConfig.

        Raises:
            ConfigError: If a variable is missing or cannot be parsed.

        Examples:
            >>> config = IngestConfig.from_env({"DATABASE_URL": "sqlite:///sales.db"})
            >>> config.batch_size
            1000
        """
        env = os.environ if environ is None else environ

        database_url = env.get("DATABASE_URL", "").strip().strip('"').strip("'")
        if not database_url:
            raise ConfigError("DATABASE_URL environment variable is required")

        raw_batch = env.get("SALES_BATCH_SIZE")
        try:
            batch_size = int(raw_batch) if raw_batch else DEFAULT_BATCH_SIZE
        except ValueError as e:
            raise ConfigError(f"SALES_BATCH_SIZE must be an integer, got {raw_batch!r}") from e

        config = cls(
            database_url=database_url,
            source_path=Path(env.get("SALES_SOURCE_PATH") or DEFAULT_SOURCE_PATH),
            batch_size=batch_size,
            delimiter=env.get("SALES_DELIMITER") or ",",
            refresh_on_startup=_parse_bool(
                env.get("SALES_REFRESH_ON_STARTUP"), "SALES_REFRESH_ON_STARTUP", default=True
            ),
        )
        config.validate()
        return config

    def with_overrides(self, **changes: object) -> IngestConfig:
        """Return a copy with the non-None values of ``changes`` applied."""
        updates = {k: v for k, v in changes.items() if v is not None}
        if "source_path" in updates:
            updates["source_path"] = Path(updates["source_path"])  # type: ignore[arg-type]
        config = replace(self, **updates)
        config.validate()
        return config

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If any setting is out of range.
        """
        if not self.database_url:
            raise ConfigError("database_url must not be empty")
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be at least 1, got {self.batch_size}")
        if len(self.delimiter) != 1:
            raise ConfigError(f"delimiter must be a single character, got {self.delimiter!r}")


def _parse_bool(value: str | None, name: str, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean flag, got {value!r}")
