"""Command-line interface for sales ingestion.

Usage:
    sales-ingest init-db
    sales-ingest refresh [--source PATH] [--batch-size N] [--create-schema]
    sales-ingest qa [--strict]
    sales-ingest serve [--host HOST] [--port PORT]

Every command accepts --database-url; otherwise DATABASE_URL is read from
the environment, together with SALES_SOURCE_PATH and SALES_BATCH_SIZE.
A .env file in the working directory (or --env-file) is loaded first.

Exit codes:
    0 on success
    1 on refresh or QA failure
    2 on configuration errors
    130 on keyboard interrupt
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from dotenv import load_dotenv

from sales_ingest.config import IngestConfig
from sales_ingest.exceptions import ConfigError, DataQualityError
from sales_ingest.runner import RefreshRunner
from sales_ingest.store.schema import create_schema, get_engine

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sales-ingest",
        description="Load a sales CSV into customers/products/orders tables.",
    )
    p.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (default: $DATABASE_URL)",
    )
    p.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Dotenv file read before the environment (default: ./.env)",
    )
    p.add_argument("--quiet", action="store_true", help="Less logging")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the schema if it does not exist")

    r = sub.add_parser("refresh", help="Ingest the sales file into the store")
    r.add_argument("--source", type=Path, default=None, help="Sales CSV to ingest")
    r.add_argument("--batch-size", type=int, default=None, help="Records per upsert batch")
    r.add_argument("--delimiter", default=None, help="Field delimiter (default: ',')")
    r.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before ingesting",
    )

    q = sub.add_parser("qa", help="Run QA checks on the ingested tables")
    q.add_argument("--strict", action="store_true", help="Exit 1 when any check fails")

    s = sub.add_parser("serve", help="Run the HTTP refresh API")
    s.add_argument("--host", default="0.0.0.0")
    s.add_argument("--port", type=int, default=8080)
    s.add_argument(
        "--no-startup-refresh",
        action="store_true",
        help="Do not refresh the store when the server starts",
    )
    return p


def _load_config(args: argparse.Namespace) -> IngestConfig:
    environ = dict(os.environ)
    if args.database_url:
        environ["DATABASE_URL"] = args.database_url
    config = IngestConfig.from_env(environ)
    return config.with_overrides(
        source_path=getattr(args, "source", None),
        batch_size=getattr(args, "batch_size", None),
        delimiter=getattr(args, "delimiter", None),
        refresh_on_startup=False if getattr(args, "no_startup_refresh", False) else None,
    )


def _cmd_init_db(config: IngestConfig) -> int:
    create_schema(get_engine(config.database_url))
    return 0


def _cmd_refresh(config: IngestConfig, create: bool) -> int:
    engine = get_engine(config.database_url)
    if create:
        create_schema(engine)
    result = RefreshRunner(engine, config).run()
    if not result.ok:
        logger.error("Refresh failed (%s): %s", result.error_type, result.error)
        return 1
    logger.info(
        "Refresh ok: %d records, %d batches in %.1fs",
        result.records,
        result.batches,
        result.duration_s,
    )
    return 0


def _cmd_qa(config: IngestConfig, strict: bool) -> int:
    from sales_ingest.qa import run_store_qa

    try:
        result = run_store_qa(get_engine(config.database_url), strict=strict)
    except DataQualityError as e:
        logger.error("%s", e)
        return 1
    for key, value in result.summary.items():
        print(f"{key:>18}: {value}")
    if result.orphaned_orders is not None:
        print("\nOrphaned orders:")
        print(result.orphaned_orders.to_string(index=False))
    if result.prefixed_money is not None:
        print("\nPrefixed money values:")
        print(result.prefixed_money.to_string(index=False))
    return 0


def _cmd_serve(config: IngestConfig, host: str, port: int) -> int:
    import uvicorn

    from sales_ingest.api import create_app

    uvicorn.run(create_app(config), host=host, port=port)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    # variables already set in the process environment win over the file
    if load_dotenv(args.env_file):
        logger.debug("Loaded environment from %s", args.env_file)

    try:
        config = _load_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 2

    if args.command == "init-db":
        return _cmd_init_db(config)
    if args.command == "refresh":
        return _cmd_refresh(config, args.create_schema)
    if args.command == "qa":
        return _cmd_qa(config, args.strict)
    return _cmd_serve(config, args.host, args.port)


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
