"""Post-load QA checks over the ingested sales schema.

Checks:
    - Row counts per table
    - Orphaned orders: orders whose customer or product row is missing
    - Prefixed money: unit_price / shipping_cost values still starting with "$"

Results come back as pandas DataFrames so they can be inspected, joined or
written out like any other mart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd
from sqlalchemy import Engine, func, or_, select

from sales_ingest.exceptions import DataQualityError
from sales_ingest.ingest.cleaning import CURRENCY_PREFIX
from sales_ingest.store.schema import ENTITY_TABLES, customers, orders, products

logger = logging.getLogger(__name__)


@dataclass
class StoreQAResult:
    """Result of the store QA checks.

    Attributes:
        summary: Counts per check and an overall ``has_issues`` flag.
        table_counts: One row per table with its row count.
        orphaned_orders: Orders with a dangling reference, or None if none found.
        prefixed_money: Orders whose money columns keep a currency prefix,
            or None if none found.
    """

    summary: dict
    table_counts: pd.DataFrame
    orphaned_orders: pd.DataFrame | None
    prefixed_money: pd.DataFrame | None

    @property
    def has_issues(self) -> bool:
        return bool(self.summary.get("has_issues"))


def run_store_qa(engine: Engine, strict: bool = False) -> StoreQAResult:
    """Run the QA checks against the store behind ``engine``.

    Args:
        engine: Store to inspect.
        strict: Raise instead of returning when an issue is found.

    Returns:
        StoreQAResult with summary and detail frames.

    Raises:
        DataQualityError: If ``strict`` and any check finds an issue.
    """
    with engine.connect() as conn:
        counts = pd.DataFrame(
            [
                {
                    "table": table.name,
                    "rows": conn.execute(select(func.count()).select_from(table)).scalar_one(),
                }
                for table in ENTITY_TABLES
            ]
        )

        orphan_stmt = (
            select(
                orders.c.id.label("order_id"),
                orders.c.customer_id,
                orders.c.product_id,
                customers.c.id.is_(None).label("missing_customer"),
                products.c.id.is_(None).label("missing_product"),
            )
            .select_from(
                orders.outerjoin(customers, orders.c.customer_id == customers.c.id).outerjoin(
                    products, orders.c.product_id == products.c.id
                )
            )
            .where(or_(customers.c.id.is_(None), products.c.id.is_(None)))
            .order_by(orders.c.id)
        )
        orphans = pd.read_sql(orphan_stmt, conn)

        prefix_stmt = (
            select(orders.c.id.label("order_id"), orders.c.unit_price, orders.c.shipping_cost)
            .where(
                or_(
                    orders.c.unit_price.startswith(CURRENCY_PREFIX, autoescape=True),
                    orders.c.shipping_cost.startswith(CURRENCY_PREFIX, autoescape=True),
                )
            )
            .order_by(orders.c.id)
        )
        prefixed = pd.read_sql(prefix_stmt, conn)

    summary = {
        **{f"{row.table}_rows": int(row.rows) for row in counts.itertuples()},
        "orphaned_orders": len(orphans),
        "prefixed_money": len(prefixed),
    }
    summary["has_issues"] = bool(summary["orphaned_orders"] or summary["prefixed_money"])

    logger.info(
        "Store QA: %d orphaned orders, %d prefixed money values",
        summary["orphaned_orders"],
        summary["prefixed_money"],
    )

    result = StoreQAResult(
        summary=summary,
        table_counts=counts,
        orphaned_orders=orphans if len(orphans) else None,
        prefixed_money=prefixed if len(prefixed) else None,
    )

    if strict and result.has_issues:
        raise DataQualityError(
            f"Store QA failed: {summary['orphaned_orders']} orphaned orders, "
            f"{summary['prefixed_money']} prefixed money values"
        )
    return result
