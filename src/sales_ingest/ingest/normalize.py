"""Record normalizer: split one raw sales record into entity projections.

Each source record holds one order line together with the customer who
placed it and the product sold. Normalization maps the 15 source columns to
three fixed-arity projections:

- CustomerRow: (id, name, email, address)
- ProductRow: (id, name, category)
- OrderRow: (id, customer_id, product_id, region, sale_date, quantity,
  unit_price, discount, shipping_cost, payment_method)

Values stay strings; typing is left to the store. The only transform is the
removal of a literal "$" prefix from unit_price and shipping_cost.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

from sales_ingest.exceptions import HeaderReadError
from sales_ingest.ingest.cleaning import strip_currency, to_snake

logger = logging.getLogger(__name__)

# Source layout, in positional order
SOURCE_COLUMNS: tuple[str, ...] = (
    "order_id",
    "product_id",
    "customer_id",
    "product_name",
    "category",
    "region",
    "sale_date",
    "quantity",
    "unit_price",
    "discount",
    "shipping_cost",
    "payment_method",
    "customer_name",
    "customer_email",
    "customer_address",
)


class CustomerRow(NamedTuple):
    id: str
    name: str
    email: str
    address: str


class ProductRow(NamedTuple):
    id: str
    name: str
    category: str


class OrderRow(NamedTuple):
    id: str
    customer_id: str
    product_id: str
    region: str
    sale_date: str
    quantity: str
    unit_price: str
    discount: str
    shipping_cost: str
    payment_method: str


class NormalizedRecord(NamedTuple):
    """The three projections of one source record."""

    customer: CustomerRow
    product: ProductRow
    order: OrderRow


@dataclass(frozen=True)
class ColumnMap:
    """Position of each named source column inside a raw record.

    Attributes:
        positions: Column name to index, one entry per SOURCE_COLUMNS name.
        width: Number of fields every record is expected to carry.
    """

    positions: dict[str, int]
    width: int

    @classmethod
    def positional(cls) -> ColumnMap:
        """Default layout: SOURCE_COLUMNS in file order."""
        return cls(
            positions={name: i for i, name in enumerate(SOURCE_COLUMNS)},
            width=len(SOURCE_COLUMNS),
        )

    @classmethod
    def from_header(cls, header: Sequence[str]) -> ColumnMap:
        """Resolve columns by header label, falling back to positions.

        Header labels are compared in snake_case, so "Order ID" matches
        "order_id". When any expected column is missing from the header the
        positional layout is used instead, as long as the file is wide enough.

        Args:
            header: Header fields of the source.

        Returns:
            ColumnMap whose width equals the header's field count.

        Raises:
            HeaderReadError: If the header has too few columns for either layout.

        Examples:
            >>> cmap = ColumnMap.from_header(["Product ID", "Order ID"] + list(SOURCE_COLUMNS[2:]))
            >>> cmap.positions["order_id"], cmap.positions["product_id"]
            (1, 0)
        """
        labels = [to_snake(h) for h in header]
        index: dict[str, int] = {}
        for i, label in enumerate(labels):
            # first occurrence wins on duplicated labels
            index.setdefault(label, i)

        missing = [name for name in SOURCE_COLUMNS if name not in index]
        if not missing:
            return cls(positions={name: index[name] for name in SOURCE_COLUMNS}, width=len(header))

        if len(header) < len(SOURCE_COLUMNS):
            raise HeaderReadError(
                f"source has {len(header)} columns, at least {len(SOURCE_COLUMNS)} are required"
            )
        logger.warning(
            "Header does not name columns %s; using positional column layout", missing
        )
        return cls(
            positions={name: i for i, name in enumerate(SOURCE_COLUMNS)},
            width=len(header),
        )


_POSITIONAL = ColumnMap.positional()


def normalize_record(record: Sequence[str], columns: ColumnMap = _POSITIONAL) -> NormalizedRecord:
    """Project one raw record onto customer, product and order rows.

    The caller guarantees that ``record`` has ``columns.width`` fields;
    records of the wrong arity are rejected by the parser.

    Args:
        record: Raw field tuple.
        columns: Column positions to read from.

    Returns:
        NormalizedRecord with the three projections.

    Examples:
        >>> rec = normalize_record(
        ...     ["O1", "P1", "C1", "Mug", "Kitchen", "East", "2024-01-01", "2",
        ...      "$9.50", "0.1", "$2.00", "card", "Ann", "ann@example.com", "1 Main St"]
        ... )
        >>> rec.order
        OrderRow(id='O1', customer_id='C1', product_id='P1', region='East', sale_date='2024-01-01', quantity='2', unit_price='9.50', discount='0.1', shipping_cost='2.00', payment_method='card')
    """
    pos = columns.positions

    def field(name: str) -> str:
        return record[pos[name]]

    customer = CustomerRow(
        id=field("customer_id"),
        name=field("customer_name"),
        email=field("customer_email"),
        address=field("customer_address"),
    )
    product = ProductRow(
        id=field("product_id"),
        name=field("product_name"),
        category=field("category"),
    )
    order = OrderRow(
        id=field("order_id"),
        customer_id=field("customer_id"),
        product_id=field("product_id"),
        region=field("region"),
        sale_date=field("sale_date"),
        quantity=field("quantity"),
        unit_price=strip_currency(field("unit_price")),
        discount=field("discount"),
        shipping_cost=strip_currency(field("shipping_cost")),
        payment_method=field("payment_method"),
    )
    return NormalizedRecord(customer=customer, product=product, order=order)
