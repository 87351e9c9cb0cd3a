"""Shared helpers for cleaning raw sales fields.

Key utilities:
- Header normalization: strip invisible characters, remove accents, snake_case
- Currency handling: strip the literal dollar prefix from monetary fields

Examples:
    >>> to_snake("Customer E-mail")
    'customer_e_mail'
    >>> strip_currency("$19.99")
    '19.99'
"""

from __future__ import annotations

import re
import unicodedata

# Unicode characters that should be stripped from header labels
NBSP = "\u00a0"  # Non-breaking space
NNBSP = "\u202f"  # Narrow non-breaking space
ZW = "".join(chr(c) for c in (0x200B, 0x200C, 0x200D, 0xFEFF))  # Zero-width characters and BOM

CURRENCY_PREFIX = "$"


def strip_invisibles(s: str) -> str:
    """Remove invisible and problematic whitespace characters from text.

    Examples:
        >>> strip_invisibles("  Order\u00a0ID ")
        'Order ID'
    """
    s = s.replace("\r", "").replace("\t", " ").replace(NBSP, " ").replace(NNBSP, " ")
    s = re.sub(r"[%s]" % re.escape(ZW), "", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def remove_accents(s: str) -> str:
    """Remove diacritics, keeping the base characters."""
    nfkd = unicodedata.normalize("NFKD", s)
    return "".join(ch for ch in nfkd if not unicodedata.combining(ch))


def to_snake(s: str) -> str:
    """Convert a header label to snake_case.

    Examples:
        >>> to_snake("Order ID")
        'order_id'
        >>> to_snake("Shipping Cost ($)")
        'shipping_cost'
    """
    s1 = remove_accents(strip_invisibles(s)).lower()
    s1 = re.sub(r"[^\w\s]", " ", s1)
    s1 = re.sub(r"\s+", "_", s1).strip("_")
    return s1


def strip_currency(value: str) -> str:
    """Remove one leading literal dollar sign.

    Only the prefix is touched; the rest of the value is returned as-is.

    Examples:
        >>> strip_currency("$9.50")
        '9.50'
        >>> strip_currency("9.50")
        '9.50'
    """
    if value.startswith(CURRENCY_PREFIX):
        return value[len(CURRENCY_PREFIX):]
    return value
