"""SQL literal and identifier escaping.

Follows the quoting rules of libpq's ``PQescapeLiteral`` and
``PQescapeIdentifier``, extended to numbers, booleans, null and arrays.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from pgquery.errors import UnsupportedLiteralType


def escape_identifier(value: str) -> str:
    """Quote an identifier, doubling embedded double quotes."""
    if not isinstance(value, str):
        raise UnsupportedLiteralType(
            f"Cannot escape {type(value).__name__} as an identifier"
        )
    return '"' + value.replace('"', '""') + '"'


def escape_literal(value: Any) -> str:
    """Render a Python value as a SQL literal.

    Strings containing a backslash use the ``E'...'`` form with every
    backslash doubled, and are prefixed with a space so the ``E`` can
    never fuse with preceding SQL text.
    """
    if value is None:
        return "null"
    # bool before int: True is an int
    if value is True:
        return "true"
    if value is False:
        return "false"
    # base-class repr so subclasses cannot override the rendered text
    if isinstance(value, int):
        return int.__repr__(value)
    if isinstance(value, float | Decimal):
        if not _is_finite(value):
            raise UnsupportedLiteralType(f"Cannot escape non-finite number {value!r}")
        if isinstance(value, float):
            return float.__repr__(value)
        return Decimal.__str__(value)
    if isinstance(value, list | tuple):
        return "Array[" + ", ".join(escape_literal(v) for v in value) + "]"
    if isinstance(value, str):
        return _quote_string(value)
    raise UnsupportedLiteralType(f"Cannot escape {type(value).__name__} as a SQL literal")


escape = escape_literal


def escape_identifiers(values: Iterable[str], sep: str = ", ") -> str:
    """Escape and join several identifiers."""
    return sep.join(escape_identifier(v) for v in values)


def escape_literals(values: Iterable[Any], sep: str = ", ") -> str:
    """Escape and join several literals."""
    return sep.join(escape_literal(v) for v in values)


def _quote_string(value: str) -> str:
    has_backslash = False
    out = ["'"]
    for ch in value:
        if ch == "'":
            out.append("''")
        elif ch == "\\":
            out.append("\\\\")
            has_backslash = True
        else:
            out.append(ch)
    out.append("'")
    escaped = "".join(out)
    if has_backslash:
        escaped = " E" + escaped
    return escaped


def _is_finite(value: float | Decimal) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    return math.isfinite(value)
