"""Result shapes: all rows, first row, first value, first column.

None of these rewrite the query; bounding the result size is up to the
caller.
"""

from typing import Any

from pgquery.models.result import Result


def rows(result: Result) -> list[dict[str, Any]]:
    """All rows, in order."""
    return result.rows


def row(result: Result) -> dict[str, Any] | None:
    """First row, or None when the result is empty."""
    return result.rows[0] if result.rows else None


def value(result: Result) -> Any:
    """First column of the first row, or None when there is no row."""
    first = row(result)
    if not first:
        return None
    return first[next(iter(first))]


def column(result: Result) -> list[Any]:
    """First column of every row, keyed by the first row's first column name."""
    if not result.rows:
        return []
    first = result.rows[0]
    if not first:
        return [None] * len(result.rows)
    name = next(iter(first))
    return [r[name] for r in result.rows]
