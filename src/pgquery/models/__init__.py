"""Data models returned by queries."""

from pgquery.models.result import Result

__all__ = ["Result"]
