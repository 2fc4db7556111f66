"""Query result model."""

from typing import Any

from pydantic import BaseModel, Field


class Result(BaseModel):
    """Outcome of one statement: its command tag, affected row count and rows."""

    command: str
    row_count: int = -1
    rows: list[dict[str, Any]] = Field(default_factory=list)
