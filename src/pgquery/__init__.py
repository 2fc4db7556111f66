"""Parameterized SQL templates, result shaping and transactions over asyncpg."""

from pgquery.config import PoolConfig
from pgquery.database import Database, Scope, TransactionState
from pgquery.defaults import (
    column,
    connection,
    get_database,
    init,
    query,
    row,
    rows,
    set_database,
    shutdown,
    transaction,
    value,
)
from pgquery.errors import (
    AbortConnectionError,
    Cancel,
    DriverError,
    MalformedTemplate,
    NotInitializedError,
    PgQueryError,
    ScopeClosedError,
    SqlError,
    UnsupportedLiteralType,
)
from pgquery.escape import (
    escape,
    escape_identifier,
    escape_identifiers,
    escape_literal,
    escape_literals,
)
from pgquery.executor import PendingQuery
from pgquery.models.result import Result
from pgquery.templates import (
    RawFragment,
    SqlTemplate,
    Statement,
    identifier,
    identifiers,
    items,
    literal,
    literals,
    sql,
    template,
)

__all__ = [
    "AbortConnectionError",
    "Cancel",
    "Database",
    "DriverError",
    "MalformedTemplate",
    "NotInitializedError",
    "PendingQuery",
    "PgQueryError",
    "PoolConfig",
    "RawFragment",
    "Result",
    "Scope",
    "ScopeClosedError",
    "SqlError",
    "SqlTemplate",
    "Statement",
    "TransactionState",
    "UnsupportedLiteralType",
    "column",
    "connection",
    "escape",
    "escape_identifier",
    "escape_identifiers",
    "escape_literal",
    "escape_literals",
    "get_database",
    "identifier",
    "identifiers",
    "init",
    "items",
    "literal",
    "literals",
    "query",
    "row",
    "rows",
    "set_database",
    "shutdown",
    "sql",
    "template",
    "transaction",
    "value",
]
