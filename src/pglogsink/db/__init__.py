"""PostgreSQL access layer for the sink.

Key components:
- DbType / sql_type: abstract column types and their PostgreSQL syntax
- Identifier / TableIdentity: identifier quoting shared by DDL, COPY and INSERT
- create_table: idempotent table bootstrap
- create_async_engine_for_dsn / connect: per-flush connections
"""

from pglogsink.db.connection import AsyncpgSinkConnection, SinkConnection, connect
from pglogsink.db.dialect import is_retryable_error, normalize_dsn
from pglogsink.db.engine import create_async_engine_for_dsn
from pglogsink.db.identifiers import Identifier, TableIdentity, quote_identifier
from pglogsink.db.table import build_create_table_sql, create_table
from pglogsink.db.types import DbType, sql_type

__all__ = [
    "AsyncpgSinkConnection",
    "DbType",
    "Identifier",
    "SinkConnection",
    "TableIdentity",
    "build_create_table_sql",
    "connect",
    "create_async_engine_for_dsn",
    "create_table",
    "is_retryable_error",
    "normalize_dsn",
    "quote_identifier",
    "sql_type",
]
