"""Table bootstrap: CREATE TABLE IF NOT EXISTS from a column mapping."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pglogsink.db.connection import SinkConnection
from pglogsink.db.identifiers import TableIdentity
from pglogsink.db.types import sql_type
from pglogsink.interfaces import ColumnWriter

logger = logging.getLogger(__name__)


def build_create_table_sql(identity: TableIdentity, columns: Mapping[str, ColumnWriter]) -> str:
    """Render the idempotent DDL for the sink table.

    Raises:
        UnsupportedTypeError: If a writer declares a type with no rendering
    """
    definitions = ",\n".join(
        f" {identity.column(name).sql} {sql_type(writer.db_type, writer.column_length)}"
        for name, writer in columns.items()
    )
    return f"CREATE TABLE IF NOT EXISTS {identity.qualified_sql} (\n{definitions}\n)"


async def create_table(
    connection: SinkConnection, identity: TableIdentity, columns: Mapping[str, ColumnWriter]
) -> None:
    """Create the table if it does not exist. Existing tables are never altered."""
    ddl = build_create_table_sql(identity, columns)
    await connection.execute_ddl(ddl)
    logger.info("Ensured log table %s (%d columns)", identity, len(columns))
