"""Per-flush database connection used by the sink."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any, Protocol

from sqlalchemy import TextClause
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from pglogsink.db.identifiers import Identifier, TableIdentity


class SinkConnection(Protocol):
    """Operations the sink needs from one database connection."""

    async def execute_ddl(self, sql: str) -> None:
        """Execute and commit a DDL statement."""
        ...

    async def execute_insert(self, statement: TextClause, params: Mapping[str, Any]) -> None:
        """Execute one INSERT and commit it on its own."""
        ...

    async def copy_records(
        self,
        identity: TableIdentity,
        columns: Sequence[Identifier],
        records: Iterable[Sequence[Any]],
    ) -> int:
        """Bulk-load rows with binary COPY in a single transaction.

        Returns:
            Number of rows copied
        """
        ...


class AsyncpgSinkConnection:
    """SinkConnection backed by a SQLAlchemy async connection on asyncpg."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def execute_ddl(self, sql: str) -> None:
        await self._conn.exec_driver_sql(sql)
        await self._conn.commit()

    async def execute_insert(self, statement: TextClause, params: Mapping[str, Any]) -> None:
        await self._conn.execute(statement, dict(params))
        await self._conn.commit()

    async def copy_records(
        self,
        identity: TableIdentity,
        columns: Sequence[Identifier],
        records: Iterable[Sequence[Any]],
    ) -> int:
        raw = await self._conn.get_raw_connection()
        driver = raw.driver_connection
        schema = identity.schema
        # asyncpg quotes every name it is given, so pass catalog names.
        async with driver.transaction():
            status = await driver.copy_records_to_table(
                identity.table.catalog_name,
                schema_name=schema.catalog_name if schema is not None else None,
                columns=[column.catalog_name for column in columns],
                records=records,
            )
        return _copied_rows(status)


def _copied_rows(status: str | None) -> int:
    """Parse the row count out of a `COPY <n>` command tag."""
    if not status:
        return 0
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


@asynccontextmanager
async def connect(engine: AsyncEngine) -> AsyncIterator[SinkConnection]:
    """Open a dedicated connection; it is closed on exit, success or not."""
    async with engine.connect() as conn:
        yield AsyncpgSinkConnection(conn)
