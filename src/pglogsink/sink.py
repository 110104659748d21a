"""Postgres sink: table bootstrap and batch insertion.

Two insertion strategies are supported and they differ in failure behavior:

- COPY (`use_copy=True`): the batch is streamed through one binary COPY in a
  single transaction. A failure on any event leaves no rows from the batch.
- INSERT (`use_copy=False`): one parameterized INSERT per event, each
  committed on its own. A failure on event i leaves events 1..i-1 committed.

Both write columns in the order of the column mapping.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import AbstractAsyncContextManager
from types import MappingProxyType
from typing import Any

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncEngine

from pglogsink.db.connection import SinkConnection, connect
from pglogsink.db.dialect import normalize_dsn
from pglogsink.db.engine import create_async_engine_for_dsn
from pglogsink.db.identifiers import Identifier, TableIdentity
from pglogsink.db.table import build_create_table_sql, create_table
from pglogsink.errors import PersistenceError
from pglogsink.interfaces import ColumnWriter, FormatContext
from pglogsink.models.events import LogEvent

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], AbstractAsyncContextManager[SinkConnection]]

_NON_WORD = re.compile(r"\W")


def bind_parameter_names(column_names: Sequence[str]) -> list[str]:
    """Derive one unique bind parameter name per column.

    Quotes are stripped and other non-word characters replaced with `_`;
    clashes get a numeric suffix.
    """
    names: list[str] = []
    used: set[str] = set()
    for column in column_names:
        base = _NON_WORD.sub("_", column.replace('"', "")) or "column"
        candidate = base
        suffix = 2
        while candidate in used:
            candidate = f"{base}_{suffix}"
            suffix += 1
        used.add(candidate)
        names.append(candidate)
    return names


def _escape_colons(sql: str) -> str:
    # text() would read ":name" inside a quoted identifier as a bind parameter.
    return sql.replace(":", "\\:")


def build_insert_sql(
    identity: TableIdentity, columns: Sequence[Identifier], bind_names: Sequence[str]
) -> str:
    column_list = ", ".join(_escape_colons(column.sql) for column in columns)
    params = ", ".join(f":{name}" for name in bind_names)
    return f"INSERT INTO {_escape_colons(identity.qualified_sql)} ({column_list}) VALUES ({params})"


class PostgresSink:
    """Writes batches of log events into a PostgreSQL table.

    The column mapping is fixed at construction. With
    `need_auto_create_table` the table is created on the first flush; the
    creation latch is checked again under a lock so concurrent flushes issue
    the DDL once. A failed creation leaves the latch unset and the next flush
    tries again.
    """

    def __init__(
        self,
        connection_string: str,
        table_name: str,
        columns: Mapping[str, ColumnWriter] | None = None,
        *,
        schema_name: str = "",
        respect_case: bool = False,
        need_auto_create_table: bool = False,
        use_copy: bool = True,
        format_context: FormatContext | None = None,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        if columns is None:
            from pglogsink.config.columns import default_columns

            columns = default_columns()
        if not columns:
            raise ValueError("At least one column is required")

        self._dsn = normalize_dsn(connection_string)
        self._identity = TableIdentity(table_name, schema_name, respect_case)
        self._columns: Mapping[str, ColumnWriter] = MappingProxyType(dict(columns))
        self._column_identifiers = tuple(self._identity.column(name) for name in self._columns)
        self._use_copy = use_copy
        self._format_context = format_context
        self._connection_factory = connection_factory
        self._engine: AsyncEngine | None = None

        if need_auto_create_table:
            # Fail fast on column types that have no SQL rendering.
            build_create_table_sql(self._identity, self._columns)
        self._table_created = not need_auto_create_table
        self._create_lock = asyncio.Lock()

        self._bind_names = bind_parameter_names(list(self._columns))
        self._insert_statement: TextClause = text(
            build_insert_sql(self._identity, self._column_identifiers, self._bind_names)
        )

    @property
    def identity(self) -> TableIdentity:
        return self._identity

    @property
    def columns(self) -> Mapping[str, ColumnWriter]:
        return self._columns

    @property
    def use_copy(self) -> bool:
        return self._use_copy

    @property
    def table_created(self) -> bool:
        return self._table_created

    @property
    def insert_statement(self) -> TextClause:
        return self._insert_statement

    async def emit_batch(self, events: Sequence[LogEvent]) -> None:
        """Write one batch of events.

        Raises:
            PersistenceError: On any failure. `stage` names the step that
                failed and `rows_committed` how many rows of the batch remain
                in the table (always 0 for COPY).
        """
        events = list(events)
        if not events:
            return

        stage = "connect"
        committed = 0
        try:
            async with self._connect() as conn:
                stage = "create_table"
                await self._ensure_table(conn)

                if self._use_copy:
                    stage = "copy"
                    await conn.copy_records(
                        self._identity, self._column_identifiers, self._rows(events)
                    )
                    committed = len(events)
                else:
                    stage = "insert"
                    for event in events:
                        await conn.execute_insert(self._insert_statement, self._params(event))
                        committed += 1
        except Exception as exc:
            logger.error(
                "Failed writing %d events to %s at stage %s (%d committed): %s",
                len(events),
                self._identity,
                stage,
                committed,
                exc,
            )
            raise PersistenceError(str(self._identity), stage, exc, rows_committed=committed) from exc

        logger.debug(
            "Wrote %d events to %s via %s",
            committed,
            self._identity,
            "COPY" if self._use_copy else "INSERT",
        )

    async def create_table(self) -> None:
        """Create the table now instead of on the first flush."""
        try:
            async with self._connect() as conn:
                async with self._create_lock:
                    await create_table(conn, self._identity, self._columns)
                    self._table_created = True
        except Exception as exc:
            raise PersistenceError(str(self._identity), "create_table", exc) from exc

    async def dispose(self) -> None:
        """Release the engine. The sink can still be used afterwards."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def _ensure_table(self, conn: SinkConnection) -> None:
        if self._table_created:
            return
        async with self._create_lock:
            if self._table_created:
                return
            await create_table(conn, self._identity, self._columns)
            self._table_created = True

    def _connect(self) -> AbstractAsyncContextManager[SinkConnection]:
        if self._connection_factory is not None:
            return self._connection_factory()
        if self._engine is None:
            self._engine = create_async_engine_for_dsn(self._dsn)
        return connect(self._engine)

    def _values(self, event: LogEvent) -> Iterator[Any]:
        for writer in self._columns.values():
            yield writer.get_value(event, self._format_context)

    def _rows(self, events: Sequence[LogEvent]) -> Iterator[tuple[Any, ...]]:
        for event in events:
            yield tuple(self._values(event))

    def _params(self, event: LogEvent) -> dict[str, Any]:
        return dict(zip(self._bind_names, self._values(event)))
