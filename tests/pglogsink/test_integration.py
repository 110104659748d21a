"""End-to-end tests against a live PostgreSQL server.

Skipped when SKIP_POSTGRES_TESTS=1 or when the server is unreachable.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from pglogsink.db.engine import create_async_engine_for_dsn
from pglogsink.db.types import DbType
from pglogsink.errors import PersistenceError
from pglogsink.interfaces import ColumnWriter
from pglogsink.models.events import LogEvent
from pglogsink.plugins.column_writers.level import LevelColumnWriter
from pglogsink.plugins.column_writers.message import MessageTemplateColumnWriter
from pglogsink.plugins.column_writers.properties import (
    PropertiesColumnWriter,
    SinglePropertyColumnWriter,
)
from pglogsink.plugins.column_writers.timestamp import TimestampColumnWriter
from pglogsink.sink import PostgresSink
from tests.pglogsink.mocks import make_events


async def _engine_or_skip(dsn: str) -> AsyncEngine:
    engine = create_async_engine_for_dsn(dsn)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        await engine.dispose()
        pytest.skip(f"PostgreSQL not reachable: {exc}")
    return engine


def _columns() -> dict[str, ColumnWriter]:
    return {
        "Message": MessageTemplateColumnWriter(),
        "Level": LevelColumnWriter(render_as_text=True, db_type=DbType.VARCHAR, column_length=16),
        "RaiseDate": TimestampColumnWriter(DbType.TIMESTAMP_TZ),
        "Idx": SinglePropertyColumnWriter("Index", db_type=DbType.INTEGER),
        "Props": PropertiesColumnWriter(),
    }


def _bad_event() -> LogEvent:
    return LogEvent.create(
        "bad",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        properties={"Index": "not-a-number"},
    )


async def _count(engine: AsyncEngine, table: str) -> int:
    async with engine.connect() as conn:
        result = await conn.execute(text(f'SELECT count(*) FROM "{table}"'))
        return int(result.scalar_one())


@pytest.mark.asyncio
@pytest.mark.parametrize("use_copy", [True, False])
async def test_round_trip(postgres_dsn: str, use_copy: bool) -> None:
    """Rows written by either strategy read back in order with exact values."""
    # Given: A case-sensitive sink creating its own table
    engine = await _engine_or_skip(postgres_dsn)
    table = f"Logs_{uuid.uuid4().hex[:8]}"
    sink = PostgresSink(
        postgres_dsn,
        table,
        _columns(),
        respect_case=True,
        need_auto_create_table=True,
        use_copy=use_copy,
    )

    try:
        # When: Writing a batch
        await sink.emit_batch(make_events(3))

        # Then: Values are stored under the quoted names
        async with engine.connect() as conn:
            result = await conn.execute(
                text(f'SELECT "Message", "Level", "Idx", "Props" FROM "{table}" ORDER BY "Idx"')
            )
            rows = [
                (message, level, idx, props if isinstance(props, dict) else json.loads(props))
                for message, level, idx, props in result
            ]
        assert rows == [
            ("event-0", "Information", 0, {"Index": 0}),
            ("event-1", "Information", 1, {"Index": 1}),
            ("event-2", "Information", 2, {"Index": 2}),
        ]
    finally:
        async with engine.begin() as conn:
            await conn.execute(text(f'DROP TABLE IF EXISTS "{table}"'))
        await sink.dispose()
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize(("use_copy", "expected_rows"), [(True, 0), (False, 2)])
async def test_failure_atomicity(postgres_dsn: str, use_copy: bool, expected_rows: int) -> None:
    """COPY discards the failed batch; INSERT keeps rows before the failure."""
    # Given: A batch whose third event cannot be stored
    engine = await _engine_or_skip(postgres_dsn)
    table = f"Logs_{uuid.uuid4().hex[:8]}"
    sink = PostgresSink(
        postgres_dsn,
        table,
        _columns(),
        respect_case=True,
        need_auto_create_table=True,
        use_copy=use_copy,
    )
    events = [*make_events(2), _bad_event(), *make_events(2)]

    try:
        # When: Writing the batch
        with pytest.raises(PersistenceError) as exc_info:
            await sink.emit_batch(events)

        # Then: Rows left match the strategy's atomicity
        assert exc_info.value.rows_committed == expected_rows
        assert await _count(engine, table) == expected_rows
    finally:
        async with engine.begin() as conn:
            await conn.execute(text(f'DROP TABLE IF EXISTS "{table}"'))
        await sink.dispose()
        await engine.dispose()
