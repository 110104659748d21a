"""Tests for the batching Postgres log handler."""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Sequence
from datetime import timedelta
from typing import cast

import pytest

from pglogsink.config.columns import default_columns
from pglogsink.errors import PersistenceError
from pglogsink.models.events import LogEvent, LogLevel, ScalarValue
from pglogsink.plugins.column_writers.message import (
    ExceptionColumnWriter,
    RenderedMessageColumnWriter,
)
from pglogsink.plugins.column_writers.properties import SinglePropertyColumnWriter
from pglogsink.sink import PostgresSink
from pglogsink.telemetry.db_log_handler import PostgresLogHandler, record_to_event
from pglogsink.telemetry.postgres_settings import SinkSettings
from tests.pglogsink.mocks import FAKE_DSN, MockDatabase, make_events


class _FakeThread:
    def __init__(self) -> None:
        self.join_calls: list[float] = []
        self._alive = True

    def is_alive(self) -> bool:
        return self._alive

    def join(self, timeout: float | None = None) -> None:
        assert timeout is not None
        self.join_calls.append(timeout)
        self._alive = False


class _FlakySink:
    """Sink stand-in that raises the queued failures before succeeding."""

    def __init__(self, failures: list[Exception]) -> None:
        self.failures = failures
        self.calls: list[list[LogEvent]] = []
        self.batches: list[list[LogEvent]] = []

    async def emit_batch(self, events: Sequence[LogEvent]) -> None:
        self.calls.append(list(events))
        if self.failures:
            raise self.failures.pop(0)
        self.batches.append(list(events))

    async def dispose(self) -> None:
        return None


def _settings(**overrides: object) -> SinkSettings:
    values: dict[str, object] = {
        "dsn": FAKE_DSN,
        "batch_size": 10,
        "period_s": 0.05,
        "backoff_initial_s": 0.0,
        "backoff_max_s": 0.0,
        "max_retries": 2,
    }
    values.update(overrides)
    return SinkSettings(**values)  # type: ignore[arg-type]


def _record(name: str = "app", msg: str = "hello %s", args: tuple[object, ...] = ("world",)) -> logging.LogRecord:
    return logging.LogRecord(name, logging.INFO, __file__, 10, msg, args, None)


def _retryable(rows_committed: int = 0) -> PersistenceError:
    return PersistenceError("logs", "insert", ConnectionResetError("reset"), rows_committed)


class TestRecordToEvent:
    """Tests for LogRecord conversion."""

    def test_converts_message_level_and_extras(self) -> None:
        """Template, rendered text, level and extras are carried over."""
        # Given: A record with extra attributes
        record = _record()
        record.user_id = 42

        # When: Converting
        event = record_to_event(record)

        # Then: Fields map onto the event
        assert event.message_template == "hello %s"
        assert event.rendered_message == "hello world"
        assert event.level is LogLevel.INFORMATION
        assert event.properties["user_id"] == ScalarValue(42)
        assert event.properties["SourceContext"] == ScalarValue("app")
        assert "args" not in event.properties

    def test_machine_name_is_stamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The host name fills the default machine_name column."""
        # Given: A known host name
        monkeypatch.setattr("pglogsink.telemetry.db_log_handler.socket.gethostname", lambda: "web-01")

        # When: Converting a record
        event = record_to_event(_record())

        # Then: The property is set and the default column renders it
        assert event.properties["MachineName"] == ScalarValue("web-01")
        assert default_columns()["machine_name"].get_value(event) == "web-01"

    def test_timestamp_is_local_and_aware(self) -> None:
        record = _record()
        event = record_to_event(record)

        assert event.timestamp.tzinfo is not None
        assert abs(event.timestamp.timestamp() - record.created) < timedelta(seconds=1).total_seconds()

    def test_exception_is_attached(self) -> None:
        """exc_info becomes the event exception."""
        # Given: A record created while handling an exception
        try:
            raise KeyError("missing")
        except KeyError:
            record = logging.LogRecord("app", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        # When: Converting
        event = record_to_event(record)

        # Then: Exception and level are mapped
        assert isinstance(event.exception, KeyError)
        assert event.level is LogLevel.ERROR


class TestQueueing:
    """Tests for emit() queueing and drop policies."""

    def test_internal_records_are_ignored(self) -> None:
        """Records from the sink's own loggers never reach the queue."""
        # Given: A handler that has not started
        handler = PostgresLogHandler(cast(PostgresSink, _FlakySink([])), _settings())

        # When: Emitting records from internal loggers
        handler.emit(_record(name="pglogsink.sink"))
        handler.emit(_record(name="sqlalchemy.engine.Engine"))

        # Then: Nothing queued and no worker started
        assert handler._queue.qsize() == 0
        assert handler._started is False

    def test_drop_new_keeps_oldest(self) -> None:
        """drop_new discards the incoming record when full."""
        # Given: A full single-slot queue with no worker
        handler = PostgresLogHandler(
            cast(PostgresSink, _FlakySink([])), _settings(queue_size=1, drop_policy="drop_new")
        )
        handler._started = True

        # When: Emitting two records
        handler.emit(_record(msg="first", args=()))
        handler.emit(_record(msg="second", args=()))

        # Then: The first one is kept
        assert handler._queue.get_nowait().message_template == "first"
        assert handler.dropped == 1

    def test_drop_oldest_keeps_newest(self) -> None:
        handler = PostgresLogHandler(
            cast(PostgresSink, _FlakySink([])), _settings(queue_size=1, drop_policy="drop_oldest")
        )
        handler._started = True

        handler.emit(_record(msg="first", args=()))
        handler.emit(_record(msg="second", args=()))

        assert handler._queue.get_nowait().message_template == "second"
        assert handler.dropped == 1

    def test_drop_count_is_exact_under_concurrent_emits(self) -> None:
        """Drops counted from many threads are not lost."""
        # Given: A full single-slot queue with no worker
        handler = PostgresLogHandler(
            cast(PostgresSink, _FlakySink([])), _settings(queue_size=1, drop_policy="drop_new")
        )
        handler._started = True
        handler.emit(_record(msg="kept", args=()))
        start = threading.Barrier(8)

        def emit_many() -> None:
            start.wait()
            for _ in range(250):
                handler.emit(_record(msg="dropped", args=()))

        # When: Eight threads emit directly at the same time
        threads = [threading.Thread(target=emit_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Then: Every drop is counted
        assert handler.dropped == 2000
        assert handler._queue.get_nowait().message_template == "kept"


class TestWriteRetries:
    """Tests for batch retry behavior."""

    @pytest.mark.asyncio
    async def test_retryable_failure_retries_remainder(self) -> None:
        """After a partial INSERT only uncommitted events are retried."""
        # Given: A sink that fails once after committing one event
        sink = _FlakySink([_retryable(rows_committed=1)])
        handler = PostgresLogHandler(cast(PostgresSink, sink), _settings())
        events = make_events(3)

        # When: Writing the batch
        await handler._write(events)

        # Then: The second attempt carries the last two events
        assert sink.batches == [events[1:]]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Retries stop after max_retries and the batch is dropped."""
        # Given: A sink that keeps failing with transient errors
        sink = _FlakySink([_retryable() for _ in range(5)])
        handler = PostgresLogHandler(cast(PostgresSink, sink), _settings(max_retries=2))

        # When: Writing
        await handler._write(make_events(2))

        # Then: One attempt plus two retries, then a stderr note
        assert len(sink.calls) == 3
        assert sink.batches == []
        assert "dropping 2 events" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_non_retryable_failure_drops(self, capsys: pytest.CaptureFixture[str]) -> None:
        # Given: A data error
        sink = _FlakySink([PersistenceError("logs", "copy", ValueError("bad row"))])
        handler = PostgresLogHandler(cast(PostgresSink, sink), _settings())

        # When: Writing
        await handler._write(make_events(2))

        # Then: No retry
        assert len(sink.calls) == 1
        assert "dropping" in capsys.readouterr().err


class TestLifecycle:
    """Tests for worker thread lifecycle."""

    def test_close_joins_writer_thread_when_started(self) -> None:
        """Close should wait briefly for writer thread to flush before exit."""
        # Given: A started handler with a live writer thread
        handler = PostgresLogHandler(cast(PostgresSink, _FlakySink([])), _settings(period_s=0.4))
        fake_thread = _FakeThread()
        handler._started = True
        handler._thread = cast(threading.Thread, fake_thread)

        # When: Closing the handler
        handler.close()

        # Then: Close signals stop and joins the writer thread with bounded timeout
        assert handler._stop.is_set() is True
        assert fake_thread.join_calls == [1.0]

    def test_close_skips_join_on_writer_thread_itself(self) -> None:
        """Close should not attempt to join when called from writer thread context."""
        # Given: Handler marked started where writer thread is current thread
        handler = PostgresLogHandler(cast(PostgresSink, _FlakySink([])), _settings())
        handler._started = True
        handler._thread = threading.current_thread()

        # When: Closing handler from current thread context
        handler.close()

        # Then: Close still signals stop without deadlocking on self-join
        assert handler._stop.is_set() is True

    def test_records_flow_into_sink(self) -> None:
        """Logged records are written through the sink and flushed on close."""
        # Given: A real sink over the mock database, attached to a logger
        database = MockDatabase()
        sink = PostgresSink(
            FAKE_DSN,
            "logs",
            {
                "message": RenderedMessageColumnWriter(),
                "user": SinglePropertyColumnWriter("user_id"),
                "exception": ExceptionColumnWriter(),
            },
            use_copy=True,
            connection_factory=database.connect,
        )
        handler = PostgresLogHandler(sink, _settings(level="DEBUG"))
        logger = logging.getLogger("tests.pglogsink.handler")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        logger.addHandler(handler)

        # When: Logging and closing
        try:
            logger.info("user %s signed in", "alice", extra={"user_id": 7})
            logger.debug("second")
        finally:
            logger.removeHandler(handler)
            handler.close()

        # Then: Both rows were written in order
        assert database.rows == [("user alice signed in", 7, None), ("second", None, None)]
        assert database.connections_opened == database.connections_closed
