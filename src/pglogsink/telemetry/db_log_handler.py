from __future__ import annotations

import asyncio
import logging
import queue
import socket
import sys
import threading
import time
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pglogsink.db.dialect import is_retryable_error
from pglogsink.errors import PersistenceError
from pglogsink.interfaces import ColumnWriter
from pglogsink.models.events import LogEvent, LogLevel
from pglogsink.sink import PostgresSink
from pglogsink.telemetry.postgres_settings import SinkSettings

_STANDARD_LOGRECORD_ATTRS = {
    "name",
    "msg",
    "message",
    "asctime",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}

# Records from these loggers are produced while writing and must not be fed back.
_INTERNAL_LOGGERS = ("pglogsink", "sqlalchemy", "asyncpg")


def _is_internal(logger_name: str) -> bool:
    return any(
        logger_name == prefix or logger_name.startswith(prefix + ".")
        for prefix in _INTERNAL_LOGGERS
    )


def record_to_event(record: logging.LogRecord) -> LogEvent:
    """Convert a stdlib log record into a structured event.

    `extra=` attributes become properties, together with the logger name and
    the host name.
    """
    properties: dict[str, Any] = {
        "SourceContext": record.name,
        "MachineName": socket.gethostname(),
    }
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOGRECORD_ATTRS:
            continue
        properties[key] = value

    exception: BaseException | None = None
    if record.exc_info and record.exc_info[1] is not None:
        exception = record.exc_info[1]

    return LogEvent.create(
        str(record.msg),
        level=LogLevel.from_logging(record.levelno),
        timestamp=datetime.fromtimestamp(record.created).astimezone(),
        rendered_message=record.getMessage(),
        properties=properties,
        exception=exception,
    )


class PostgresLogHandler(logging.Handler):
    """Best-effort batching handler that writes records through a PostgresSink.

    - `emit()` must never block the caller.
    - A worker thread with its own event loop drains the queue in batches of
      `batch_size`, waiting at most `period_s` for a batch to fill.
    - Retryable failures are retried with backoff up to `max_retries`; other
      failures and a full queue drop logs (with a stderr note).
    """

    def __init__(self, sink: PostgresSink, settings: SinkSettings | None = None) -> None:
        super().__init__()
        self.sink = sink
        self.settings = settings or SinkSettings()
        self._queue: queue.Queue[LogEvent] = queue.Queue(maxsize=int(self.settings.queue_size))
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run_worker, name="pglogsink-writer", daemon=True)
        self._started = False
        self._drop_count = 0
        self._drop_lock = threading.Lock()

        self.setLevel(getattr(logging, self.settings.level, logging.INFO))

    @classmethod
    def from_settings(
        cls, settings: SinkSettings, columns: Mapping[str, ColumnWriter] | None = None
    ) -> PostgresLogHandler:
        if not settings.dsn:
            raise ValueError("PGLOGSINK_DSN is not configured")
        sink = PostgresSink(
            settings.dsn,
            settings.table_name,
            columns,
            schema_name=settings.schema_name,
            respect_case=settings.respect_case,
            need_auto_create_table=settings.need_auto_create_table,
            use_copy=settings.use_copy,
        )
        return cls(sink, settings)

    @property
    def dropped(self) -> int:
        return self._drop_count

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._thread.start()

    def close(self) -> None:
        try:
            self._stop.set()
            if self._started and self._thread is not threading.current_thread():
                if self._thread.is_alive():
                    self._thread.join(timeout=max(1.0, float(self.settings.period_s)))
        finally:
            super().close()

    def emit(self, record: logging.LogRecord) -> None:
        if _is_internal(record.name) or self._stop.is_set():
            return
        if not self._started:
            self.start()

        try:
            event = record_to_event(record)
        except Exception as exc:
            sys.stderr.write(f"[pglogsink] failed to convert record: {exc}\n")
            return

        try:
            self._queue.put_nowait(event)
        except queue.Full:
            if self.settings.drop_policy == "drop_oldest":
                try:
                    _ = self._queue.get_nowait()
                except queue.Empty:
                    pass
                try:
                    self._queue.put_nowait(event)
                    self._count_drop()
                    return
                except queue.Full:
                    pass
            self._count_drop()

    def _count_drop(self) -> None:
        # emit() runs concurrently when called outside Handler.handle().
        with self._drop_lock:
            self._drop_count += 1
            dropped = self._drop_count
        if dropped % 100 == 1:
            sys.stderr.write(f"[pglogsink] queue full; dropping logs (dropped={dropped})\n")

    def _drain_batch(self) -> list[LogEvent]:
        batch: list[LogEvent] = []
        deadline = time.monotonic() + float(self.settings.period_s)
        while len(batch) < int(self.settings.batch_size):
            if self._stop.is_set():
                try:
                    batch.append(self._queue.get_nowait())
                except queue.Empty:
                    break
                continue
            timeout = max(0.0, deadline - time.monotonic())
            try:
                batch.append(self._queue.get(timeout=min(timeout, 0.5)))
            except queue.Empty:
                if time.monotonic() >= deadline:
                    break
        return batch

    def _run_worker(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            while True:
                if self._stop.is_set() and self._queue.empty():
                    break

                batch = self._drain_batch()
                if not batch:
                    continue
                loop.run_until_complete(self._write(batch))
        finally:
            try:
                loop.run_until_complete(self.sink.dispose())
            except Exception as exc:
                sys.stderr.write(f"[pglogsink] failed disposing engine: {exc}\n")
            loop.close()

    async def _write(self, batch: list[LogEvent]) -> None:
        """Write one batch, retrying transient failures.

        INSERT mode may have committed a prefix of the batch before failing;
        only the remainder is retried.
        """
        backoff = float(self.settings.backoff_initial_s)
        attempts = 0
        while batch:
            try:
                await self.sink.emit_batch(batch)
                return
            except PersistenceError as exc:
                batch = batch[exc.rows_committed :]
                if (
                    not is_retryable_error(exc)
                    or attempts >= int(self.settings.max_retries)
                    or self._stop.is_set()
                ):
                    sys.stderr.write(
                        f"[pglogsink] dropping {len(batch)} events after {attempts + 1} attempt(s): {exc}\n"
                    )
                    return
                sys.stderr.write(f"[pglogsink] flush failed: {exc}; backing off {backoff:.1f}s\n")
                attempts += 1
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2.0, float(self.settings.backoff_max_s))
