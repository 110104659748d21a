from __future__ import annotations

import json
import logging
import logging.config
import os

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


class _JsonExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _extract_extras(record)
        if not extras:
            return base
        extras_json = json.dumps(extras, indent=2, default=str, sort_keys=True)
        return f"{base}\n{extras_json}"


def _extract_extras(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_LOGRECORD_ATTRS
    }


def configure_logging(*, log_level: str = "INFO", settings: SinkSettings | None = None) -> None:
    """Configure root logging with a consistent console format.

    If `PGLOGSINK_DSN` is configured (via env or `.env`), records are also
    written to Postgres through `PostgresLogHandler`.
    """
    console_level_name = str(log_level).upper()
    default_console_fmt = "%(asctime)s %(levelname)s %(name)s %(module)s:%(lineno)d %(message)s"
    console_fmt = os.getenv("CONSOLE_LOG_FORMAT", default_console_fmt)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "()": "pglogsink.logging_setup._JsonExtraFormatter",
                    "format": console_fmt,
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": console_level_name,
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"level": "DEBUG", "handlers": ["console"]},
        }
    )
    logging.captureWarnings(True)

    # Statement logging from the driver stack is noisy at DEBUG.
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)

    settings = settings or SinkSettings()
    if not settings.enabled:
        return

    from pglogsink.telemetry.db_log_handler import PostgresLogHandler

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, PostgresLogHandler):
            return

    try:
        db_handler = PostgresLogHandler.from_settings(settings)
    except Exception as exc:
        # Keep the app running with console logging only.
        logging.getLogger(__name__).warning("PGLOGSINK_DSN is set but the sink could not be built: %s", exc)
        return
    root.addHandler(db_handler)
