"""Structured log sink for PostgreSQL."""

__version__ = "0.1.0"

# Export commonly used types
from pglogsink.errors import (
    ConfigurationMissing,
    PersistenceError,
    ResolutionError,
    SinkError,
    UnsupportedTypeError,
)
from pglogsink.interfaces import ColumnWriter, DefaultFormatContext, FormatContext
from pglogsink.models.events import LogEvent, LogLevel
from pglogsink.sink import PostgresSink

__all__ = [
    "ColumnWriter",
    "ConfigurationMissing",
    "DefaultFormatContext",
    "FormatContext",
    "LogEvent",
    "LogLevel",
    "PersistenceError",
    "PostgresSink",
    "ResolutionError",
    "SinkError",
    "UnsupportedTypeError",
    "__version__",
]
