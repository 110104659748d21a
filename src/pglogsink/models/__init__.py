"""Data models for log events and sink configuration."""

from pglogsink.models.config import RawConfig, SinkOptions
from pglogsink.models.events import (
    LogEvent,
    LogLevel,
    PropertyValue,
    ScalarValue,
    SequenceValue,
    StructureValue,
    to_property_value,
)

__all__ = [
    "LogEvent",
    "LogLevel",
    "PropertyValue",
    "RawConfig",
    "ScalarValue",
    "SequenceValue",
    "SinkOptions",
    "StructureValue",
    "to_property_value",
]
