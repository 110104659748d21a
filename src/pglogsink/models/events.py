"""Log event model consumed by column writers."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from types import MappingProxyType
from typing import Any


class LogLevel(IntEnum):
    """Event severity, ordered from least to most severe."""

    VERBOSE = 0
    DEBUG = 1
    INFORMATION = 2
    WARNING = 3
    ERROR = 4
    FATAL = 5

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_logging(cls, levelno: int) -> LogLevel:
        """Map a stdlib `logging` level number onto the closest severity."""
        if levelno >= logging.CRITICAL:
            return cls.FATAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARNING
        if levelno >= logging.INFO:
            return cls.INFORMATION
        if levelno >= logging.DEBUG:
            return cls.DEBUG
        return cls.VERBOSE


@dataclass(frozen=True)
class ScalarValue:
    value: Any

    def to_json_data(self) -> Any:
        value = self.value
        if isinstance(value, float) and not math.isfinite(value):
            # jsonb has no literal for NaN or Infinity.
            return "NaN" if math.isnan(value) else ("Infinity" if value > 0 else "-Infinity")
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, bytes):
            return value.hex()
        return str(value)


@dataclass(frozen=True)
class SequenceValue:
    elements: tuple[PropertyValue, ...]

    def to_json_data(self) -> list[Any]:
        return [element.to_json_data() for element in self.elements]


@dataclass(frozen=True)
class StructureValue:
    """Named members captured from a mapping or object.

    `type_tag` is emitted as `_typeTag` when present.
    """

    properties: tuple[tuple[str, PropertyValue], ...]
    type_tag: str | None = None

    def to_json_data(self) -> dict[str, Any]:
        data = {name: value.to_json_data() for name, value in self.properties}
        if self.type_tag is not None:
            data["_typeTag"] = self.type_tag
        return data


PropertyValue = ScalarValue | SequenceValue | StructureValue


def to_property_value(obj: Any) -> PropertyValue:
    """Capture arbitrary Python data as a property value tree."""
    if isinstance(obj, (ScalarValue, SequenceValue, StructureValue)):
        return obj
    if isinstance(obj, Mapping):
        return StructureValue(
            properties=tuple((str(key), to_property_value(value)) for key, value in obj.items())
        )
    if isinstance(obj, (list, tuple, set, frozenset)):
        return SequenceValue(elements=tuple(to_property_value(item) for item in obj))
    return ScalarValue(obj)


@dataclass(frozen=True)
class LogEvent:
    """Immutable structured log event.

    Produced by the logging front-end; column writers only read it.
    """

    timestamp: datetime
    level: LogLevel
    message_template: str
    rendered_message: str
    properties: Mapping[str, PropertyValue] = field(
        default_factory=lambda: MappingProxyType({})
    )
    exception: BaseException | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.properties, MappingProxyType):
            object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @classmethod
    def create(
        cls,
        message_template: str,
        *,
        level: LogLevel = LogLevel.INFORMATION,
        timestamp: datetime | None = None,
        rendered_message: str | None = None,
        properties: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        exception: BaseException | None = None,
    ) -> LogEvent:
        """Build an event from plain Python values.

        Property values are captured with `to_property_value`; the rendered
        message defaults to the template.
        """
        items = properties.items() if isinstance(properties, Mapping) else (properties or ())
        return cls(
            timestamp=timestamp or datetime.now(timezone.utc),
            level=level,
            message_template=message_template,
            rendered_message=message_template if rendered_message is None else rendered_message,
            properties={name: to_property_value(value) for name, value in items},
            exception=exception,
        )
