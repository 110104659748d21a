"""Writers that serialize event properties or the whole event as JSON."""

from __future__ import annotations

import json
from collections.abc import Iterable
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BeforeValidator

from pglogsink.db.types import DbType, DbTypeField
from pglogsink.interfaces import ColumnWriter, DefaultFormatContext, FormatContext
from pglogsink.models.events import LogEvent, PropertyValue, ScalarValue
from pglogsink.plugins.registry import WriterArgs, column_writer

_DEFAULT_FORMAT_CONTEXT = DefaultFormatContext()


def _dumps(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), default=str, allow_nan=False)


class PropertyWriteMethod(StrEnum):
    """How `SinglePropertyColumnWriter` renders the property value."""

    RAW = "raw"
    TO_STRING = "to_string"
    JSON = "json"

    @classmethod
    def _missing_(cls, value: object) -> PropertyWriteMethod | None:
        if not isinstance(value, str):
            return None
        key = value.replace("_", "").lower()
        for member in cls:
            if key == member.value.replace("_", ""):
                return member
        return None


def _validate_write_method(value: Any) -> PropertyWriteMethod:
    if isinstance(value, PropertyWriteMethod):
        return value
    if isinstance(value, str):
        try:
            return PropertyWriteMethod(value)
        except ValueError:
            raise ValueError(f"Unknown property write method '{value}'") from None
    raise ValueError(f"Cannot convert {type(value).__name__} to PropertyWriteMethod")


PropertyWriteMethodField = Annotated[PropertyWriteMethod, BeforeValidator(_validate_write_method)]


class PropertiesArgs(WriterArgs):
    db_type: DbTypeField = DbType.JSONB
    exclude: tuple[str, ...] | None = None
    column_length: int | None = None


class SerializedEventArgs(WriterArgs):
    db_type: DbTypeField = DbType.JSONB
    column_length: int | None = None


class SinglePropertyArgs(WriterArgs):
    property_name: str
    write_method: PropertyWriteMethodField = PropertyWriteMethod.RAW
    db_type: DbTypeField = DbType.TEXT
    format: str | None = None
    column_length: int | None = None


@column_writer("PropertiesColumnWriter")
class PropertiesColumnWriter(ColumnWriter):
    """Writes all event properties as one JSON object.

    Top-level members are separated by `", "`; nested values are compact.
    Properties named in `exclude` are skipped. No properties yields `{}`.
    """

    signatures = (PropertiesArgs,)

    def __init__(
        self,
        db_type: DbType = DbType.JSONB,
        exclude: Iterable[str] | None = None,
        column_length: int | None = None,
    ) -> None:
        super().__init__(db_type, column_length)
        self.exclude = frozenset(exclude or ())

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> str:
        members = [
            f"{json.dumps(name)}:{_dumps(value.to_json_data())}"
            for name, value in event.properties.items()
            if name not in self.exclude
        ]
        return "{" + ", ".join(members) + "}"


@column_writer("LogEventSerializedColumnWriter")
class LogEventSerializedColumnWriter(ColumnWriter):
    """Writes the whole event as a JSON document."""

    signatures = (SerializedEventArgs,)

    def __init__(self, db_type: DbType = DbType.JSONB, column_length: int | None = None) -> None:
        super().__init__(db_type, column_length)

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> str:
        data: dict[str, Any] = {
            "Timestamp": event.timestamp.isoformat(),
            "Level": event.level.display_name,
            "MessageTemplate": event.message_template,
        }
        if event.exception is not None:
            data["Exception"] = f"{type(event.exception).__name__}: {event.exception}"
        if event.properties:
            data["Properties"] = {
                name: value.to_json_data() for name, value in event.properties.items()
            }
        return _dumps(data)


@column_writer("SinglePropertyColumnWriter")
class SinglePropertyColumnWriter(ColumnWriter):
    """Writes the value of one named property, or None when it is absent."""

    signatures = (SinglePropertyArgs,)

    def __init__(
        self,
        property_name: str,
        write_method: PropertyWriteMethod = PropertyWriteMethod.RAW,
        db_type: DbType = DbType.TEXT,
        format: str | None = None,
        column_length: int | None = None,
    ) -> None:
        super().__init__(db_type, column_length)
        self.property_name = property_name
        self.write_method = write_method
        self.format = format

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> Any:
        value = event.properties.get(self.property_name)
        if value is None:
            return None

        if self.write_method == PropertyWriteMethod.JSON:
            return _dumps(value.to_json_data())
        if self.write_method == PropertyWriteMethod.TO_STRING:
            return self._to_string(value, format_context or _DEFAULT_FORMAT_CONTEXT)
        if isinstance(value, ScalarValue):
            return value.value
        return _dumps(value.to_json_data())

    def _to_string(self, value: PropertyValue, format_context: FormatContext) -> str:
        if isinstance(value, ScalarValue):
            return format_context.format(value.value, self.format)
        return _dumps(value.to_json_data())
