"""Abstract column types and their PostgreSQL renderings."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any

from pydantic import BeforeValidator

from pglogsink.errors import UnsupportedTypeError

DEFAULT_CHAR_LENGTH = 50
DEFAULT_VARCHAR_LENGTH = 50
DEFAULT_BIT_LENGTH = 8


class DbType(StrEnum):
    """Column types a writer can declare.

    Parsing is lenient so configuration can use either the value
    (`"timestamptz"`) or a member-style spelling (`"TimestampTZ"`,
    `"TIMESTAMP_TZ"`).
    """

    BIGINT = "bigint"
    DOUBLE = "double"
    INTEGER = "integer"
    NUMERIC = "numeric"
    REAL = "real"
    SMALLINT = "smallint"
    BOOLEAN = "boolean"
    MONEY = "money"
    CHAR = "char"
    TEXT = "text"
    VARCHAR = "varchar"
    BYTEA = "bytea"
    DATE = "date"
    TIME = "time"
    TIME_TZ = "timetz"
    TIMESTAMP = "timestamp"
    TIMESTAMP_TZ = "timestamptz"
    INTERVAL = "interval"
    INET = "inet"
    CIDR = "cidr"
    MACADDR = "macaddr"
    BIT = "bit"
    VARBIT = "varbit"
    UUID = "uuid"
    XML = "xml"
    JSON = "json"
    JSONB = "jsonb"

    @classmethod
    def _missing_(cls, value: object) -> DbType | None:
        if not isinstance(value, str):
            return None
        key = value.replace("_", "").replace(" ", "").lower()
        for member in cls:
            if key in (member.value, member.name.replace("_", "").lower()):
                return member
        return None


_SIZED_TYPES: dict[DbType, tuple[str, int]] = {
    DbType.CHAR: ("character({})", DEFAULT_CHAR_LENGTH),
    DbType.VARCHAR: ("character varying({})", DEFAULT_VARCHAR_LENGTH),
    DbType.BIT: ("bit({})", DEFAULT_BIT_LENGTH),
    DbType.VARBIT: ("bit varying({})", DEFAULT_BIT_LENGTH),
}

_PLAIN_TYPES: dict[DbType, str] = {
    DbType.BIGINT: "bigint",
    DbType.DOUBLE: "double precision",
    DbType.INTEGER: "integer",
    DbType.NUMERIC: "numeric",
    DbType.REAL: "real",
    DbType.SMALLINT: "smallint",
    DbType.BOOLEAN: "boolean",
    DbType.MONEY: "money",
    DbType.TEXT: "text",
    DbType.BYTEA: "bytea",
    DbType.DATE: "date",
    DbType.TIME: "time",
    DbType.TIME_TZ: "time with time zone",
    DbType.TIMESTAMP: "timestamp",
    DbType.TIMESTAMP_TZ: "timestamp with time zone",
    DbType.INTERVAL: "interval",
    DbType.INET: "inet",
    DbType.CIDR: "cidr",
    DbType.MACADDR: "macaddr",
    DbType.UUID: "uuid",
    DbType.XML: "xml",
    DbType.JSON: "json",
    DbType.JSONB: "jsonb",
}


def sql_type(db_type: Any, length: int | None = None) -> str:
    """Render the PostgreSQL type for a column.

    Args:
        db_type: Declared column type
        length: Optional size for character and bit types

    Returns:
        Type syntax usable in CREATE TABLE

    Raises:
        UnsupportedTypeError: If the type has no rendering
    """
    try:
        sized = _SIZED_TYPES.get(db_type)
        plain = _PLAIN_TYPES.get(db_type)
    except TypeError:
        raise UnsupportedTypeError(db_type) from None
    if sized is not None:
        template, default_length = sized
        return template.format(length if length is not None else default_length)
    if plain is None:
        raise UnsupportedTypeError(db_type)
    return plain


def _validate_db_type(value: Any) -> DbType:
    """Validate and convert configuration input to DbType.

    Accepts a DbType member or a string in any of the spellings `DbType`
    understands ("Varchar", "TimestampTZ", "timestamp_tz").
    """
    if isinstance(value, DbType):
        return value
    if isinstance(value, str):
        try:
            return DbType(value)
        except ValueError:
            valid = ", ".join(member.value for member in DbType)
            raise ValueError(f"Unknown column type '{value}'. Valid: {valid}") from None
    raise ValueError(f"Cannot convert {type(value).__name__} to DbType")


DbTypeField = Annotated[DbType, BeforeValidator(_validate_db_type)]
