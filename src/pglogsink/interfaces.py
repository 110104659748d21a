"""Interface definitions for sink components."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from pydantic import BaseModel

    from pglogsink.db.types import DbType
    from pglogsink.models.events import LogEvent


class FormatContext(ABC):
    """Formatting hook used when writers render values as text."""

    @abstractmethod
    def format(self, value: Any, spec: str | None = None) -> str:
        raise NotImplementedError


class DefaultFormatContext(FormatContext):
    """Renders with the built-in `format()`.

    Strings are quoted unless the spec is `"l"` (literal).
    """

    def format(self, value: Any, spec: str | None = None) -> str:
        if isinstance(value, str):
            return value if spec == "l" else f'"{value}"'
        if value is None:
            return "null"
        if spec and spec != "l":
            return format(value, spec)
        return str(value)


class ColumnWriter(ABC):
    """Extracts the value of one table column from a log event.

    Implementations must be side-effect free and safe to call concurrently for
    different events. `signatures` lists the argument models the resolver may
    construct the writer from; each model's fields are keyword arguments of
    `__init__`.
    """

    signatures: ClassVar[tuple[type[BaseModel], ...]] = ()

    def __init__(self, db_type: DbType, column_length: int | None = None) -> None:
        self.db_type = db_type
        self.column_length = column_length

    @abstractmethod
    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> Any:
        """Return the column value for `event`."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(db_type={self.db_type!s}, column_length={self.column_length})"
