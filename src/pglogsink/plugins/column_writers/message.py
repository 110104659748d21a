"""Writers for message text and exceptions."""

from __future__ import annotations

import traceback
from typing import Any

from pglogsink.db.types import DbType, DbTypeField
from pglogsink.interfaces import ColumnWriter, FormatContext
from pglogsink.models.events import LogEvent
from pglogsink.plugins.registry import WriterArgs, column_writer


class TextColumnArgs(WriterArgs):
    db_type: DbTypeField = DbType.TEXT
    column_length: int | None = None


@column_writer("RenderedMessageColumnWriter")
class RenderedMessageColumnWriter(ColumnWriter):
    """Writes the message with its properties substituted."""

    signatures = (TextColumnArgs,)

    def __init__(self, db_type: DbType = DbType.TEXT, column_length: int | None = None) -> None:
        super().__init__(db_type, column_length)

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> Any:
        return event.rendered_message


@column_writer("MessageTemplateColumnWriter")
class MessageTemplateColumnWriter(ColumnWriter):
    """Writes the raw message template."""

    signatures = (TextColumnArgs,)

    def __init__(self, db_type: DbType = DbType.TEXT, column_length: int | None = None) -> None:
        super().__init__(db_type, column_length)

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> Any:
        return event.message_template


@column_writer("ExceptionColumnWriter")
class ExceptionColumnWriter(ColumnWriter):
    """Writes the formatted traceback of the attached exception, if any."""

    signatures = (TextColumnArgs,)

    def __init__(self, db_type: DbType = DbType.TEXT, column_length: int | None = None) -> None:
        super().__init__(db_type, column_length)

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> Any:
        if event.exception is None:
            return None
        return "".join(traceback.format_exception(event.exception))
