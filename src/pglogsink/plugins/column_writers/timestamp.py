"""Event timestamp writer."""

from __future__ import annotations

from datetime import datetime

from pglogsink.db.types import DbType, DbTypeField
from pglogsink.interfaces import ColumnWriter, FormatContext
from pglogsink.models.events import LogEvent
from pglogsink.plugins.registry import WriterArgs, column_writer


class TimestampArgs(WriterArgs):
    db_type: DbTypeField = DbType.TIMESTAMP
    column_length: int | None = None


@column_writer("TimestampColumnWriter")
class TimestampColumnWriter(ColumnWriter):
    """Writes the event timestamp.

    For `timestamptz` columns the aware timestamp is written unchanged. For any
    other type the offset is dropped and the wall-clock value the event was
    stamped with is stored.
    """

    signatures = (TimestampArgs,)

    def __init__(self, db_type: DbType = DbType.TIMESTAMP, column_length: int | None = None) -> None:
        super().__init__(db_type, column_length)

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> datetime:
        if self.db_type == DbType.TIMESTAMP_TZ:
            return event.timestamp
        return event.timestamp.replace(tzinfo=None)
