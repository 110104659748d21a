"""Severity level writer."""

from __future__ import annotations

from typing import Any

from pglogsink.db.types import DbType, DbTypeField
from pglogsink.interfaces import ColumnWriter, FormatContext
from pglogsink.models.events import LogEvent
from pglogsink.plugins.registry import WriterArgs, column_writer


class LevelArgs(WriterArgs):
    render_as_text: bool = False
    db_type: DbTypeField = DbType.INTEGER
    column_length: int | None = None


@column_writer("LevelColumnWriter")
class LevelColumnWriter(ColumnWriter):
    """Writes the level as its number (0-5) or, with `render_as_text`, its name."""

    signatures = (LevelArgs,)

    def __init__(
        self,
        render_as_text: bool = False,
        db_type: DbType = DbType.INTEGER,
        column_length: int | None = None,
    ) -> None:
        super().__init__(db_type, column_length)
        self.render_as_text = render_as_text

    def get_value(self, event: LogEvent, format_context: FormatContext | None = None) -> Any:
        if self.render_as_text:
            return event.level.display_name
        return int(event.level)
