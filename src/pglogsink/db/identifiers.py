"""Identifier rendering shared by DDL, COPY and INSERT.

Every table, schema and column reference the sink emits goes through
`Identifier`, so the names used to write rows always match the names the
table was created with.
"""

from __future__ import annotations

from dataclasses import dataclass

_QUOTE = '"'


def is_quoted(name: str) -> bool:
    return len(name) >= 2 and name.startswith(_QUOTE) and name.endswith(_QUOTE)


def quote_identifier(name: str) -> str:
    """Wrap a name in double quotes; already-quoted names are returned as is."""
    if not name or is_quoted(name):
        return name
    return _QUOTE + name.replace(_QUOTE, _QUOTE * 2) + _QUOTE


def unquote_identifier(name: str) -> str:
    if not is_quoted(name):
        return name
    return name[1:-1].replace(_QUOTE * 2, _QUOTE)


@dataclass(frozen=True)
class Identifier:
    """A single SQL identifier.

    With `respect_case` the name is quoted as written. Without it the name is
    folded to lower case, as PostgreSQL folds unquoted names, and then quoted
    so reserved words and punctuation stay valid.
    """

    name: str
    respect_case: bool = False

    @property
    def sql(self) -> str:
        if is_quoted(self.name):
            return self.name
        if self.respect_case:
            return quote_identifier(self.name)
        return quote_identifier(self.name.lower())

    @property
    def catalog_name(self) -> str:
        """The name as PostgreSQL stores it in the catalog."""
        if is_quoted(self.name):
            return unquote_identifier(self.name)
        if self.respect_case:
            return self.name
        return self.name.lower()

    def __str__(self) -> str:
        return self.sql


@dataclass(frozen=True)
class TableIdentity:
    """Target table: name, optional schema and the case-sensitivity flag."""

    table_name: str
    schema_name: str = ""
    respect_case: bool = False

    @property
    def table(self) -> Identifier:
        return Identifier(self.table_name, self.respect_case)

    @property
    def schema(self) -> Identifier | None:
        if not self.schema_name:
            return None
        return Identifier(self.schema_name, self.respect_case)

    @property
    def qualified_sql(self) -> str:
        schema = self.schema
        if schema is None:
            return self.table.sql
        return f"{schema.sql}.{self.table.sql}"

    def column(self, name: str) -> Identifier:
        return Identifier(name, self.respect_case)

    def __str__(self) -> str:
        return self.qualified_sql
