"""Error hierarchy for the Postgres log sink."""

from __future__ import annotations


class SinkError(Exception):
    """Base exception for all sink errors.

    Preserves the underlying failure via exception chaining.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ResolutionError(SinkError):
    """A column writer could not be built from configuration."""

    def __init__(
        self, message: str, column: str | None = None, cause: Exception | None = None
    ) -> None:
        super().__init__(message, cause=cause)
        self.column = column


class ConfigurationMissing(ResolutionError):
    """The configuration section holding column specs is absent."""

    def __init__(self, section: str, path: str | None) -> None:
        super().__init__(
            f"'{section}' section not found in provided configuration path: {path or '<root>'}"
        )
        self.section = section
        self.path = path


class UnsupportedTypeError(SinkError):
    """A column type has no PostgreSQL rendering."""

    def __init__(self, db_type: object) -> None:
        super().__init__(f"Cannot automatically create column of type {db_type!r}")
        self.db_type = db_type


class PersistenceError(SinkError):
    """Database-layer failure while creating the table or writing a batch."""

    def __init__(
        self,
        table: str,
        stage: str,
        cause: Exception,
        rows_committed: int = 0,
    ) -> None:
        super().__init__(f"Writing to {table} failed at stage '{stage}': {cause}", cause=cause)
        self.table = table
        self.stage = stage
        self.rows_committed = rows_committed
