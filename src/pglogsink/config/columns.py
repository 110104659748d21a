"""Resolve declarative column configuration into column writers.

A `Columns` block maps column names to writer specs, either a bare writer
name or a `{Name, Args}` mapping:

    Columns:
      message: RenderedMessageColumnWriter
      level:
        Name: LevelColumnWriter
        Args: {renderAsText: true, dbType: Varchar}

Writers list their constructors as argument models (`signatures`). For the
`{Name, Args}` form the resolver picks, among signatures whose required
parameters all appear in `Args`, the one that consumes the most arguments.
When several signatures consume the same number of arguments, the one
declared first wins.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from pglogsink.errors import ConfigurationMissing, ResolutionError
from pglogsink.interfaces import ColumnWriter
from pglogsink.plugins import discover_column_writers
from pglogsink.plugins.registry import COLUMN_WRITER_REGISTRY, WriterRegistry

logger = logging.getLogger(__name__)

COLUMNS_SECTION = "Columns"
PATH_SEPARATOR = ":"

ColumnMapping = dict[str, ColumnWriter]


def _normalize_key(key: str) -> str:
    return key.replace("_", "").lower()


def get_child(section: Mapping[str, Any], key: str) -> Any:
    """Look up a child section; keys match case-insensitively."""
    if key in section:
        return section[key]
    wanted = key.lower()
    for candidate, value in section.items():
        if str(candidate).lower() == wanted:
            return value
    return None


def get_section(config: Mapping[str, Any], path: str | None) -> Mapping[str, Any] | None:
    """Walk a `:`-separated path into a configuration mapping.

    Returns None when any segment is missing or is not a mapping.
    """
    section: Any = config
    if path:
        for key in path.split(PATH_SEPARATOR):
            if not isinstance(section, Mapping):
                return None
            section = get_child(section, key)
    return section if isinstance(section, Mapping) else None


class WriterResolver:
    """Builds column writers from configuration using a writer registry."""

    def __init__(self, registry: WriterRegistry | None = None) -> None:
        if registry is None:
            discover_column_writers()
            registry = COLUMN_WRITER_REGISTRY
        self._registry = registry

    def resolve_columns(
        self, config: Mapping[str, Any], configuration_path: str | None = None
    ) -> ColumnMapping:
        """Resolve the `Columns` block found under `configuration_path`.

        Args:
            config: Root configuration mapping
            configuration_path: Optional `:`-separated path to the section
                holding `Columns`

        Returns:
            Column name to writer, in declaration order

        Raises:
            ConfigurationMissing: If there is no `Columns` section at the path
            ResolutionError: If any column spec cannot be resolved
        """
        root = get_section(config, configuration_path)
        columns = get_child(root, COLUMNS_SECTION) if root is not None else None
        if not isinstance(columns, Mapping):
            raise ConfigurationMissing(COLUMNS_SECTION, configuration_path)

        mapping: ColumnMapping = {}
        for column_name, spec in columns.items():
            mapping[str(column_name)] = self.resolve(str(column_name), spec)
        logger.debug("Resolved %d column writers: %s", len(mapping), list(mapping))
        return mapping

    def resolve(self, column: str, spec: Any) -> ColumnWriter:
        """Build the writer for one column spec (bare name or `{Name, Args}`)."""
        if isinstance(spec, str):
            return self._from_name(column, spec)

        if not isinstance(spec, Mapping):
            raise ResolutionError(
                f"Column '{column}' must be a writer name or a mapping with 'Name'", column=column
            )

        type_name = get_child(spec, "Name")
        if not isinstance(type_name, str) or not type_name:
            raise ResolutionError(
                f"The configuration value for column '{column}' has no 'Name' element.",
                column=column,
            )
        args = get_child(spec, "Args") or {}
        if not isinstance(args, Mapping):
            raise ResolutionError(f"'Args' for column '{column}' must be a mapping", column=column)
        return self._from_args(column, type_name, args)

    def _lookup(self, column: str, type_name: str) -> type[ColumnWriter]:
        writer_cls = self._registry.get(type_name)
        if writer_cls is None:
            available = ", ".join(self._registry.names())
            raise ResolutionError(
                f"Cannot create writer of type {type_name} for column {column}: "
                f"unknown writer. Available: {available}",
                column=column,
            )
        return writer_cls

    def _from_name(self, column: str, type_name: str) -> ColumnWriter:
        writer_cls = self._lookup(column, type_name)
        defaulted = [
            signature
            for signature in writer_cls.signatures
            if not any(field.is_required() for field in signature.model_fields.values())
        ]
        if not defaulted:
            raise ResolutionError(
                f"Cannot create writer of type {type_name} for column {column}: "
                "it has no constructor without required arguments",
                column=column,
            )
        signature = min(defaulted, key=lambda s: len(s.model_fields))
        return self._build(column, writer_cls, signature, {})

    def _from_args(self, column: str, type_name: str, args: Mapping[str, Any]) -> ColumnWriter:
        writer_cls = self._lookup(column, type_name)
        supplied = {_normalize_key(str(key)): value for key, value in args.items()}

        candidates: list[tuple[int, type[BaseModel], dict[str, Any]]] = []
        for signature in writer_cls.signatures:
            fields = signature.model_fields
            if any(
                field.is_required() and _normalize_key(name) not in supplied
                for name, field in fields.items()
            ):
                continue
            bound = {
                name: supplied[_normalize_key(name)]
                for name in fields
                if _normalize_key(name) in supplied
            }
            candidates.append((len(bound), signature, bound))

        if not candidates:
            raise ResolutionError(
                f"Cannot create writer of type {type_name} for column {column}: "
                "no suitable constructors found",
                column=column,
            )

        # max() keeps the first of equally good candidates.
        _, signature, bound = max(candidates, key=lambda candidate: candidate[0])
        return self._build(column, writer_cls, signature, bound)

    def _build(
        self,
        column: str,
        writer_cls: type[ColumnWriter],
        signature: type[BaseModel],
        bound: dict[str, Any],
    ) -> ColumnWriter:
        try:
            arguments = signature.model_validate(bound)
        except ValidationError as exc:
            raise ResolutionError(
                f"Invalid arguments for {writer_cls.__name__} in column {column}: {exc}",
                column=column,
                cause=exc,
            ) from exc
        return writer_cls(**dict(arguments))


def resolve_columns(
    config: Mapping[str, Any],
    configuration_path: str | None = None,
    registry: WriterRegistry | None = None,
) -> ColumnMapping:
    """Public API to resolve the `Columns` block of a configuration mapping."""
    return WriterResolver(registry).resolve_columns(config, configuration_path)


def default_columns() -> ColumnMapping:
    """Column set used when a sink is constructed without columns."""
    from pglogsink.plugins.column_writers.level import LevelColumnWriter
    from pglogsink.plugins.column_writers.message import (
        ExceptionColumnWriter,
        MessageTemplateColumnWriter,
        RenderedMessageColumnWriter,
    )
    from pglogsink.plugins.column_writers.properties import (
        LogEventSerializedColumnWriter,
        PropertiesColumnWriter,
        PropertyWriteMethod,
        SinglePropertyColumnWriter,
    )
    from pglogsink.plugins.column_writers.timestamp import TimestampColumnWriter

    return {
        "message": RenderedMessageColumnWriter(),
        "message_template": MessageTemplateColumnWriter(),
        "level": LevelColumnWriter(),
        "raise_date": TimestampColumnWriter(),
        "exception": ExceptionColumnWriter(),
        "properties": LogEventSerializedColumnWriter(),
        "props_test": PropertiesColumnWriter(),
        "machine_name": SinglePropertyColumnWriter(
            "MachineName", PropertyWriteMethod.TO_STRING, format="l"
        ),
    }
