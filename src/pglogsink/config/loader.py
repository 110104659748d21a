"""Configuration loading and validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from pglogsink.config.columns import ColumnMapping, resolve_columns
from pglogsink.db.dialect import is_connection_string_reference
from pglogsink.interfaces import FormatContext
from pglogsink.models.config import RawConfig, SinkOptions
from pglogsink.plugins.registry import WriterRegistry
from pglogsink.sink import ConnectionFactory, PostgresSink


class ConfigErrorCode(str, Enum):
    """Stable config error codes."""

    FILE_NOT_FOUND = "CONFIG_FILE_NOT_FOUND"
    YAML_INVALID = "CONFIG_YAML_INVALID"
    EMPTY_FILE = "CONFIG_EMPTY_FILE"
    ROOT_NOT_MAPPING = "CONFIG_ROOT_NOT_MAPPING"
    VALIDATION_FAILED = "CONFIG_VALIDATION_FAILED"
    CONNECTION_STRING_MISSING = "CONFIG_CONNECTION_STRING_MISSING"
    UNKNOWN = "CONFIG_UNKNOWN"


class ConfigError(Exception):
    """Configuration loading or validation error."""

    def __init__(
        self,
        message: str,
        *,
        code: ConfigErrorCode = ConfigErrorCode.UNKNOWN,
        path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.path = path
        self.__cause__ = cause


@dataclass(frozen=True)
class LoadedConfig:
    """Validated sink options with the resolved column writers."""

    options: SinkOptions
    connection_string: str
    columns: ColumnMapping


def load_config(path: Path, registry: WriterRegistry | None = None) -> LoadedConfig:
    """Load and validate configuration from a YAML (or JSON) file.

    Args:
        path: Path to the config file
        registry: Writer registry; defaults to the discovered global registry

    Returns:
        Validated configuration with resolved columns

    Raises:
        ConfigError: If the file is missing, unparsable, or invalid
        ResolutionError: If a column spec cannot be resolved
    """
    if not path.exists():
        raise ConfigError(
            f"Config file not found: {path}",
            code=ConfigErrorCode.FILE_NOT_FOUND,
            path=path,
        )

    try:
        with path.open() as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}: {e}",
            code=ConfigErrorCode.YAML_INVALID,
            path=path,
            cause=e,
        ) from e

    if raw is None:
        raise ConfigError(
            f"Config file is empty: {path}",
            code=ConfigErrorCode.EMPTY_FILE,
            path=path,
        )

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Config must be a YAML mapping, got {type(raw).__name__}",
            code=ConfigErrorCode.ROOT_NOT_MAPPING,
            path=path,
        )

    return _load(raw, path=path, registry=registry)


def load_config_from_dict(
    data: Mapping[str, Any], registry: WriterRegistry | None = None
) -> LoadedConfig:
    """Load and validate configuration from a dict (useful for testing).

    Raises:
        ConfigError: If validation fails
        ResolutionError: If a column spec cannot be resolved
    """
    return _load(data, path=None, registry=registry)


def _load(
    data: Mapping[str, Any], *, path: Path | None, registry: WriterRegistry | None
) -> LoadedConfig:
    try:
        config = RawConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            format_validation_error(e, path),
            code=ConfigErrorCode.VALIDATION_FAILED,
            path=path,
            cause=e,
        ) from e

    options = config.sink
    connection_string = resolve_connection_string(
        options.connection_string, config.connection_strings, path=path
    )

    columns = resolve_columns(data, options.configuration_path, registry=registry)

    return LoadedConfig(options=options, connection_string=connection_string, columns=columns)


def resolve_connection_string(
    value: str, connection_strings: Mapping[str, str], *, path: Path | None = None
) -> str:
    """Return `value` itself, or the named entry from `ConnectionStrings`.

    Raises:
        ConfigError: If `value` is a name with no matching entry
    """
    if not is_connection_string_reference(value):
        return value
    resolved = connection_strings.get(value)
    if resolved is None:
        raise ConfigError(
            f"Connection string '{value}' not found in ConnectionStrings",
            code=ConfigErrorCode.CONNECTION_STRING_MISSING,
            path=path,
        )
    return resolved


def build_sink(
    config: LoadedConfig,
    *,
    format_context: FormatContext | None = None,
    connection_factory: ConnectionFactory | None = None,
) -> PostgresSink:
    """Construct the sink described by a loaded configuration."""
    options = config.options
    return PostgresSink(
        config.connection_string,
        options.table_name,
        config.columns,
        schema_name=options.schema_name,
        respect_case=options.respect_case,
        need_auto_create_table=options.need_auto_create_table,
        use_copy=options.use_copy,
        format_context=format_context,
        connection_factory=connection_factory,
    )


def format_validation_error(e: ValidationError, path: Path | None = None) -> str:
    """Format Pydantic validation error for human readability."""
    prefix = f"Config validation failed ({path}):" if path else "Config validation failed:"
    errors = []
    for err in e.errors():
        loc = " -> ".join(str(x) for x in err["loc"])
        msg = err["msg"]
        errors.append(f"  {loc}: {msg}")
    return prefix + "\n" + "\n".join(errors)
