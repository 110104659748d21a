"""Configuration loading and column resolution."""

from pglogsink.config.columns import (
    ColumnMapping,
    WriterResolver,
    default_columns,
    get_section,
    resolve_columns,
)
from pglogsink.config.loader import (
    ConfigError,
    ConfigErrorCode,
    LoadedConfig,
    build_sink,
    load_config,
    load_config_from_dict,
    resolve_connection_string,
)

__all__ = [
    "ColumnMapping",
    "ConfigError",
    "ConfigErrorCode",
    "LoadedConfig",
    "WriterResolver",
    "build_sink",
    "default_columns",
    "get_section",
    "load_config",
    "load_config_from_dict",
    "resolve_columns",
    "resolve_connection_string",
]
