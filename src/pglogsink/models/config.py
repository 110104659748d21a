"""Configuration models for the sink section."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SinkOptions(BaseModel):
    """Sink construction parameters read from the `Sink` section."""

    model_config = ConfigDict(extra="forbid")

    connection_string: str
    table_name: str = "logs"
    schema_name: str = ""
    respect_case: bool = False
    need_auto_create_table: bool = False
    use_copy: bool = True
    configuration_path: str | None = None

    @field_validator("table_name")
    @classmethod
    def _require_table_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("table_name must not be empty")
        return value


class RawConfig(BaseModel):
    """Top-level configuration document.

    Only the `Sink` and `ConnectionStrings` sections are validated here; the
    `Columns` block (possibly nested under `configuration_path`) is resolved
    separately from the raw mapping.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sink: SinkOptions = Field(alias="Sink")
    connection_strings: dict[str, str] = Field(default_factory=dict, alias="ConnectionStrings")
