"""Column writer registry.

Writers register under a configuration name with the `column_writer`
decorator. Each writer lists the argument models it can be constructed from;
the resolver in `pglogsink.config.columns` picks one of them.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict

from pglogsink.interfaces import ColumnWriter

logger = logging.getLogger(__name__)

WriterT = TypeVar("WriterT", bound=type[ColumnWriter])


class WriterArgs(BaseModel):
    """Base for writer constructor signatures.

    Fields without a default are required parameters.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")


class WriterRegistry:
    """Name-keyed registry of concrete column writer classes."""

    def __init__(self) -> None:
        self._writers: dict[str, type[ColumnWriter]] = {}

    def register(self, name: str, writer_cls: type[ColumnWriter]) -> None:
        """Register a writer class.

        Raises:
            ValueError: If the name is already taken
            TypeError: If the class is abstract or declares no signatures
        """
        if name in self._writers:
            raise ValueError(f"Column writer '{name}' is already registered.")
        if inspect.isabstract(writer_cls):
            raise TypeError(f"Column writer {writer_cls.__name__} is abstract")
        if not writer_cls.signatures:
            raise TypeError(f"Column writer {writer_cls.__name__} must define 'signatures'")

        self._writers[name] = writer_cls
        logger.debug("Registered column writer: %s", name)

    def get(self, name: str) -> type[ColumnWriter] | None:
        return self._writers.get(name)

    def names(self) -> list[str]:
        return sorted(self._writers)

    def __contains__(self, name: object) -> bool:
        return name in self._writers


COLUMN_WRITER_REGISTRY = WriterRegistry()


def column_writer(name: str | None = None) -> Callable[[WriterT], WriterT]:
    """Decorator to register a class as a column writer.

    Args:
        name: Configuration name; defaults to the class name
    """

    def decorator(cls: WriterT) -> WriterT:
        COLUMN_WRITER_REGISTRY.register(name or cls.__name__, cls)
        return cls

    return decorator


def get_writer_names() -> list[str]:
    """Get list of registered column writer names."""
    return COLUMN_WRITER_REGISTRY.names()
