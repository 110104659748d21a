"""Shared utilities for column writer discovery."""

from __future__ import annotations

from collections.abc import Iterable
from importlib import metadata


def iter_entry_points(group: str) -> Iterable[metadata.EntryPoint]:
    """Iterate entry points registered under `group`.

    Args:
        group: Entry point group name (e.g., "pglogsink.column_writers")
    """
    return metadata.entry_points(group=group)
