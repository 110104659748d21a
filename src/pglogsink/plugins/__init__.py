"""Column writer discovery."""

import importlib
import logging
import pkgutil

from pglogsink.plugins.utils import iter_entry_points

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "pglogsink.column_writers"


def discover_column_writers() -> None:
    """Discover and register all column writers (built-in and external).

    Built-in writers are registered by importing every module of
    `pglogsink.plugins.column_writers`; external writers by importing the
    modules named by entry points. Registration happens in the
    `column_writer` decorator at import time.
    """
    package = importlib.import_module("pglogsink.plugins.column_writers")
    for _, module_name, _ in pkgutil.iter_modules(package.__path__):
        if module_name.startswith("_"):
            continue
        importlib.import_module(f"pglogsink.plugins.column_writers.{module_name}")

    for point in iter_entry_points(ENTRY_POINT_GROUP):
        try:
            importlib.import_module(point.module)
        except Exception as exc:
            logger.error(
                "Failed to load external column writer %s from %s: %s",
                point.name,
                point.module,
                exc,
                exc_info=True,
            )


__all__ = ["ENTRY_POINT_GROUP", "discover_column_writers"]
