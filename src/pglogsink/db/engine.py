"""Database engine factory.

The sink opens one connection per flush and closes it afterwards, so the
engine is built without a pool. Pooling belongs to the layer below (e.g.
PgBouncer) if it is wanted.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from pglogsink.db.dialect import normalize_dsn


def create_async_engine_for_dsn(dsn: str, **extra_kwargs: object) -> AsyncEngine:
    """Create an unpooled async engine for a PostgreSQL DSN.

    Args:
        dsn: URL (`postgresql://...`) or `key=value` connection string
        **extra_kwargs: Additional kwargs passed to create_async_engine

    Raises:
        ValueError: If the DSN is not a PostgreSQL connection string
    """
    engine_kwargs: dict[str, object] = {"poolclass": NullPool}
    engine_kwargs.update(extra_kwargs)
    return create_async_engine(normalize_dsn(dsn), **engine_kwargs)
