"""PostgreSQL connection-string handling and error classification."""

from __future__ import annotations

import shlex
from urllib.parse import quote

from sqlalchemy.exc import DBAPIError, OperationalError

# PostgreSQL SQLSTATE codes that indicate transient/retryable errors
_RETRYABLE_PG_SQLSTATES = frozenset(
    {
        "08000",  # connection_exception
        "08003",  # connection_does_not_exist
        "08006",  # connection_failure
        "08007",  # transaction_resolution_unknown
        "08001",  # sqlclient_unable_to_establish_sqlconnection
        "08004",  # sqlserver_rejected_establishment_of_sqlconnection
        "40P01",  # deadlock_detected
        "40001",  # serialization_failure
        "53300",  # too_many_connections
        "57P01",  # admin_shutdown
        "57P02",  # crash_shutdown
        "57P03",  # cannot_connect_now
    }
)

_URL_SCHEMES = ("postgresql://", "postgres://", "postgresql+asyncpg://")

# Alternate spellings of the URL parts; other keys become query parameters
_KEYWORD_ALIASES = {
    "user id": "user",
    "userid": "user",
    "username": "user",
    "server": "host",
    "database": "dbname",
}


def is_connection_string_reference(value: str) -> bool:
    """Return True if `value` names an entry in a connection-string table.

    Anything that is neither a URL nor a `key=value` connection string is
    treated as a name.
    """
    return "://" not in value and "=" not in value


def keyword_dsn_to_url(dsn: str) -> str:
    """Convert a `key=value` connection string into a postgresql:// URL.

    Accepts libpq style (`host=db user=app`) and semicolon-separated style
    (`Host=db;Username=app;Password=secret`).
    """
    parts: dict[str, str] = {}
    tokens = dsn.split(";") if ";" in dsn else shlex.split(dsn)
    for token in tokens:
        token = token.strip()
        if not token:
            continue
        key, sep, value = token.partition("=")
        if not sep:
            raise ValueError(f"Malformed connection string segment: {token!r}")
        key = key.strip().lower()
        parts[_KEYWORD_ALIASES.get(key, key)] = value.strip()

    user = parts.pop("user", "")
    password = parts.pop("password", "")
    host = parts.pop("host", "localhost")
    port = parts.pop("port", "")
    dbname = parts.pop("dbname", "")

    credentials = ""
    if user:
        credentials = quote(user, safe="")
        if password:
            credentials += ":" + quote(password, safe="")
        credentials += "@"
    netloc = f"{credentials}{host}{':' + port if port else ''}"
    url = f"postgresql://{netloc}/{quote(dbname, safe='')}"
    if parts:
        query = "&".join(f"{quote(k, safe='')}={quote(v, safe='')}" for k, v in parts.items())
        url = f"{url}?{query}"
    return url


def normalize_dsn(dsn: str) -> str:
    """Normalize a DSN to a SQLAlchemy URL using the asyncpg driver.

    Raises:
        ValueError: If the DSN is not a PostgreSQL connection string
    """
    dsn = dsn.strip()
    if "://" not in dsn and "=" in dsn:
        dsn = keyword_dsn_to_url(dsn)
    if not dsn.lower().startswith(_URL_SCHEMES):
        raise ValueError(f"Not a PostgreSQL DSN: {_redact(dsn)}")
    if dsn.startswith("postgresql://"):
        return dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
    if dsn.startswith("postgres://"):
        return dsn.replace("postgres://", "postgresql+asyncpg://", 1)
    return dsn


def is_retryable_error(exc: BaseException) -> bool:
    """Determine if an exception represents a transient, retryable error.

    Checks the exception and its cause chain for connection errors,
    deadlocks, and other conditions that might succeed on retry.
    """
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, OperationalError):
            return True
        if isinstance(current, DBAPIError) and current.connection_invalidated:
            return True
        if isinstance(current, (ConnectionError, TimeoutError)):
            return True
        if _extract_sqlstate(current) in _RETRYABLE_PG_SQLSTATES:
            return True
        current = current.__cause__
    return False


def _extract_sqlstate(exc: BaseException) -> str | None:
    """Extract PostgreSQL SQLSTATE code from an exception."""
    for candidate in (exc, getattr(exc, "orig", None)):
        if candidate is None:
            continue
        # Try different attribute names used by different drivers
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if sqlstate:
            return str(sqlstate)
    return None


def _redact(dsn: str) -> str:
    scheme, sep, rest = dsn.partition("://")
    if not sep or "@" not in rest:
        return dsn
    return f"{scheme}://***@{rest.split('@', 1)[1]}"
