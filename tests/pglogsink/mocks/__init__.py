"""Mock implementations for testing."""

from tests.pglogsink.mocks.database import FAKE_DSN, MockDatabase, MockSinkConnection
from tests.pglogsink.mocks.events import make_events

__all__ = [
    "FAKE_DSN",
    "MockDatabase",
    "MockSinkConnection",
    "make_events",
]
