"""
Shared test fixtures.

Every test gets its own SQLite file under tmp_path and a controllable clock,
so timestamps (and therefore snapshot boundaries) are exact.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest

from chronograph.config import Config
from chronograph.core.graph_store.sqlite_store import SQLiteGraphStore
from chronograph.services.engine import TemporalGraphEngine


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def store(tmp_path) -> AsyncGenerator[SQLiteGraphStore, None]:
    """Initialized SQLite store on a temporary file."""
    graph_store = SQLiteGraphStore(db_path=str(tmp_path / "graph.db"))
    await graph_store.initialize()
    yield graph_store
    await graph_store.close()


@pytest.fixture
async def engine(store, clock) -> TemporalGraphEngine:
    return TemporalGraphEngine(graph_store=store, config=Config(), clock=clock)


@pytest.fixture
def graph(engine):
    return engine.graph


@pytest.fixture
def event_log(engine):
    return engine.event_log


@pytest.fixture
def status(engine):
    return engine.status
