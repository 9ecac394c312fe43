"""
Shared fixtures: an in-memory roster with predictable ids and timestamps,
and an API client wired to it.
"""

from __future__ import annotations

import itertools
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from roster.analysis import summarize_roster
from roster.main import app, get_analyzer, get_store
from roster.models import StudentInput
from roster.storage import InMemorySnapshotStore
from roster.store import RosterStore

FIXED_NOW = 1_700_000_000_000


class CountingSnapshotStore(InMemorySnapshotStore):
    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.writes = 0

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        super().set(key, value)


class FailingSnapshotStore(CountingSnapshotStore):
    """Refuses writes while `failing` is set, like a full or read-only disk."""

    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.failing = True

    def set(self, key: str, value: str) -> None:
        if self.failing:
            raise OSError(28, "No space left on device")
        super().set(key, value)


@pytest.fixture
def snapshots() -> CountingSnapshotStore:
    return CountingSnapshotStore()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"s{next(counter)}"


@pytest.fixture
def store(snapshots: CountingSnapshotStore, id_factory: Callable[[], str]) -> RosterStore:
    return RosterStore(snapshots, id_factory=id_factory, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_input() -> Callable[..., StudentInput]:
    def _make(name: str = "Kim", **fields) -> StudentInput:
        return StudentInput(name=name, **fields)

    return _make


@pytest.fixture
def client(store: RosterStore) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_analyzer] = lambda: summarize_roster
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
