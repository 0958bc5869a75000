"""Shared fixtures: an in-memory record store seeded with a weekly schedule."""

import pytest

from tablebook.app.core.config import settings
from tablebook.app.db.repositories import ReservationRepository, ScheduleRepository
from tablebook.app.db.session import get_store
from tablebook.app.db.store import MemoryStore
from tablebook.app.main import app
from tablebook.app.routers.deps import get_policy, get_today
from tablebook.tests.support import (
    CANCELLED,
    CONFIRMED,
    END_FIELD,
    EXCEPTIONS,
    HOURS,
    POLICY,
    REQUEST_KEY_FIELD,
    RESERVATIONS,
    TODAY,
    seed_schedule,
)


@pytest.fixture
def store() -> MemoryStore:
    store = MemoryStore()
    seed_schedule(store)
    return store


@pytest.fixture
def reservation_repo(store: MemoryStore) -> ReservationRepository:
    return ReservationRepository(
        store,
        table=RESERVATIONS,
        status_confirmed=CONFIRMED,
        status_cancelled=CANCELLED,
        end_field=END_FIELD,
        request_key_field=REQUEST_KEY_FIELD,
    )


@pytest.fixture
def schedule_repo(store: MemoryStore) -> ScheduleRepository:
    return ScheduleRepository(store, hours_table=HOURS, exceptions_table=EXCEPTIONS)


@pytest.fixture
def api(store: MemoryStore):
    """Point the app at the seeded store with a fixed clock and policy."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_policy] = lambda: POLICY
    yield store
    app.dependency_overrides.clear()


@pytest.fixture
def optional_columns(monkeypatch):
    """A base that also has the end time and request key columns."""
    monkeypatch.setattr(settings, "RESERVATION_END_FIELD", END_FIELD)
    monkeypatch.setattr(settings, "RESERVATION_REQUEST_KEY_FIELD", REQUEST_KEY_FIELD)
