"""Test data helpers shared by the fixtures and the test modules."""

from datetime import date

from tablebook.app.core.config import BookingPolicy, settings
from tablebook.app.core.errors import RepositoryUnavailable
from tablebook.app.db.store import MemoryStore
from tablebook.app.services.dates import WEEKDAY_NAMES


# Friday; 2025-06-01 is the Sunday after
TODAY = date(2025, 5, 30)
POLICY = BookingPolicy(max_capacity=10, slot_duration_minutes=120)

RESERVATIONS = settings.RESERVATIONS_TABLE
HOURS = settings.OPENING_HOURS_TABLE
EXCEPTIONS = settings.DATE_EXCEPTIONS_TABLE
CONFIRMED = settings.STATUS_CONFIRMED
CANCELLED = settings.STATUS_CANCELLED

END_FIELD = "end_time"
REQUEST_KEY_FIELD = "request_key"


class FailingReservationsStore(MemoryStore):
    """Schedule reads work, reservation reads time out."""

    async def query(self, table, record_filter=None):
        if table == RESERVATIONS:
            raise RepositoryUnavailable("Record store unreachable")
        return await super().query(table, record_filter)


def seed_schedule(store: MemoryStore) -> None:
    for weekday in WEEKDAY_NAMES:
        store.add(HOURS, {"weekday": weekday, "open": "12:00", "close": "22:00"})
    store.add(EXCEPTIONS, {"date": "2025-06-03", "closed": True, "reason": "Private event"})


def add_reservation(
    store: MemoryStore,
    *,
    day: str = "2025-06-01",
    time: str | int = "18:00",
    guests: int = 2,
    name: str = "Guest",
    phone: str = "+49 171 5550100",
    status: str = CONFIRMED,
    created_time: str | None = None,
    **extra,
):
    return store.add(
        RESERVATIONS,
        {
            "name": name,
            "date": day,
            "time_text": time,
            "guests": guests,
            "phone": phone,
            "status": status,
            **extra,
        },
        created_time=created_time,
    )
