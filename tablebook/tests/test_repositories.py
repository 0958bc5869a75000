from datetime import date
import json

import httpx
import pytest

from tablebook.app.core.errors import ClosedOnDate, OutsideOpeningHours
from tablebook.app.db.repositories import ReservationRepository, digits
from tablebook.app.db.store import AirtableStore
from tablebook.app.services.reservations import latest_start, pick_cancellation_target, require_open
from tablebook.app.services.types import OpeningWindow, Reservation, ReservationDraft
from tablebook.tests.support import CANCELLED, CONFIRMED, RESERVATIONS, add_reservation


DAY = date(2025, 6, 1)


def _reservation(rid, start, *, phone="+49 171 5550100", created="2025-05-01T10:00:00+00:00"):
    return Reservation(
        id=rid,
        day=DAY,
        start_minutes=start,
        party_size=2,
        name="",
        phone=phone,
        status=CONFIRMED,
        created_time=created,
    )


def test_digits_ignores_formatting():
    assert digits("+49 (171) 555-0100") == "491715550100"
    assert digits(None) == ""


@pytest.mark.asyncio
async def test_records_map_to_reservations(store, reservation_repo):
    add_reservation(store, time="19:30", guests=4, name="Anna")
    add_reservation(store, time=68400, guests=2)  # seconds since midnight
    store.add(RESERVATIONS, {"date": "", "time_text": "19:00", "guests": 2, "status": CONFIRMED})
    store.add(RESERVATIONS, {"date": "2025-06-01", "time_text": "soon", "guests": "two", "status": CONFIRMED})

    found = await reservation_repo.list_confirmed(DAY)

    assert [(r.start_minutes, r.party_size) for r in found] == [(1170, 4), (1140, 2), (None, 0)]
    assert found[0].name == "Anna"


@pytest.mark.asyncio
async def test_list_since_excludes_past_and_cancelled(store, reservation_repo):
    add_reservation(store, day="2025-05-29")
    add_reservation(store, day="2025-05-30", name="Today")
    add_reservation(store, day="2025-06-02", name="Cancelled", status=CANCELLED)

    found = await reservation_repo.list_confirmed_since(date(2025, 5, 30))

    assert [r.name for r in found] == ["Today"]


@pytest.mark.asyncio
async def test_insert_then_cancel(store, reservation_repo):
    created = await reservation_repo.insert(
        ReservationDraft(
            day=DAY,
            start_minutes=19 * 60,
            end_minutes=21 * 60,
            party_size=3,
            name="Ben",
            phone="",
            request_key="call_1",
        )
    )

    assert created.start_minutes == 1140
    assert (await reservation_repo.find_by_request_key("call_1")).id == created.id
    assert await reservation_repo.find_by_request_key("call_2") is None

    await reservation_repo.mark_cancelled(created.id)

    assert (await reservation_repo.get(created.id)).status == CANCELLED
    assert await reservation_repo.list_confirmed(DAY) == []


def _airtable_repo(handler, **columns) -> ReservationRepository:
    store = AirtableStore(
        token="pat-test",
        base_id="appBase",
        backoff_seconds=0,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return ReservationRepository(
        store,
        table=RESERVATIONS,
        status_confirmed=CONFIRMED,
        status_cancelled=CANCELLED,
        **columns,
    )


_DRAFT = ReservationDraft(
    day=DAY,
    start_minutes=19 * 60,
    end_minutes=21 * 60,
    party_size=2,
    name="Anna",
    phone="+49 171 5550100",
    request_key="call_1",
)


@pytest.mark.asyncio
async def test_base_without_optional_columns_is_never_sent_them():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": "recNew", "fields": body["fields"]})

    repo = _airtable_repo(handler)

    assert await repo.find_by_request_key("call_1") is None
    assert requests == []

    created = await repo.insert(_DRAFT)

    [sent] = requests
    assert set(json.loads(sent.content)["fields"]) == {"name", "date", "time_text", "guests", "phone", "status"}
    assert created.request_key is None


@pytest.mark.asyncio
async def test_configured_optional_columns_are_written_and_queried():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"records": []})
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": "recNew", "fields": body["fields"]})

    repo = _airtable_repo(handler, end_field="Ende", request_key_field="Anfrage")

    assert await repo.find_by_request_key("call_1") is None
    created = await repo.insert(_DRAFT)

    assert requests[0].url.params["filterByFormula"] == "{Anfrage}='call_1'"
    fields = json.loads(requests[1].content)["fields"]
    assert (fields["Ende"], fields["Anfrage"]) == ("21:00", "call_1")
    assert created.request_key == "call_1"


def test_cancellation_prefers_exact_time_then_oldest():
    early = _reservation("rec1", 18 * 60)
    exact_new = _reservation("rec2", 19 * 60, created="2025-05-03T10:00:00+00:00")
    exact_old = _reservation("rec3", 19 * 60, created="2025-05-02T10:00:00+00:00")

    assert pick_cancellation_target([early, exact_new, exact_old], 19 * 60, None) == exact_old
    assert pick_cancellation_target([early], 19 * 60, "+49 171 5550100") == early
    assert pick_cancellation_target([early], 19 * 60, None) is None
    assert pick_cancellation_target([early], 18 * 60, "+49 30 1234567") is None


def test_latest_start_and_opening_checks():
    window = OpeningWindow.open_between(12 * 60, 22 * 60)

    assert latest_start(window, 120) == 20 * 60
    assert latest_start(OpeningWindow.open_between(12 * 60, 13 * 60), 120) is None
    require_open(window, 20 * 60, 120, DAY)
    require_open(window, 12 * 60, 120, DAY)

    with pytest.raises(OutsideOpeningHours) as info:
        require_open(window, 20 * 60 + 1, 120, DAY)
    assert info.value.extra["latestStart"] == "20:00"

    with pytest.raises(OutsideOpeningHours):
        require_open(window, 11 * 60 + 59, 120, DAY)

    with pytest.raises(ClosedOnDate) as info:
        require_open(OpeningWindow.closed_because("Holiday"), 19 * 60, 120, DAY)
    assert info.value.extra["closedReason"] == "Holiday"
