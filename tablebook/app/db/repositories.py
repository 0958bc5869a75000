"""Map store records to reservations and opening schedule entries."""
from datetime import date
from typing import Any

import structlog

from tablebook.app.db.filters import And, Eq, OnDate, OnOrAfter
from tablebook.app.db.store import RecordStore, StoreRecord
from tablebook.app.services.dates import WEEKDAYS
from tablebook.app.services.times import decode_minutes, to_wall_clock
from tablebook.app.services.types import DateException, Reservation, ReservationDraft


logger = structlog.get_logger()

# Reservations table columns
F_NAME = "name"
F_DATE = "date"
F_START = "time_text"
F_GUESTS = "guests"
F_PHONE = "phone"
F_STATUS = "status"


def digits(phone: str | None) -> str:
    """Compare phone numbers on digits only ("+49 171 23" == "+4917123")."""
    return "".join(ch for ch in (phone or "") if ch.isdigit())


def _parse_day(value: Any) -> date | None:
    try:
        return date.fromisoformat(str(value or "")[:10])
    except ValueError:
        return None


def _parse_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ReservationRepository:
    def __init__(
        self,
        store: RecordStore,
        *,
        table: str,
        status_confirmed: str,
        status_cancelled: str,
        end_field: str = "",
        request_key_field: str = "",
    ) -> None:
        self._store = store
        self._table = table
        self.status_confirmed = status_confirmed
        self.status_cancelled = status_cancelled
        # empty column names: the base does not have these columns
        self._end_field = end_field
        self._request_key_field = request_key_field

    def _to_reservation(self, record: StoreRecord) -> Reservation | None:
        fields = record.fields
        day = _parse_day(fields.get(F_DATE))
        if day is None:
            logger.warning("Skipping reservation without a readable date", record_id=record.id)
            return None
        guests = _parse_int(fields.get(F_GUESTS))
        if guests is None:
            logger.warning("Reservation has unreadable guest count", record_id=record.id)
            guests = 0
        request_key = fields.get(self._request_key_field) if self._request_key_field else None
        return Reservation(
            id=record.id,
            day=day,
            start_minutes=decode_minutes(fields.get(F_START)),
            party_size=guests,
            name=str(fields.get(F_NAME) or ""),
            phone=str(fields.get(F_PHONE) or ""),
            status=str(fields.get(F_STATUS) or ""),
            created_time=record.created_time,
            request_key=request_key or None,
        )

    def _to_reservations(self, records: list[StoreRecord]) -> list[Reservation]:
        converted = (self._to_reservation(r) for r in records)
        return [r for r in converted if r is not None]

    def is_confirmed(self, reservation: Reservation) -> bool:
        return reservation.status == self.status_confirmed

    async def list_confirmed(self, day: date) -> list[Reservation]:
        """Confirmed reservations for one date; never the whole table."""
        records = await self._store.query(
            self._table,
            And(OnDate(F_DATE, day), Eq(F_STATUS, self.status_confirmed)),
        )
        return self._to_reservations(records)

    async def list_confirmed_since(self, day: date) -> list[Reservation]:
        records = await self._store.query(
            self._table,
            And(OnOrAfter(F_DATE, day), Eq(F_STATUS, self.status_confirmed)),
        )
        return self._to_reservations(records)

    @property
    def tracks_request_keys(self) -> bool:
        return bool(self._request_key_field)

    async def find_by_request_key(self, request_key: str) -> Reservation | None:
        if not self.tracks_request_keys:
            return None
        records = await self._store.query(self._table, Eq(self._request_key_field, request_key))
        matches = sorted(self._to_reservations(records), key=Reservation.sort_key)
        return matches[0] if matches else None

    async def get(self, reservation_id: str) -> Reservation | None:
        record = await self._store.get(self._table, reservation_id)
        return self._to_reservation(record) if record is not None else None

    async def insert(self, draft: ReservationDraft) -> Reservation:
        fields: dict[str, Any] = {
            F_NAME: draft.name,
            F_DATE: draft.day.isoformat(),
            F_START: to_wall_clock(draft.start_minutes),
            F_GUESTS: draft.party_size,
            F_PHONE: draft.phone,
            F_STATUS: self.status_confirmed,
        }
        if self._end_field:
            fields[self._end_field] = to_wall_clock(draft.end_minutes)
        if self._request_key_field and draft.request_key:
            fields[self._request_key_field] = draft.request_key
        record = await self._store.insert(self._table, fields)
        reservation = self._to_reservation(record)
        if reservation is None:
            # store echoed something unreadable; fall back to what we wrote
            reservation = Reservation(
                id=record.id,
                day=draft.day,
                start_minutes=draft.start_minutes,
                party_size=draft.party_size,
                name=draft.name,
                phone=draft.phone,
                status=self.status_confirmed,
                created_time=record.created_time,
                request_key=draft.request_key if self.tracks_request_keys else None,
            )
        return reservation

    async def mark_cancelled(self, reservation_id: str) -> None:
        await self._store.patch(self._table, reservation_id, {F_STATUS: self.status_cancelled})


class ScheduleRepository:
    """Weekly opening hours plus per-date exceptions."""

    def __init__(self, store: RecordStore, *, hours_table: str, exceptions_table: str) -> None:
        self._store = store
        self._hours_table = hours_table
        self._exceptions_table = exceptions_table

    async def weekly_hours(self) -> dict[int, tuple[int, int]]:
        """Weekday ordinal (Monday == 0) -> (open, close) in minutes."""
        hours: dict[int, tuple[int, int]] = {}
        for record in await self._store.query(self._hours_table):
            fields = record.fields
            weekday = WEEKDAYS.get(str(fields.get("weekday") or "").strip().lower())
            window = _window(fields.get("open"), fields.get("close"))
            if weekday is None or window is None:
                logger.warning("Ignoring malformed opening hours row", record_id=record.id)
                continue
            hours[weekday] = window
        return hours

    async def exception_for(self, day: date) -> DateException | None:
        records = await self._store.query(self._exceptions_table, OnDate("date", day))
        if not records:
            return None
        if len(records) > 1:
            logger.warning("Several exceptions for one date; using the first", day=day.isoformat())
        fields = sorted(records, key=lambda r: (r.created_time, r.id))[0].fields
        window = _window(fields.get("open"), fields.get("close"))
        closed = bool(fields.get("closed")) or window is None
        return DateException(
            day=day,
            closed=closed,
            reason=fields.get("reason") or None,
            open_minutes=None if closed else window[0],
            close_minutes=None if closed else window[1],
        )


def _window(open_value: Any, close_value: Any) -> tuple[int, int] | None:
    open_minutes = decode_minutes(open_value)
    close_minutes = decode_minutes(close_value)
    if open_minutes is None or close_minutes is None:
        return None
    # "00:00" as closing time means midnight at the end of the day
    if close_minutes == 0 and open_minutes > 0:
        close_minutes = 24 * 60
    if close_minutes <= open_minutes:
        return None
    return open_minutes, close_minutes
