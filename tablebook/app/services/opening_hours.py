from datetime import date
from typing import Protocol

import structlog

from tablebook.app.core.errors import RepositoryUnavailable
from tablebook.app.services.dates import weekday_name
from tablebook.app.services.types import DateException, OpeningWindow


logger = structlog.get_logger()

NO_SCHEDULE_ENTRY = "no schedule entry"
SCHEDULE_UNAVAILABLE = "schedule_unavailable"


class ScheduleSource(Protocol):
    async def weekly_hours(self) -> dict[int, tuple[int, int]]: ...

    async def exception_for(self, day: date) -> DateException | None: ...


def resolve_window(
    day: date,
    weekly: dict[int, tuple[int, int]],
    exception: DateException | None,
) -> OpeningWindow:
    """An exception for the exact date wins over the weekly entry; no entry means closed."""
    if exception is not None:
        if exception.closed or exception.open_minutes is None or exception.close_minutes is None:
            return OpeningWindow.closed_because(exception.reason or "closed")
        return OpeningWindow.open_between(exception.open_minutes, exception.close_minutes)

    entry = weekly.get(day.weekday())
    if entry is None:
        return OpeningWindow.closed_because(NO_SCHEDULE_ENTRY)
    return OpeningWindow.open_between(*entry)


class OpeningHoursResolver:
    def __init__(self, schedule: ScheduleSource) -> None:
        self._schedule = schedule

    async def resolve(self, day: date) -> OpeningWindow:
        try:
            exception = await self._schedule.exception_for(day)
            weekly = {} if exception is not None else await self._schedule.weekly_hours()
        except RepositoryUnavailable as exc:
            # never report "open" on data we could not read
            logger.error("Opening hours unavailable; treating date as closed", day=day.isoformat(), error=exc.message)
            return OpeningWindow.closed_because(SCHEDULE_UNAVAILABLE)

        window = resolve_window(day, weekly, exception)
        logger.debug(
            "Resolved opening hours",
            day=day.isoformat(),
            weekday=weekday_name(day),
            closed=window.closed,
            reason=window.reason,
        )
        return window
