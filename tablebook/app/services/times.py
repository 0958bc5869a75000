"""Wall-clock <-> minutes-since-midnight conversion.

The store may hand back the same logical column as "HH:MM" text or as a
duration in seconds, depending on the column type.
"""
import math
import re

from tablebook.app.core.errors import InvalidTimeFormat


MINUTES_PER_DAY = 24 * 60

_WALL_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_SPOKEN = re.compile(r"^(\d{1,2})(?:[:.](\d{2}))?\s*(am|pm|a\.m\.|p\.m\.|uhr|h|o'clock)?$")


def decode_minutes(value: object) -> int | None:
    """Minutes since midnight, or None when the value is missing or malformed."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            return None
        minutes = int(value // 60)
        # a duration column can hold more than a day; that is no start time
        return minutes if minutes <= MINUTES_PER_DAY else None
    if not isinstance(value, str):
        return None

    match = _WALL_CLOCK.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59:
        return None
    if hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if hours > 23:
        return None
    return hours * 60 + minutes


def to_minutes(value: object) -> int:
    """Lenient decode: anything unreadable becomes 0.

    0 is indistinguishable from midnight; callers that need to know should use
    decode_minutes instead.
    """
    minutes = decode_minutes(value)
    return 0 if minutes is None else minutes


def to_wall_clock(minutes: int) -> str:
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_request_time(raw: object) -> int:
    """Strict parser for caller-supplied times ("19:30", "19 Uhr", "7:30 pm")."""
    if isinstance(raw, str):
        text = " ".join(raw.strip().lower().split())
        minutes = decode_minutes(text)
        if minutes is not None and minutes < MINUTES_PER_DAY:
            return minutes
        minutes = _parse_spoken(text)
        if minutes is not None:
            return minutes
    raise InvalidTimeFormat(f"Unrecognised time: {raw!r}")


def _parse_spoken(text: str) -> int | None:
    match = _SPOKEN.match(text)
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    suffix = (match.group(3) or "").replace(".", "")
    if minutes > 59:
        return None
    if suffix in ("am", "pm"):
        if not 1 <= hours <= 12:
            return None
        hours = hours % 12 + (12 if suffix == "pm" else 0)
    elif hours > 23:
        return None
    return hours * 60 + minutes
