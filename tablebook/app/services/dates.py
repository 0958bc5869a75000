"""Turn spoken or typed date expressions into a calendar date.

Every accepted form resolves to today or a later day: a guest saying
"the 5th of January" in late December means the coming January.
"""
import re
from datetime import date, timedelta

from tablebook.app.core.errors import InvalidDateFormat


RELATIVE_DAYS = {
    "today": 0,
    "heute": 0,
    "tomorrow": 1,
    "morgen": 1,
    "day-after-tomorrow": 2,
    "day after tomorrow": 2,
    "the day after tomorrow": 2,
    "übermorgen": 2,
    "uebermorgen": 2,
}

# Monday == 0, as in date.weekday()
WEEKDAYS = {
    "monday": 0, "mon": 0, "montag": 0,
    "tuesday": 1, "tue": 1, "tues": 1, "dienstag": 1,
    "wednesday": 2, "wed": 2, "mittwoch": 2,
    "thursday": 3, "thu": 3, "thurs": 3, "donnerstag": 3,
    "friday": 4, "fri": 4, "freitag": 4,
    "saturday": 5, "sat": 5, "samstag": 5, "sonnabend": 5,
    "sunday": 6, "sun": 6, "sonntag": 6,
}

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MONTHS = {
    "january": 1, "jan": 1, "januar": 1, "jänner": 1,
    "february": 2, "feb": 2, "februar": 2,
    "march": 3, "mar": 3, "märz": 3, "maerz": 3,
    "april": 4, "apr": 4,
    "may": 5, "mai": 5,
    "june": 6, "jun": 6, "juni": 6,
    "july": 7, "jul": 7, "juli": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10, "oktober": 10, "okt": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12, "dezember": 12, "dez": 12,
}

# optional time of day and UTC offset, as in "2026-03-14T19:00:00.000Z"
_ISO = re.compile(
    r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})"
    r"(?:[t\s]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?\s?(?:z|[+-]\d{2}(?::?\d{2})?)?)?$"
)
_DAY_MONTH = re.compile(r"^(\d{1,2})\.(\d{1,2})\.?(?:(\d{2}|\d{4}))?$")
_DAY_NAME = re.compile(r"^(?:the\s+)?(\d{1,2})(?:st|nd|rd|th|\.)?\s+(?:of\s+)?([a-zäö]+)\.?,?(?:\s+(\d{4}))?$")
_NAME_DAY = re.compile(r"^([a-zäö]+)\.?\s+(?:the\s+)?(\d{1,2})(?:st|nd|rd|th|\.)?,?(?:\s+(\d{4}))?$")

# Enough to reach the next Feb 29 from any year
_MAX_ROLL_YEARS = 8


def normalize_date(raw: str | None, reference_today: date) -> date:
    """Resolve ``raw`` to a date on or after ``reference_today``.

    Raises InvalidDateFormat for empty input, unknown tokens and impossible
    calendar dates.
    """
    if raw is None:
        raise InvalidDateFormat("No date given")
    text = " ".join(str(raw).strip().lower().split())
    if not text:
        raise InvalidDateFormat("No date given")

    if text in RELATIVE_DAYS:
        return reference_today + timedelta(days=RELATIVE_DAYS[text])

    weekday = WEEKDAYS.get(text.removeprefix("next ").removeprefix("on "))
    if weekday is not None:
        return next_weekday(weekday, reference_today)

    year, month, day, explicit_year = _parse_triple(text, reference_today, raw)
    return _roll_forward(year, month, day, reference_today, raw, explicit_year)


def next_weekday(weekday: int, reference_today: date) -> date:
    """Next occurrence of ``weekday``; today never counts, so the gap is 1..7 days."""
    distance = (weekday - reference_today.weekday()) % 7 or 7
    return reference_today + timedelta(days=distance)


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def _parse_triple(text: str, reference_today: date, raw: str) -> tuple[int, int, int, bool]:
    match = _ISO.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return year, month, day, True

    match = _DAY_MONTH.match(text)
    if match:
        day, month, year_text = match.groups()
        return _with_year(int(day), int(month), year_text, reference_today)

    match = _DAY_NAME.match(text)
    if match and match.group(2) in MONTHS:
        day, month_name, year_text = match.groups()
        return _with_year(int(day), MONTHS[month_name], year_text, reference_today)

    match = _NAME_DAY.match(text)
    if match and match.group(1) in MONTHS:
        month_name, day, year_text = match.groups()
        return _with_year(int(day), MONTHS[month_name], year_text, reference_today)

    raise InvalidDateFormat(f"Unrecognised date: {raw!r}")


def _with_year(day: int, month: int, year_text: str | None, reference_today: date) -> tuple[int, int, int, bool]:
    if year_text is None:
        return reference_today.year, month, day, False
    year = int(year_text)
    if len(year_text) == 2:
        year += 2000
    return year, month, day, True


def _roll_forward(year: int, month: int, day: int, reference_today: date, raw: str, explicit_year: bool) -> date:
    try:
        candidate = date(year, month, day)
    except ValueError:
        candidate = None
        # 29.2. without a year is valid as soon as a leap year comes round
        if explicit_year or (month, day) != (2, 29):
            raise InvalidDateFormat(f"Not a calendar date: {raw!r}") from None

    for _ in range(_MAX_ROLL_YEARS + (reference_today.year - year if year < reference_today.year else 0)):
        if candidate is not None and candidate >= reference_today:
            return candidate
        year += 1
        try:
            candidate = date(year, month, day)
        except ValueError:
            candidate = None

    raise InvalidDateFormat(f"Not a calendar date: {raw!r}")
