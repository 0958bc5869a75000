"""Record filters.

Each filter renders itself as an Airtable ``filterByFormula`` expression and
can also be evaluated against a record's fields, which is what the in-memory
store does.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol


class RecordFilter(Protocol):
    def to_formula(self) -> str: ...

    def matches(self, fields: dict[str, Any]) -> bool: ...


def quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _date_part(value: Any) -> str:
    return str(value or "")[:10]


@dataclass(frozen=True)
class Eq:
    field: str
    value: str

    def to_formula(self) -> str:
        return f"{{{self.field}}}={quote(self.value)}"

    def matches(self, fields: dict[str, Any]) -> bool:
        current = fields.get(self.field)
        return current is not None and str(current) == self.value


@dataclass(frozen=True)
class OnDate:
    field: str
    day: date

    def to_formula(self) -> str:
        return f"DATETIME_FORMAT({{{self.field}}}, 'YYYY-MM-DD')={quote(self.day.isoformat())}"

    def matches(self, fields: dict[str, Any]) -> bool:
        return _date_part(fields.get(self.field)) == self.day.isoformat()


@dataclass(frozen=True)
class OnOrAfter:
    field: str
    day: date

    def to_formula(self) -> str:
        return f"DATETIME_FORMAT({{{self.field}}}, 'YYYY-MM-DD')>={quote(self.day.isoformat())}"

    def matches(self, fields: dict[str, Any]) -> bool:
        current = _date_part(fields.get(self.field))
        return bool(current) and current >= self.day.isoformat()


class And:
    def __init__(self, *clauses: RecordFilter) -> None:
        self.clauses = clauses

    def to_formula(self) -> str:
        return "AND(" + ", ".join(c.to_formula() for c in self.clauses) + ")"

    def matches(self, fields: dict[str, Any]) -> bool:
        return all(c.matches(fields) for c in self.clauses)
