"""
Date selections for leave and WFH requests.

A request covers either a contiguous range or an explicit set of
(possibly non-consecutive) days. Validators dispatch on the concrete type
instead of probing optional fields.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import FrozenSet, Iterable, Optional, Tuple, Union


def parse_day(value: Union[str, date]) -> date:
    """Accept a date or an ISO string (a datetime string is truncated to its date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def days(self) -> FrozenSet[date]:
        if self.end < self.start:
            return frozenset()
        span = (self.end - self.start).days + 1
        return frozenset(self.start + timedelta(days=offset) for offset in range(span))

    def bounds(self) -> Tuple[date, date]:
        return self.start, self.end

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_selected_dates(self) -> Optional[list]:
        return None

    def overlaps(self, other: "DateSelection") -> bool:
        return overlaps(self, other)


@dataclass(frozen=True)
class ExplicitDays:
    dates: FrozenSet[date]

    def __post_init__(self):
        if not self.dates:
            raise ValueError("ExplicitDays requires at least one date")

    def days(self) -> FrozenSet[date]:
        return self.dates

    def bounds(self) -> Tuple[date, date]:
        return min(self.dates), max(self.dates)

    def contains(self, day: date) -> bool:
        return day in self.dates

    def to_selected_dates(self) -> Optional[list]:
        return [d.isoformat() for d in sorted(self.dates)]

    def overlaps(self, other: "DateSelection") -> bool:
        return overlaps(self, other)


DateSelection = Union[DateRange, ExplicitDays]


def from_parts(
    start_date: Optional[Union[str, date]],
    end_date: Optional[Union[str, date]],
    selected_dates: Optional[Iterable[Union[str, date]]] = None,
) -> DateSelection:
    """
    Build a selection from stored or submitted fields.

    A non-empty selected_dates list is authoritative; otherwise every calendar
    day in [start_date, end_date] counts.
    """
    if selected_dates:
        return ExplicitDays(frozenset(parse_day(d) for d in selected_dates))
    if start_date is None or end_date is None:
        raise ValueError("start_date and end_date are required when no selected dates are given")
    return DateRange(parse_day(start_date), parse_day(end_date))


def overlaps(a: DateSelection, b: DateSelection) -> bool:
    """True if the two selections share at least one calendar day.

    Two ranges compare by interval intersection; as soon as either side is an
    explicit day set, membership is by exact day.
    """
    if isinstance(a, DateRange) and isinstance(b, DateRange):
        if a.end < a.start or b.end < b.start:
            return False
        return a.start <= b.end and b.start <= a.end
    if isinstance(a, ExplicitDays) and isinstance(b, ExplicitDays):
        return not a.dates.isdisjoint(b.dates)
    explicit, other = (a, b) if isinstance(a, ExplicitDays) else (b, a)
    return any(other.contains(d) for d in explicit.dates)


def shared_days(a: DateSelection, b: DateSelection) -> FrozenSet[date]:
    return a.days() & b.days()


def span_days(selection: DateSelection) -> int:
    """Inclusive calendar span between the first and last day."""
    start, end = selection.bounds()
    return (end - start).days + 1


def format_selection(selection: DateSelection) -> str:
    if isinstance(selection, ExplicitDays):
        return ", ".join(d.isoformat() for d in sorted(selection.dates))
    return f"{selection.start.isoformat()} to {selection.end.isoformat()}"

