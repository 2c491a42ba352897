"""
Recurrence expansion for recurring bookings.

Pure date arithmetic only: no database access, no clock reads. Callers resolve
the frequency catalog and holiday calendar first and pass the results in, so
the same rule always expands to the same dates.
"""

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator, Optional

from dateutil.relativedelta import relativedelta

from ...shared.validators import parse_calendar_date
from .exceptions import InvalidRule, UnknownFrequency

logger = logging.getLogger(__name__)

# Hard cap on dates produced by a single expansion, so open-ended display
# expansion always terminates
MAX_EXPANSION_OCCURRENCES = 52

# A holiday-shifted occurrence moves at most this many days forward
MAX_HOLIDAY_SHIFT_DAYS = 31

_COUNT_PATTERN = re.compile(r"(?:every\s+)?(\d+)\s*(day|week|month|year)s?\b")

# Keyword phrases, most specific first ("bi weekly" must win over "weekly")
_KEYWORD_INTERVALS = (
    (("every other week", "bi weekly", "biweekly", "fortnightly"), {"days": 14}),
    (("every other day",), {"days": 2}),
    (("every other month",), {"months": 2}),
    (("quarterly",), {"months": 3}),
    (("daily", "every day"), {"days": 1}),
    (("weekly", "every week"), {"days": 7}),
    (("monthly", "every month"), {"months": 1}),
    (("yearly", "annually", "annual", "every year"), {"months": 12}),
)


@dataclass(frozen=True)
class RepeatInterval:
    """Distance between two consecutive occurrences"""

    days: int = 0
    months: int = 0

    def times(self, k: int) -> relativedelta:
        return relativedelta(days=self.days * k, months=self.months * k)

    def __str__(self) -> str:
        if self.months:
            return f"{self.months} month" + ("s" if self.months != 1 else "")
        return f"{self.days} day" + ("s" if self.days != 1 else "")


def _normalize(text: str) -> str:
    text = re.sub(r"[-_]+", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def parse_repeat_interval(text: Optional[str]) -> Optional[RepeatInterval]:
    """
    Parse a repeat interval such as "7 days", "2 weeks", "1 month",
    "Every Other Week" or "monthly".

    Returns None when nothing recognizable is found.
    """
    if not text:
        return None

    normalized = _normalize(text)

    # Keyword phrases are checked first so "every other week" is not
    # mistaken for a count
    for phrases, interval in _KEYWORD_INTERVALS:
        if any(phrase in normalized for phrase in phrases):
            return RepeatInterval(**interval)

    match = _COUNT_PATTERN.search(normalized)
    if match:
        count = int(match.group(1))
        unit = match.group(2)
        if count <= 0:
            return None
        if unit == "day":
            return RepeatInterval(days=count)
        if unit == "week":
            return RepeatInterval(days=7 * count)
        if unit == "month":
            return RepeatInterval(months=count)
        return RepeatInterval(months=12 * count)

    return None


@dataclass(frozen=True)
class HolidayCalendar:
    """Business holidays: fixed dates plus (month, day) pairs that repeat every year"""

    dates: frozenset = field(default_factory=frozenset)
    annual: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_rows(cls, rows) -> "HolidayCalendar":
        dates = set()
        annual = set()
        for row in rows:
            if row.recurring:
                annual.add((row.holiday_date.month, row.holiday_date.day))
            else:
                dates.add(row.holiday_date)
        return cls(dates=frozenset(dates), annual=frozenset(annual))

    def is_holiday(self, day: date) -> bool:
        return day in self.dates or (day.month, day.day) in self.annual

    def next_working_day(self, day: date) -> date:
        """First non-holiday on or after day, giving up after MAX_HOLIDAY_SHIFT_DAYS"""
        attempts = 0
        while self.is_holiday(day) and attempts < MAX_HOLIDAY_SHIFT_DAYS:
            day += timedelta(days=1)
            attempts += 1
        return day


@dataclass(frozen=True)
class RecurrenceRule:
    start_date: date
    frequency_name: Optional[str] = None
    frequency_repeats: Optional[str] = None
    end_date: Optional[date] = None
    occurrences_ahead: Optional[int] = None
    scheduled_time: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def build(
        cls,
        start_date,
        frequency_name: Optional[str] = None,
        frequency_repeats: Optional[str] = None,
        end_date=None,
        occurrences_ahead: Optional[int] = None,
        scheduled_time: Optional[str] = None,
        id: Optional[str] = None,
    ) -> "RecurrenceRule":
        """Build a rule from raw values, parsing ISO date strings"""
        try:
            start = parse_calendar_date(start_date)
        except ValueError as e:
            raise InvalidRule(f"Invalid start date: {e}") from e
        if start is None:
            raise InvalidRule("Start date is required")

        try:
            end = parse_calendar_date(end_date)
        except ValueError as e:
            raise InvalidRule(f"Invalid end date: {e}") from e

        return cls(
            start_date=start,
            frequency_name=frequency_name,
            frequency_repeats=frequency_repeats,
            end_date=end,
            occurrences_ahead=occurrences_ahead,
            scheduled_time=scheduled_time,
            id=id,
        )

    @classmethod
    def from_series(cls, series) -> "RecurrenceRule":
        """Build a rule from a stored recurring_series row"""
        return cls.build(
            start_date=series.start_date,
            frequency_name=series.frequency,
            frequency_repeats=series.frequency_repeats,
            end_date=series.end_date,
            occurrences_ahead=series.occurrences_ahead,
            scheduled_time=series.scheduled_time,
            id=series.id,
        )


def resolve_interval(rule: RecurrenceRule) -> RepeatInterval:
    """Repeat interval for a rule: frequency_repeats first, then the frequency name"""
    interval = parse_repeat_interval(rule.frequency_repeats)
    if interval:
        return interval

    if rule.frequency_repeats:
        logger.warning(
            f"⚠️ Unrecognized frequency_repeats {rule.frequency_repeats!r}, "
            f"falling back to frequency name {rule.frequency_name!r}"
        )

    interval = parse_repeat_interval(rule.frequency_name)
    if interval:
        return interval

    raise UnknownFrequency(
        f"Cannot resolve a repeat interval for frequency {rule.frequency_name!r}"
        + (f" (repeats {rule.frequency_repeats!r})" if rule.frequency_repeats else "")
    )


def _validate(rule: RecurrenceRule) -> None:
    if not isinstance(rule.start_date, date):
        raise InvalidRule("Start date is required")
    if rule.end_date is not None and not isinstance(rule.end_date, date):
        raise InvalidRule("End date must be a calendar date")


def _iter_occurrences(
    rule: RecurrenceRule, interval: RepeatInterval, holidays: Optional[HolidayCalendar]
) -> Iterator[date]:
    """
    Endless stream of occurrence dates, bounded only by the rule's end date.

    The k-th date is start + k * interval, computed from the start date rather
    than from the previous date, so monthly series keep their day of month.
    """
    start = rule.start_date
    end = rule.end_date

    # The start date is always an occurrence, holiday or not
    yield start

    previous = start
    k = 1
    while True:
        candidate = start + interval.times(k)
        k += 1

        if end is not None and candidate > end:
            return

        if holidays is not None:
            candidate = holidays.next_working_day(candidate)
            if end is not None and candidate > end:
                return

        # A holiday shift can land on or before the previous occurrence
        if candidate <= previous:
            continue

        yield candidate
        previous = candidate


def expand(
    rule: RecurrenceRule,
    max_occurrences: Optional[int] = None,
    up_to_date: Optional[date] = None,
    holidays: Optional[HolidayCalendar] = None,
) -> list[date]:
    """
    Expand a rule into its occurrence dates.

    Args:
        rule: The recurrence rule
        max_occurrences: Stop after this many dates
        up_to_date: Stop at the first date after this one
        holidays: Optional calendar; occurrences on holidays move to the next free day

    Returns:
        Strictly increasing dates starting with rule.start_date. Never empty:
        a rule whose start is already past its end (or past up_to_date)
        still yields its start date.

    Raises:
        InvalidRule: start date missing or not a date
        UnknownFrequency: no repeat interval can be resolved
    """
    _validate(rule)
    interval = resolve_interval(rule)

    limit = MAX_EXPANSION_OCCURRENCES
    if max_occurrences is not None:
        limit = min(max(1, max_occurrences), MAX_EXPANSION_OCCURRENCES)

    dates: list[date] = []
    for day in _iter_occurrences(rule, interval, holidays):
        if dates and up_to_date is not None and day > up_to_date:
            break
        dates.append(day)
        if len(dates) >= limit:
            break

    return dates


def expand_window(
    rule: RecurrenceRule,
    up_to_date: date,
    from_date: Optional[date] = None,
    holidays: Optional[HolidayCalendar] = None,
) -> list[date]:
    """
    Occurrence dates inside a visible window, for calendars and listings.

    With from_date, returns the first MAX_EXPANSION_OCCURRENCES dates in
    [from_date, up_to_date]. Without it, returns the latest
    MAX_EXPANSION_OCCURRENCES dates up to up_to_date, so a long-running
    series still shows its current dates. May be empty.
    """
    _validate(rule)
    interval = resolve_interval(rule)

    window: deque = deque(maxlen=MAX_EXPANSION_OCCURRENCES)
    for day in _iter_occurrences(rule, interval, holidays):
        if day > up_to_date:
            break
        if from_date is not None and day < from_date:
            continue
        window.append(day)
        if from_date is not None and len(window) == MAX_EXPANSION_OCCURRENCES:
            break

    return list(window)


def next_occurrences(
    rule: RecurrenceRule,
    after: date,
    count: int,
    holidays: Optional[HolidayCalendar] = None,
) -> list[date]:
    """The next count occurrences strictly after the given date"""
    _validate(rule)
    interval = resolve_interval(rule)

    count = min(count, MAX_EXPANSION_OCCURRENCES)
    dates: list[date] = []
    if count <= 0:
        return dates

    for day in _iter_occurrences(rule, interval, holidays):
        if day <= after:
            continue
        dates.append(day)
        if len(dates) >= count:
            break

    return dates


def is_occurrence(
    rule: RecurrenceRule, day: date, holidays: Optional[HolidayCalendar] = None
) -> bool:
    """Whether day is one of the rule's occurrence dates"""
    _validate(rule)
    interval = resolve_interval(rule)

    for candidate in _iter_occurrences(rule, interval, holidays):
        if candidate == day:
            return True
        if candidate > day:
            return False
    return False
