"""
Unit tests for bookingapp/domain/recurring/expander.py

Pure date arithmetic: no database fixtures needed.
"""

from datetime import date

import pytest

from bookingapp.domain.recurring.exceptions import InvalidRule, UnknownFrequency
from bookingapp.domain.recurring.expander import (
    MAX_EXPANSION_OCCURRENCES,
    HolidayCalendar,
    RecurrenceRule,
    RepeatInterval,
    expand,
    expand_window,
    is_occurrence,
    next_occurrences,
    parse_repeat_interval,
    resolve_interval,
)


def weekly(start="2025-01-01", **kwargs):
    return RecurrenceRule.build(start_date=start, frequency_name="Weekly", **kwargs)


class TestParseRepeatInterval:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("7 days", RepeatInterval(days=7)),
            ("1 day", RepeatInterval(days=1)),
            ("2 weeks", RepeatInterval(days=14)),
            ("Every 4 Weeks", RepeatInterval(days=28)),
            ("1 month", RepeatInterval(months=1)),
            ("3 months", RepeatInterval(months=3)),
            ("1 year", RepeatInterval(months=12)),
            ("daily", RepeatInterval(days=1)),
            ("Weekly", RepeatInterval(days=7)),
            ("Every Other Week", RepeatInterval(days=14)),
            ("bi-weekly", RepeatInterval(days=14)),
            ("Biweekly", RepeatInterval(days=14)),
            ("Monthly", RepeatInterval(months=1)),
            ("yearly", RepeatInterval(months=12)),
        ],
    )
    def test_known_intervals(self, text, expected):
        assert parse_repeat_interval(text) == expected

    @pytest.mark.parametrize("text", [None, "", "One Time", "whenever", "0 days"])
    def test_unrecognized_returns_none(self, text):
        assert parse_repeat_interval(text) is None


class TestResolveInterval:
    def test_repeats_take_precedence_over_name(self):
        rule = RecurrenceRule.build(
            start_date="2025-01-01", frequency_name="Weekly", frequency_repeats="1 month"
        )
        assert resolve_interval(rule) == RepeatInterval(months=1)

    def test_falls_back_to_name(self):
        rule = RecurrenceRule.build(start_date="2025-01-01", frequency_name="Every Other Week")
        assert resolve_interval(rule) == RepeatInterval(days=14)

    def test_unparsable_repeats_fall_back_to_name(self):
        rule = RecurrenceRule.build(
            start_date="2025-01-01", frequency_name="Monthly", frequency_repeats="sometimes"
        )
        assert resolve_interval(rule) == RepeatInterval(months=1)

    def test_unknown_frequency(self):
        rule = RecurrenceRule.build(start_date="2025-01-01", frequency_name="Whenever")
        with pytest.raises(UnknownFrequency):
            resolve_interval(rule)

    def test_no_frequency_at_all(self):
        rule = RecurrenceRule.build(start_date="2025-01-01")
        with pytest.raises(UnknownFrequency):
            expand(rule, max_occurrences=3)


class TestRuleBuild:
    def test_missing_start_date(self):
        with pytest.raises(InvalidRule):
            RecurrenceRule.build(start_date=None, frequency_name="Weekly")

    def test_unparsable_start_date(self):
        with pytest.raises(InvalidRule):
            RecurrenceRule.build(start_date="next tuesday", frequency_name="Weekly")

    def test_unparsable_end_date(self):
        with pytest.raises(InvalidRule):
            RecurrenceRule.build(start_date="2025-01-01", end_date="2025-13-45")

    def test_datetime_strings_are_truncated(self):
        rule = RecurrenceRule.build(start_date="2025-01-01T09:30:00Z", frequency_name="Weekly")
        assert rule.start_date == date(2025, 1, 1)

    def test_expand_rejects_rule_without_date(self):
        rule = RecurrenceRule(start_date=None, frequency_name="Weekly")
        with pytest.raises(InvalidRule):
            expand(rule)


class TestExpand:
    def test_weekly_four_occurrences(self):
        assert expand(weekly(), max_occurrences=4) == [
            date(2025, 1, 1),
            date(2025, 1, 8),
            date(2025, 1, 15),
            date(2025, 1, 22),
        ]

    def test_monthly_clamps_to_end_of_month(self):
        rule = RecurrenceRule.build(start_date="2025-01-31", frequency_repeats="1 month")
        dates = expand(rule, max_occurrences=4)
        assert dates[1] == date(2025, 2, 28)
        # Day of month comes back once the month is long enough
        assert dates[2] == date(2025, 3, 31)
        assert dates[3] == date(2025, 4, 30)

    def test_monthly_leap_year(self):
        rule = RecurrenceRule.build(start_date="2024-01-31", frequency_name="Monthly")
        assert expand(rule, max_occurrences=2)[1] == date(2024, 2, 29)

    def test_end_date_bounds_output(self):
        rule = weekly(end_date="2025-01-20")
        dates = expand(rule, max_occurrences=10)
        assert dates == [date(2025, 1, 1), date(2025, 1, 8), date(2025, 1, 15)]

    def test_end_date_is_inclusive(self):
        rule = weekly(end_date="2025-01-15")
        assert expand(rule)[-1] == date(2025, 1, 15)

    def test_start_after_end_yields_start_only(self):
        rule = weekly(start="2025-03-01", end_date="2025-02-01")
        assert expand(rule, max_occurrences=5) == [date(2025, 3, 1)]

    def test_up_to_date_bounds_output(self):
        dates = expand(weekly(), up_to_date=date(2025, 1, 31))
        assert dates[-1] == date(2025, 1, 29)
        assert len(dates) == 5

    def test_up_to_date_before_start_yields_start(self):
        assert expand(weekly(), up_to_date=date(2024, 12, 1)) == [date(2025, 1, 1)]

    def test_open_ended_expansion_hits_ceiling(self):
        dates = expand(RecurrenceRule.build(start_date="2025-01-01", frequency_name="Daily"))
        assert len(dates) == MAX_EXPANSION_OCCURRENCES

    def test_max_occurrences_below_one_still_yields_start(self):
        assert expand(weekly(), max_occurrences=0) == [date(2025, 1, 1)]

    def test_deterministic(self):
        rule = weekly(end_date="2025-06-30")
        assert expand(rule) == expand(rule)

    @pytest.mark.parametrize(
        "rule",
        [
            RecurrenceRule.build(start_date="2025-01-31", frequency_name="Monthly"),
            RecurrenceRule.build(start_date="2025-02-28", frequency_repeats="2 weeks"),
            RecurrenceRule.build(start_date="2024-02-29", frequency_name="Yearly"),
            RecurrenceRule.build(
                start_date="2025-01-01", frequency_name="Daily", end_date="2025-01-10"
            ),
        ],
    )
    def test_strictly_increasing_and_starts_at_start(self, rule):
        dates = expand(rule, max_occurrences=20)
        assert dates[0] == rule.start_date
        assert all(a < b for a, b in zip(dates, dates[1:]))
        assert len(set(dates)) == len(dates)
        if rule.end_date:
            assert all(d <= rule.end_date for d in dates)


class TestHolidays:
    def test_occurrence_on_holiday_moves_to_next_day(self):
        holidays = HolidayCalendar(dates=frozenset({date(2025, 1, 8)}))
        dates = expand(weekly(), max_occurrences=3, holidays=holidays)
        assert dates == [date(2025, 1, 1), date(2025, 1, 9), date(2025, 1, 15)]

    def test_start_date_is_never_shifted(self):
        holidays = HolidayCalendar(dates=frozenset({date(2025, 1, 1)}))
        assert expand(weekly(), max_occurrences=1, holidays=holidays) == [date(2025, 1, 1)]

    def test_annual_holiday_matches_every_year(self):
        holidays = HolidayCalendar(annual=frozenset({(12, 25)}))
        rule = RecurrenceRule.build(start_date="2024-12-25", frequency_name="Yearly")
        dates = expand(rule, max_occurrences=3, holidays=holidays)
        assert dates == [date(2024, 12, 25), date(2025, 12, 26), date(2026, 12, 26)]

    def test_shift_colliding_with_next_occurrence_is_dropped(self):
        holidays = HolidayCalendar(dates=frozenset({date(2025, 1, 2)}))
        rule = RecurrenceRule.build(start_date="2025-01-01", frequency_name="Daily")
        dates = expand(rule, max_occurrences=4, holidays=holidays)
        assert dates == [date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 4), date(2025, 1, 5)]

    def test_shift_past_end_date_stops(self):
        holidays = HolidayCalendar(dates=frozenset({date(2025, 1, 15)}))
        rule = weekly(end_date="2025-01-15")
        assert expand(rule, holidays=holidays) == [date(2025, 1, 1), date(2025, 1, 8)]


class TestExpandWindow:
    def test_window_inside_series(self):
        assert expand_window(weekly(), date(2025, 3, 31), from_date=date(2025, 3, 1)) == [
            date(2025, 3, 5),
            date(2025, 3, 12),
            date(2025, 3, 19),
            date(2025, 3, 26),
        ]

    def test_ceiling_counts_from_window_start(self):
        rule = RecurrenceRule.build(start_date="2025-01-01", frequency_name="Daily")
        dates = expand_window(rule, date(2025, 6, 10), from_date=date(2025, 6, 1))
        assert dates[0] == date(2025, 6, 1)
        assert dates[-1] == date(2025, 6, 10)
        assert len(dates) == 10

    def test_long_window_capped_at_ceiling(self):
        rule = RecurrenceRule.build(start_date="2025-01-01", frequency_name="Daily")
        dates = expand_window(rule, date(2025, 12, 31), from_date=date(2025, 1, 1))
        assert len(dates) == MAX_EXPANSION_OCCURRENCES
        assert dates[-1] == date(2025, 2, 21)

    def test_without_from_date_keeps_latest_dates(self):
        rule = RecurrenceRule.build(start_date="2025-01-01", frequency_name="Daily")
        dates = expand_window(rule, date(2025, 12, 31))
        assert len(dates) == MAX_EXPANSION_OCCURRENCES
        assert dates[0] == date(2025, 11, 10)
        assert dates[-1] == date(2025, 12, 31)

    def test_respects_end_date(self):
        rule = weekly(end_date="2025-01-20")
        assert expand_window(rule, date(2025, 3, 1)) == [
            date(2025, 1, 1),
            date(2025, 1, 8),
            date(2025, 1, 15),
        ]

    def test_empty_window(self):
        assert expand_window(weekly(), date(2025, 1, 7), from_date=date(2025, 1, 2)) == []

    def test_window_before_start(self):
        assert expand_window(weekly(), date(2024, 12, 31)) == []


class TestNextOccurrences:
    def test_after_a_date(self):
        assert next_occurrences(weekly(), date(2025, 1, 10), 2) == [
            date(2025, 1, 15),
            date(2025, 1, 22),
        ]

    def test_after_is_exclusive(self):
        assert next_occurrences(weekly(), date(2025, 1, 8), 1) == [date(2025, 1, 15)]

    def test_respects_end_date(self):
        rule = weekly(end_date="2025-01-20")
        assert next_occurrences(rule, date(2025, 1, 10), 5) == [date(2025, 1, 15)]

    def test_zero_count(self):
        assert next_occurrences(weekly(), date(2025, 1, 10), 0) == []

    def test_far_past_start_still_resolves(self):
        rule = RecurrenceRule.build(start_date="2020-01-01", frequency_name="Daily")
        assert next_occurrences(rule, date(2025, 6, 1), 1) == [date(2025, 6, 2)]


class TestIsOccurrence:
    def test_member(self):
        assert is_occurrence(weekly(), date(2025, 1, 15)) is True

    def test_non_member(self):
        assert is_occurrence(weekly(), date(2025, 1, 16)) is False

    def test_before_start(self):
        assert is_occurrence(weekly(), date(2024, 12, 25)) is False

    def test_after_end(self):
        assert is_occurrence(weekly(end_date="2025-01-10"), date(2025, 1, 15)) is False
