"""
반복 규칙 날짜 판정 테스트
"""

from datetime import date

import pytest

from ledger.models import RecurringFrequency
from ledger.services.recurrence import (
    DailyEveryDay,
    DailyWeekdaysOnly,
    DailyWeekendOnly,
    MonthlyLastDay,
    MonthlyOnDay,
    Unrecognized,
    WeeklyOnDays,
    iter_firing_dates,
    last_day_of_month,
    matches,
    parse_day_rule,
)


WEDNESDAY = date(2025, 9, 3)
SATURDAY = date(2025, 9, 6)
SUNDAY = date(2025, 9, 7)
EPOCH = date(2025, 1, 1)


@pytest.mark.parametrize(
    "frequency, day_rule",
    [
        (RecurringFrequency.DAILY, "매일"),
        (RecurringFrequency.MONTHLY, "매월 9일"),
        (RecurringFrequency.WEEKLY, "일요일"),
    ],
)
def test_never_fires_before_start_date(frequency, day_rule):
    start = date(2025, 3, 10)
    assert matches(day_rule, frequency, date(2025, 3, 9), start) is False


def test_start_date_itself_is_evaluated_normally():
    start = date(2025, 3, 10)
    assert matches("매일", RecurringFrequency.DAILY, start, start) is True
    assert matches("매월 10일", RecurringFrequency.MONTHLY, start, start) is True
    assert matches("매월 11일", RecurringFrequency.MONTHLY, start, start) is False


def test_monthly_day_of_month():
    assert matches("매월 5일", RecurringFrequency.MONTHLY, date(2025, 1, 5), EPOCH)
    assert matches("매월 5일", RecurringFrequency.MONTHLY, date(2025, 2, 5), EPOCH)
    assert not matches("매월 5일", RecurringFrequency.MONTHLY, date(2025, 1, 4), EPOCH)
    assert not matches("매월 5일", RecurringFrequency.MONTHLY, date(2025, 1, 6), EPOCH)


def test_monthly_day_31_skips_short_months():
    assert not matches("매월 31일", RecurringFrequency.MONTHLY, date(2025, 4, 30), EPOCH)
    assert matches("매월 31일", RecurringFrequency.MONTHLY, date(2025, 5, 31), EPOCH)


def test_last_day_of_month():
    start = date(2024, 1, 1)
    assert matches("매월 말일", RecurringFrequency.MONTHLY, date(2025, 2, 28), start)
    assert matches("매월 말일", RecurringFrequency.MONTHLY, date(2024, 2, 29), start)
    assert not matches("매월 말일", RecurringFrequency.MONTHLY, date(2025, 2, 27), start)
    assert not matches("매월 말일", RecurringFrequency.MONTHLY, date(2024, 2, 28), start)
    assert matches("매월 말일", RecurringFrequency.MONTHLY, date(2025, 12, 31), start)


def test_last_day_of_month_helper_handles_december():
    assert last_day_of_month(2025, 12) == 31
    assert last_day_of_month(2025, 2) == 28
    assert last_day_of_month(2024, 2) == 29
    assert last_day_of_month(2025, 4) == 30


def test_daily_variants():
    assert matches("매일", RecurringFrequency.DAILY, SATURDAY, EPOCH)
    assert matches("평일만", RecurringFrequency.DAILY, WEDNESDAY, EPOCH)
    assert not matches("평일만", RecurringFrequency.DAILY, SATURDAY, EPOCH)
    assert matches("주말만", RecurringFrequency.DAILY, SATURDAY, EPOCH)
    assert matches("주말만", RecurringFrequency.DAILY, SUNDAY, EPOCH)
    assert not matches("주말만", RecurringFrequency.DAILY, WEDNESDAY, EPOCH)
    assert not matches("격일", RecurringFrequency.DAILY, WEDNESDAY, EPOCH)


def test_weekly_single_weekday():
    assert matches("수요일", RecurringFrequency.WEEKLY, WEDNESDAY, EPOCH)
    assert matches("매주 수요일", RecurringFrequency.WEEKLY, WEDNESDAY, EPOCH)
    assert not matches("수요일", RecurringFrequency.WEEKLY, SATURDAY, EPOCH)
    assert matches("일요일", RecurringFrequency.WEEKLY, SUNDAY, EPOCH)


def test_weekly_multi_day_requires_opt_in():
    rule = "월요일,수요일,금요일"
    assert not matches(rule, RecurringFrequency.WEEKLY, WEDNESDAY, EPOCH)
    assert matches(rule, RecurringFrequency.WEEKLY, WEDNESDAY, EPOCH, allow_multi_weekday=True)
    assert not matches(rule, RecurringFrequency.WEEKLY, SATURDAY, EPOCH, allow_multi_weekday=True)


def test_unknown_frequency_never_fires():
    assert matches("매일", "YEARLY", WEDNESDAY, EPOCH) is False


def test_parse_variants():
    assert parse_day_rule(RecurringFrequency.DAILY, "매일") == DailyEveryDay()
    assert parse_day_rule(RecurringFrequency.DAILY, "평일만") == DailyWeekdaysOnly()
    assert parse_day_rule(RecurringFrequency.DAILY, "주말만") == DailyWeekendOnly()
    assert parse_day_rule("weekly", "토요일") == WeeklyOnDays(frozenset({5}))
    assert parse_day_rule(RecurringFrequency.MONTHLY, "매월 15일") == MonthlyOnDay(15)
    assert parse_day_rule(RecurringFrequency.MONTHLY, "매월 말일") == MonthlyLastDay()
    assert parse_day_rule(
        RecurringFrequency.WEEKLY, "월요일 / 목요일", allow_multi_weekday=True
    ) == WeeklyOnDays(frozenset({0, 3}))


@pytest.mark.parametrize(
    "frequency, day_rule",
    [
        (RecurringFrequency.MONTHLY, "매월 첫째주 금요일"),
        (RecurringFrequency.MONTHLY, "매월 32일"),
        (RecurringFrequency.MONTHLY, "매월 0일"),
        (RecurringFrequency.WEEKLY, "불금"),
        (RecurringFrequency.WEEKLY, ""),
        (RecurringFrequency.DAILY, None),
        ("HOURLY", "매일"),
    ],
)
def test_unsupported_rules_parse_as_unrecognized(frequency, day_rule):
    parsed = parse_day_rule(frequency, day_rule)
    assert isinstance(parsed, Unrecognized)
    assert parsed.reason


def test_iter_firing_dates_respects_rule_start():
    parsed = parse_day_rule(RecurringFrequency.MONTHLY, "매월 말일")
    dates = list(iter_firing_dates(parsed, date(2024, 1, 1), date(2024, 4, 15), rule_start=date(2024, 2, 1)))
    assert dates == [date(2024, 2, 29), date(2024, 3, 31)]


def test_iter_firing_dates_unrecognized_is_empty():
    parsed = parse_day_rule(RecurringFrequency.MONTHLY, "매월 첫째주 금요일")
    assert list(iter_firing_dates(parsed, date(2025, 1, 1), date(2025, 12, 31))) == []
