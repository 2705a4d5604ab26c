"""
반복 규칙 날짜 판정

day_rule 문자열을 한 번 파싱해 닫힌 변형 타입으로 바꾸고,
특정 날짜가 규칙의 발생일인지 판정합니다.

지원 문법:
- DAILY: "매일", "평일만", "주말만"
- WEEKLY: "월요일" 또는 "매주 월요일" 등 요일 이름 하나 (설정 시 "월요일,수요일" 같은 목록)
- MONTHLY: "매월 N일" (1~31), "매월 말일"

해석할 수 없는 규칙은 ``Unrecognized`` 로 파싱되어 절대 발생하지 않습니다.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Union

from ledger.models import RecurringFrequency


# date.weekday() 순서 (0=월요일 .. 6=일요일)
WEEKDAY_NAMES: tuple[str, ...] = ("월요일", "화요일", "수요일", "목요일", "금요일", "토요일", "일요일")

DAILY_EVERY_DAY = "매일"
DAILY_WEEKDAYS_ONLY = "평일만"
DAILY_WEEKEND_ONLY = "주말만"
MONTHLY_LAST_DAY = "매월 말일"
WEEKLY_PREFIX = "매주"

_MONTHLY_DAY_PATTERN = re.compile(r"매월 (\d+)일")
_WEEKDAY_SEPARATORS = re.compile(r"[,/\s]+")


@dataclass(frozen=True)
class DailyEveryDay:
    pass


@dataclass(frozen=True)
class DailyWeekdaysOnly:
    pass


@dataclass(frozen=True)
class DailyWeekendOnly:
    pass


@dataclass(frozen=True)
class WeeklyOnDays:
    weekdays: frozenset[int]


@dataclass(frozen=True)
class MonthlyOnDay:
    day: int


@dataclass(frozen=True)
class MonthlyLastDay:
    pass


@dataclass(frozen=True)
class Unrecognized:
    raw: str
    reason: str


DayRule = Union[
    DailyEveryDay,
    DailyWeekdaysOnly,
    DailyWeekendOnly,
    WeeklyOnDays,
    MonthlyOnDay,
    MonthlyLastDay,
    Unrecognized,
]


def _coerce_frequency(frequency: RecurringFrequency | str) -> RecurringFrequency | None:
    if isinstance(frequency, RecurringFrequency):
        return frequency
    try:
        return RecurringFrequency(str(frequency).upper())
    except ValueError:
        return None


def _parse_weekly(raw: str, *, allow_multi_weekday: bool) -> DayRule:
    # "매주 월요일" 처럼 앞에 붙는 "매주"는 무시
    tokens = [t for t in _WEEKDAY_SEPARATORS.split(raw.strip()) if t and t != WEEKLY_PREFIX]
    if not tokens:
        return Unrecognized(raw, "empty weekly rule")
    try:
        weekdays = frozenset(WEEKDAY_NAMES.index(t) for t in tokens)
    except ValueError:
        return Unrecognized(raw, "unknown weekday name")
    if len(tokens) > 1 and not allow_multi_weekday:
        return Unrecognized(raw, "multiple weekdays are disabled")
    return WeeklyOnDays(weekdays)


def _parse_monthly(raw: str) -> DayRule:
    text = raw.strip()
    if text == MONTHLY_LAST_DAY:
        return MonthlyLastDay()
    m = _MONTHLY_DAY_PATTERN.search(text)
    if not m:
        # "매월 첫째주 금요일" 같은 서수 요일 규칙은 아직 지원하지 않음
        return Unrecognized(raw, "unsupported monthly rule")
    day = int(m.group(1))
    if not (1 <= day <= 31):
        return Unrecognized(raw, "day of month out of range")
    return MonthlyOnDay(day)


def parse_day_rule(
    frequency: RecurringFrequency | str,
    day_rule: str | None,
    *,
    allow_multi_weekday: bool = False,
) -> DayRule:
    """Parse a stored ``day_rule`` string for ``frequency`` into a typed variant.

    Never raises: anything outside the grammar becomes :class:`Unrecognized`.
    """
    raw = day_rule or ""
    freq = _coerce_frequency(frequency)
    if freq is None:
        return Unrecognized(raw, f"unknown frequency {frequency!r}")

    if freq == RecurringFrequency.DAILY:
        text = raw.strip()
        if text == DAILY_EVERY_DAY:
            return DailyEveryDay()
        if text == DAILY_WEEKDAYS_ONLY:
            return DailyWeekdaysOnly()
        if text == DAILY_WEEKEND_ONLY:
            return DailyWeekendOnly()
        return Unrecognized(raw, "unsupported daily rule")

    if freq == RecurringFrequency.WEEKLY:
        return _parse_weekly(raw, allow_multi_weekday=allow_multi_weekday)

    return _parse_monthly(raw)


def last_day_of_month(year: int, month: int) -> int:
    """Day number of the last day of ``month``: first day of next month minus one day."""
    if month == 12:
        first_of_next = date(year + 1, 1, 1)
    else:
        first_of_next = date(year, month + 1, 1)
    return (first_of_next - timedelta(days=1)).day


def is_firing_date(rule: DayRule, target: date) -> bool:
    if isinstance(rule, DailyEveryDay):
        return True
    if isinstance(rule, DailyWeekdaysOnly):
        return target.weekday() < 5
    if isinstance(rule, DailyWeekendOnly):
        return target.weekday() >= 5
    if isinstance(rule, WeeklyOnDays):
        return target.weekday() in rule.weekdays
    if isinstance(rule, MonthlyOnDay):
        return target.day == rule.day
    if isinstance(rule, MonthlyLastDay):
        return target.day == last_day_of_month(target.year, target.month)
    return False


def matches(
    day_rule: str | None,
    frequency: RecurringFrequency | str,
    target_date: date,
    start_date: date,
    *,
    allow_multi_weekday: bool = False,
) -> bool:
    """Decide whether ``target_date`` is a firing date for the rule.

    Rules never fire before ``start_date``; the start date itself is
    evaluated normally.
    """
    if target_date < start_date:
        return False
    parsed = parse_day_rule(frequency, day_rule, allow_multi_weekday=allow_multi_weekday)
    return is_firing_date(parsed, target_date)


def iter_firing_dates(rule: DayRule, start: date, end: date, *, rule_start: date | None = None) -> Iterator[date]:
    """Yield firing dates of ``rule`` within ``[start, end]`` in calendar order."""
    if isinstance(rule, Unrecognized):
        return
    current = start
    if rule_start and rule_start > current:
        current = rule_start
    while current <= end:
        if is_firing_date(rule, current):
            yield current
        current += timedelta(days=1)
