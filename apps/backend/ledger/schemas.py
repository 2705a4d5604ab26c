from __future__ import annotations

import re
from datetime import datetime
import datetime as dt
from typing import Optional, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .core.config import settings
from .models import RecurringFrequency, TxnType


_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MAX_RULE_AMOUNT = 999_999_999


def _strict_iso_date(v: Any) -> Any:
    if isinstance(v, str) and not _ISO_DATE.match(v):
        raise ValueError("date must be YYYY-MM-DD")
    return v


def _check_day_rule(frequency: RecurringFrequency, day_rule: str) -> None:
    # 순환 import 회피: services가 schemas를 참조함
    from .services.recurrence import Unrecognized, parse_day_rule

    parsed = parse_day_rule(frequency, day_rule, allow_multi_weekday=settings.RECURRING_WEEKLY_MULTI_DAY)
    if isinstance(parsed, Unrecognized):
        raise ValueError(f"unsupported day_rule for {frequency.value}: {parsed.reason}")


# RecurringRule Schemas
class RecurringRuleCreate(BaseModel):
    group_id: Optional[int] = None
    start_date: dt.date
    frequency: RecurringFrequency
    day_rule: str = Field(..., min_length=1, max_length=20)
    amount: int = Field(..., gt=0, le=MAX_RULE_AMOUNT)
    category_id: Optional[int] = None
    merchant: Optional[str] = Field(default=None, max_length=160)
    memo: Optional[str] = Field(default=None, max_length=1000)
    is_active: bool = True

    @field_validator("start_date", mode="before")
    def start_date_format(cls, v: Any):
        return _strict_iso_date(v)

    @field_validator("day_rule")
    def strip_day_rule(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("day_rule must not be empty")
        return v

    @model_validator(mode="after")
    def day_rule_matches_frequency(self):
        _check_day_rule(self.frequency, self.day_rule)
        return self


class RecurringRuleUpdate(BaseModel):
    """Partial update. ``start_date`` is immutable once a rule exists."""

    model_config = ConfigDict(extra="forbid")

    frequency: Optional[RecurringFrequency] = None
    day_rule: Optional[str] = Field(default=None, min_length=1, max_length=20)
    amount: Optional[int] = Field(default=None, gt=0, le=MAX_RULE_AMOUNT)
    category_id: Optional[int] = None
    merchant: Optional[str] = Field(default=None, max_length=160)
    memo: Optional[str] = Field(default=None, max_length=1000)
    is_active: Optional[bool] = None

    @field_validator("day_rule")
    def strip_day_rule(cls, v: str | None):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("day_rule must not be empty")
        return v


class RecurringRuleOut(BaseModel):
    id: int
    group_id: Optional[int]
    created_by: int
    start_date: dt.date
    frequency: RecurringFrequency
    day_rule: str
    amount: int
    category_id: Optional[int]
    merchant: Optional[str]
    memo: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionOut(BaseModel):
    id: int
    group_id: Optional[int]
    owner_user_id: int
    type: TxnType
    date: dt.date
    amount: int
    category_id: Optional[int]
    merchant: Optional[str]
    memo: Optional[str]
    generated_from_rule_id: Optional[int] = None
    generated_for_date: Optional[dt.date] = None

    model_config = ConfigDict(from_attributes=True)


class RecurringRuleGenerateRequest(BaseModel):
    date: dt.date

    @field_validator("date", mode="before")
    def date_format(cls, v: Any):
        return _strict_iso_date(v)


class RecurringRulePreviewOut(BaseModel):
    rule_id: int
    start: dt.date
    end: dt.date
    dates: list[dt.date]
    count: int


class RecurringProcessRequest(BaseModel):
    date: Optional[dt.date] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None

    @field_validator("date", "start_date", "end_date", mode="before")
    def iso_format(cls, v: Any):
        return _strict_iso_date(v)

    @model_validator(mode="after")
    def validate_range(self):
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be provided together")
        if self.start_date is not None and self.end_date is not None:
            if self.start_date > self.end_date:
                raise ValueError("start_date must not be after end_date")
            span = (self.end_date - self.start_date).days + 1
            if span > settings.RECURRING_MAX_RANGE_DAYS:
                raise ValueError(f"range must be at most {settings.RECURRING_MAX_RANGE_DAYS} days")
        return self

    @property
    def is_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None


class RecurringRuleFailure(BaseModel):
    rule_id: int
    error: str


class RecurringProcessResult(BaseModel):
    success: bool = True
    created: int
    skipped: int
    total: int
    failures: list[RecurringRuleFailure] = Field(default_factory=list)


class RecurringRangeDayResult(BaseModel):
    date: dt.date
    created: int
    skipped: int
    total: int
    failures: list[RecurringRuleFailure] = Field(default_factory=list)
    error: Optional[str] = None


class RecurringProcessOut(BaseModel):
    success: bool = True
    data: RecurringProcessResult | list[RecurringRangeDayResult]
    message: str
    timestamp: Optional[datetime] = None
