from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo
from enum import Enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.config import settings
from .core.database import Base


try:
    LOCAL_ZONE = ZoneInfo(getattr(settings, "TIMEZONE", "Asia/Seoul"))
except Exception:
    LOCAL_ZONE = ZoneInfo("Asia/Seoul")


# 반복 규칙으로 자동 생성된 거래의 메모 접미사. 중복 검사도 이 문자열을 찾는다.
AUTO_GENERATED_MARKER = "(자동 생성)"


def now_local_naive() -> datetime:
    """Return naive datetime normalized to configured local timezone."""
    return datetime.now(LOCAL_ZONE).replace(tzinfo=None)


def today_local() -> date:
    return now_local_naive().date()


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False)


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    nickname: Mapped[str | None] = mapped_column(String(60))
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class LedgerGroup(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    owner_user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)


class TxnType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class CategoryType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Category(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[CategoryType] = mapped_column(SAEnum(CategoryType), nullable=False)
    color: Mapped[str | None] = mapped_column(String(9))
    group_id: Mapped[int | None] = mapped_column(ForeignKey("ledgergroup.id"))
    created_by: Mapped[int | None] = mapped_column(ForeignKey("user.id"))


class RecurringFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class RecurringRule(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_id: Mapped[int | None] = mapped_column(ForeignKey("ledgergroup.id"))  # NULL = 개인 규칙
    created_by: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    frequency: Mapped[RecurringFrequency] = mapped_column(SAEnum(RecurringFrequency), nullable=False)
    day_rule: Mapped[str] = mapped_column(String(20), nullable=False)  # 예: 매일, 월요일, 매월 5일, 매월 말일
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)  # 부호 없는 최소 화폐 단위
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id", ondelete="SET NULL"))
    merchant: Mapped[str | None] = mapped_column(String(160))
    memo: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    category: Mapped["Category | None"] = relationship("Category")
    group: Mapped["LedgerGroup | None"] = relationship("LedgerGroup")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_recurring_amount_positive"),
        Index("ix_recurring_active_start", "is_active", "start_date"),
    )


class Transaction(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_id: Mapped[int | None] = mapped_column(ForeignKey("ledgergroup.id"))
    owner_user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id", ondelete="SET NULL"))
    merchant: Mapped[str | None] = mapped_column(String(160))
    memo: Mapped[str | None] = mapped_column(Text)

    # 반복 규칙 생성분 추적. 수동 입력 거래는 둘 다 NULL
    generated_from_rule_id: Mapped[int | None] = mapped_column(ForeignKey("recurringrule.id", ondelete="SET NULL"))
    generated_for_date: Mapped[date | None] = mapped_column(Date)

    category: Mapped["Category | None"] = relationship("Category")

    __table_args__ = (
        UniqueConstraint("generated_from_rule_id", "generated_for_date", name="uq_txn_generated_rule_date"),
        Index("ix_txn_owner_date", "owner_user_id", "date"),
    )
