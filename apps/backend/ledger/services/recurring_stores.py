"""
반복 거래 스케줄러가 사용하는 저장소 계층

스케줄러는 아래 인터페이스만 통해 규칙/거래 테이블에 접근합니다.
SQLAlchemy 세션 기반 구현을 기본으로 제공합니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from sqlalchemy.orm import Session, joinedload

from ledger import models


@dataclass(frozen=True)
class DuplicateKey:
    """Fields a generated transaction is matched on."""

    owner_user_id: int
    date: date
    amount: int
    category_id: Optional[int]
    merchant: Optional[str]
    memo_marker: str = models.AUTO_GENERATED_MARKER
    rule_id: Optional[int] = None


@dataclass
class NewTransaction:
    owner_user_id: int
    group_id: Optional[int]
    type: models.TxnType
    date: date
    amount: int
    category_id: Optional[int]
    merchant: Optional[str]
    memo: str
    generated_from_rule_id: Optional[int] = None
    generated_for_date: Optional[date] = None


class RuleStore(Protocol):
    def list_active_rules(
        self,
        *,
        as_of: date,
        rule_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> list[models.RecurringRule]: ...


class TransactionStore(Protocol):
    def find_duplicate(self, key: DuplicateKey) -> Optional[models.Transaction]: ...

    def insert(self, transaction: NewTransaction) -> models.Transaction: ...


class SqlRuleStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_active_rules(
        self,
        *,
        as_of: date,
        rule_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> list[models.RecurringRule]:
        q = (
            self.db.query(models.RecurringRule)
            .options(joinedload(models.RecurringRule.category))
            .filter(
                models.RecurringRule.is_active.is_(True),
                models.RecurringRule.start_date <= as_of,
            )
        )
        if rule_id is not None:
            q = q.filter(models.RecurringRule.id == rule_id)
        if user_id is not None:
            q = q.filter(models.RecurringRule.created_by == user_id)
        return q.order_by(models.RecurringRule.id).all()


class SqlTransactionStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_duplicate(self, key: DuplicateKey) -> Optional[models.Transaction]:
        # 1) 명시적 링크 (generated_from_rule_id, generated_for_date)
        if key.rule_id is not None:
            linked = (
                self.db.query(models.Transaction)
                .filter(
                    models.Transaction.generated_from_rule_id == key.rule_id,
                    models.Transaction.generated_for_date == key.date,
                )
                .first()
            )
            if linked is not None:
                return linked

        # 2) 링크 컬럼 도입 이전 생성분: 값 동등성 + 메모 마커
        q = self.db.query(models.Transaction).filter(
            models.Transaction.owner_user_id == key.owner_user_id,
            models.Transaction.date == key.date,
            models.Transaction.amount == key.amount,
            models.Transaction.memo.contains(key.memo_marker),
        )
        if key.category_id is None:
            q = q.filter(models.Transaction.category_id.is_(None))
        else:
            q = q.filter(models.Transaction.category_id == key.category_id)
        if key.merchant is None:
            q = q.filter(models.Transaction.merchant.is_(None))
        else:
            q = q.filter(models.Transaction.merchant == key.merchant)
        return q.first()

    def insert(self, transaction: NewTransaction) -> models.Transaction:
        row = models.Transaction(
            owner_user_id=transaction.owner_user_id,
            group_id=transaction.group_id,
            type=transaction.type,
            date=transaction.date,
            amount=transaction.amount,
            category_id=transaction.category_id,
            merchant=transaction.merchant,
            memo=transaction.memo,
            generated_from_rule_id=transaction.generated_from_rule_id,
            generated_for_date=transaction.generated_for_date,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def rollback(self) -> None:
        self.db.rollback()
