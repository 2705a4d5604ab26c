"""
반복 거래 스케줄러

활성화된 반복 거래 규칙을 기준으로 특정 날짜(또는 기간)의 실제 거래를 생성합니다.

책임:
- 규칙별 날짜 판정 (recurrence)
- 중복 생성 방지 (DuplicateGuard)
- 거래 생성 (TransactionMaterializer)
- 규칙 단위 오류 격리 및 결과 집계
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Literal, Optional

from sqlalchemy.orm import Session

from ledger import models, schemas
from ledger.core.config import settings
from ledger.core.logging import get_logger
from ledger.services.duplicate_guard import DuplicateGuard
from ledger.services.recurrence import (
    DayRule,
    Unrecognized,
    is_firing_date,
    iter_firing_dates,
    parse_day_rule,
)
from ledger.services.recurring_stores import (
    RuleStore,
    SqlRuleStore,
    SqlTransactionStore,
    TransactionStore,
)
from ledger.services.transaction_materializer import OccurrenceAlreadyGenerated, TransactionMaterializer


logger = get_logger(__name__)

RangeFailurePolicy = Literal["fail_fast", "isolate"]


def _as_date(value: date | datetime) -> date:
    # datetime은 date의 하위 클래스이므로 먼저 검사
    if isinstance(value, datetime):
        return value.date()
    return value


class RecurringScheduler:
    """
    반복 거래 일괄 처리기

    단일 프로세스에서 요청 시 또는 크론으로 호출됩니다. 호출 간 상태는 없고,
    이미 생성된 거래는 매번 DuplicateGuard 조회로 다시 확인합니다.
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        *,
        rule_store: Optional[RuleStore] = None,
        transaction_store: Optional[TransactionStore] = None,
        allow_multi_weekday: Optional[bool] = None,
        range_failure_policy: Optional[RangeFailurePolicy] = None,
    ) -> None:
        if db is None and (rule_store is None or transaction_store is None):
            raise ValueError("db session or both stores are required")
        self.rule_store: RuleStore = rule_store or SqlRuleStore(db)
        self.transaction_store: TransactionStore = transaction_store or SqlTransactionStore(db)
        self.guard = DuplicateGuard(self.transaction_store)
        self.materializer = TransactionMaterializer(self.transaction_store)
        self.allow_multi_weekday = (
            settings.RECURRING_WEEKLY_MULTI_DAY if allow_multi_weekday is None else allow_multi_weekday
        )
        self.range_failure_policy: RangeFailurePolicy = (
            range_failure_policy or settings.RECURRING_RANGE_FAILURE_POLICY
        )
        self._logger = logger.bind(component="recurring_scheduler")

    def _parse(self, rule: models.RecurringRule) -> DayRule:
        return parse_day_rule(rule.frequency, rule.day_rule, allow_multi_weekday=self.allow_multi_weekday)

    def rule_fires_on(self, rule: models.RecurringRule, on: date) -> bool:
        if on < rule.start_date:
            return False
        return is_firing_date(self._parse(rule), on)

    def preview_dates(self, rule: models.RecurringRule, start: date, end: date) -> list[date]:
        return list(iter_firing_dates(self._parse(rule), _as_date(start), _as_date(end), rule_start=rule.start_date))

    def generate_once(self, rule: models.RecurringRule, on: date | datetime) -> models.Transaction:
        """Materialize ``rule`` for ``on`` without evaluating its day-rule.

        Raises :class:`OccurrenceAlreadyGenerated` when the guard finds an
        existing generated transaction.
        """
        target = _as_date(on)
        if self.guard.exists(rule, target):
            raise OccurrenceAlreadyGenerated(rule.id, target)
        return self.materializer.materialize(rule, target)

    def process_for_date(
        self,
        on: date | datetime,
        *,
        rule_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> schemas.RecurringProcessResult:
        """Generate transactions for every active rule firing on ``on``.

        Rule listing errors propagate. Errors while handling one rule are
        logged, rolled back and reported in ``failures``; the remaining rules
        still run. ``total`` counts every rule considered for the date.
        """
        target = _as_date(on)
        log = self._logger.bind(date=target.isoformat())

        rules = self.rule_store.list_active_rules(as_of=target, rule_id=rule_id, user_id=user_id)
        log.info("recurring.batch_started", rules=len(rules), rule_id=rule_id, user_id=user_id)

        created = 0
        skipped = 0
        failures: list[schemas.RecurringRuleFailure] = []

        # 커밋/롤백마다 규칙 인스턴스가 만료되므로 id는 첫 커밋 전에 확보
        rule_ids = [rule.id for rule in rules]

        for rule, current_rule_id in zip(rules, rule_ids):
            try:
                if target < rule.start_date:
                    continue
                parsed = self._parse(rule)
                if isinstance(parsed, Unrecognized):
                    log.warning("recurring.rule_unrecognized", rule_id=current_rule_id, reason=parsed.reason)
                    continue
                if not is_firing_date(parsed, target):
                    continue
                log.debug("recurring.rule_matched", rule_id=current_rule_id)

                if self.guard.exists(rule, target):
                    skipped += 1
                    log.info("recurring.duplicate_skipped", rule_id=current_rule_id)
                    continue

                txn = self.materializer.materialize(rule, target)
                created += 1
                log.info("recurring.transaction_created", rule_id=current_rule_id, transaction_id=txn.id, amount=txn.amount)
            except OccurrenceAlreadyGenerated:
                skipped += 1
                log.info("recurring.duplicate_skipped", rule_id=current_rule_id, concurrent=True)
            except Exception as exc:  # noqa: BLE001
                self._rollback()
                failures.append(schemas.RecurringRuleFailure(rule_id=current_rule_id, error=str(exc)))
                log.error("recurring.rule_failed", rule_id=current_rule_id, error=str(exc), exc_info=True)

        log.info(
            "recurring.batch_completed",
            created=created,
            skipped=skipped,
            failed=len(failures),
            total=len(rules),
        )
        return schemas.RecurringProcessResult(
            created=created,
            skipped=skipped,
            total=len(rules),
            failures=failures,
        )

    def process_for_range(
        self,
        start: date | datetime,
        end: date | datetime,
        user_id: Optional[int] = None,
        *,
        failure_policy: Optional[RangeFailurePolicy] = None,
    ) -> list[schemas.RecurringRangeDayResult]:
        """Run :meth:`process_for_date` for each day from ``start`` to ``end`` inclusive.

        Days run strictly in order so each day's writes are visible to the
        next day's duplicate checks. With ``fail_fast`` a failing day aborts
        the range and the error propagates; with ``isolate`` the day is
        recorded with ``error`` set and processing continues.
        """
        policy = failure_policy or self.range_failure_policy
        current = _as_date(start)
        last = _as_date(end)
        results: list[schemas.RecurringRangeDayResult] = []

        while current <= last:
            try:
                day = self.process_for_date(current, user_id=user_id)
            except Exception as exc:
                if policy != "isolate":
                    raise
                self._rollback()
                self._logger.error(
                    "recurring.range_day_failed",
                    date=current.isoformat(),
                    error=str(exc),
                )
                results.append(
                    schemas.RecurringRangeDayResult(
                        date=current, created=0, skipped=0, total=0, error=str(exc)
                    )
                )
            else:
                results.append(
                    schemas.RecurringRangeDayResult(
                        date=current,
                        created=day.created,
                        skipped=day.skipped,
                        total=day.total,
                        failures=day.failures,
                    )
                )
            current += timedelta(days=1)

        return results

    def process_today(self) -> schemas.RecurringProcessResult:
        return self.process_for_date(models.today_local())

    def _rollback(self) -> None:
        rollback = getattr(self.transaction_store, "rollback", None)
        if rollback is not None:
            rollback()
