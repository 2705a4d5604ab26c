from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError

from ledger import models
from ledger.services.recurring_stores import NewTransaction, TransactionStore


class OccurrenceAlreadyGenerated(Exception):
    """The (rule, date) occurrence was inserted concurrently by another run."""

    def __init__(self, rule_id: int, on: date) -> None:
        super().__init__(f"rule {rule_id} already generated for {on.isoformat()}")
        self.rule_id = rule_id
        self.on = on


def transaction_type_for(rule: models.RecurringRule) -> models.TxnType:
    """INCOME only when the linked category is an income category, else EXPENSE."""
    category = rule.category
    if category is not None and category.type == models.CategoryType.INCOME:
        return models.TxnType.INCOME
    return models.TxnType.EXPENSE


def generated_memo(memo: str | None, marker: str = models.AUTO_GENERATED_MARKER) -> str:
    return f"{memo or ''} {marker}".strip()


class TransactionMaterializer:
    def __init__(self, store: TransactionStore, *, marker: str = models.AUTO_GENERATED_MARKER) -> None:
        self.store = store
        self.marker = marker

    def build(self, rule: models.RecurringRule, on: date) -> NewTransaction:
        return NewTransaction(
            owner_user_id=rule.created_by,
            group_id=rule.group_id,
            type=transaction_type_for(rule),
            date=on,
            amount=rule.amount,
            category_id=rule.category_id,
            merchant=rule.merchant,
            memo=generated_memo(rule.memo, self.marker),
            generated_from_rule_id=rule.id,
            generated_for_date=on,
        )

    def materialize(self, rule: models.RecurringRule, on: date) -> models.Transaction:
        """Insert the concrete transaction for ``rule`` on ``on``.

        Callers run the duplicate guard first. A unique-constraint violation
        on the (rule, date) link means a concurrent run won the race and is
        raised as :class:`OccurrenceAlreadyGenerated`; other store errors
        propagate unchanged.
        """
        try:
            return self.store.insert(self.build(rule, on))
        except IntegrityError as exc:
            rollback = getattr(self.store, "rollback", None)
            if rollback is not None:
                rollback()
            if "uq_txn_generated_rule_date" in str(exc.orig) or "generated_from_rule_id" in str(exc.orig):
                raise OccurrenceAlreadyGenerated(rule.id, on) from exc
            raise
