from __future__ import annotations

from datetime import date

from ledger import models
from ledger.services.recurring_stores import DuplicateKey, TransactionStore


class DuplicateGuard:
    """Idempotency check run before a rule is materialized for a date.

    A transaction counts as already generated when it is linked to the rule
    and date, or when owner, date, amount, category and merchant all match
    and its memo carries the auto-generation marker. Any single mismatch
    (e.g. the user edited the amount afterwards) reports "not a duplicate".
    """

    def __init__(self, store: TransactionStore, *, marker: str = models.AUTO_GENERATED_MARKER) -> None:
        self.store = store
        self.marker = marker

    def key_for(self, rule: models.RecurringRule, on: date) -> DuplicateKey:
        return DuplicateKey(
            owner_user_id=rule.created_by,
            date=on,
            amount=rule.amount,
            category_id=rule.category_id,
            merchant=rule.merchant,
            memo_marker=self.marker,
            rule_id=rule.id,
        )

    def exists(self, rule: models.RecurringRule, on: date) -> bool:
        return self.store.find_duplicate(self.key_for(rule, on)) is not None
