"""
Services 패키지

반복 거래 스케줄러와 그 구성 요소를 제공합니다.
"""

from .duplicate_guard import DuplicateGuard
from .recurring_scheduler import RecurringScheduler
from .recurring_stores import SqlRuleStore, SqlTransactionStore
from .transaction_materializer import OccurrenceAlreadyGenerated, TransactionMaterializer

__all__ = [
    "DuplicateGuard",
    "RecurringScheduler",
    "SqlRuleStore",
    "SqlTransactionStore",
    "OccurrenceAlreadyGenerated",
    "TransactionMaterializer",
]
