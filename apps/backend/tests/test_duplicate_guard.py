from datetime import date

from ledger import models
from ledger.services import DuplicateGuard, SqlTransactionStore


TARGET = date(2025, 9, 5)


def _add_txn(db_session, rule: models.RecurringRule, **overrides) -> models.Transaction:
    values = {
        "owner_user_id": rule.created_by,
        "type": models.TxnType.EXPENSE,
        "date": TARGET,
        "amount": rule.amount,
        "category_id": rule.category_id,
        "merchant": rule.merchant,
        "memo": f"{rule.memo or ''} {models.AUTO_GENERATED_MARKER}".strip(),
    }
    values.update(overrides)
    txn = models.Transaction(**values)
    db_session.add(txn)
    db_session.commit()
    return txn


def test_no_transaction_is_not_duplicate(db_session, make_rule):
    rule = make_rule()
    guard = DuplicateGuard(SqlTransactionStore(db_session))
    assert guard.exists(rule, TARGET) is False


def test_value_equal_generated_transaction_is_duplicate(db_session, make_rule, expense_category):
    rule = make_rule(category_id=expense_category.id, merchant="월세집주인", memo="월세")
    _add_txn(db_session, rule)
    guard = DuplicateGuard(SqlTransactionStore(db_session))
    assert guard.exists(rule, TARGET) is True


def test_null_category_and_merchant_are_matched(db_session, make_rule):
    rule = make_rule(category_id=None, merchant=None)
    _add_txn(db_session, rule)
    guard = DuplicateGuard(SqlTransactionStore(db_session))
    assert guard.exists(rule, TARGET) is True


def test_single_field_mismatch_is_not_duplicate(db_session, make_rule, expense_category):
    rule = make_rule(category_id=expense_category.id, merchant="넷플릭스")
    # 사용자가 생성 후 금액을 수정한 경우
    _add_txn(db_session, rule, amount=rule.amount + 1000)
    guard = DuplicateGuard(SqlTransactionStore(db_session))
    assert guard.exists(rule, TARGET) is False


def test_manual_entry_without_marker_is_not_duplicate(db_session, make_rule):
    rule = make_rule(memo="관리비")
    _add_txn(db_session, rule, memo="관리비")
    guard = DuplicateGuard(SqlTransactionStore(db_session))
    assert guard.exists(rule, TARGET) is False


def test_other_date_is_not_duplicate(db_session, make_rule):
    rule = make_rule()
    _add_txn(db_session, rule, date=date(2025, 8, 5))
    guard = DuplicateGuard(SqlTransactionStore(db_session))
    assert guard.exists(rule, TARGET) is False


def test_linked_transaction_is_duplicate_even_after_edit(db_session, make_rule):
    rule = make_rule()
    _add_txn(
        db_session,
        rule,
        amount=rule.amount + 5000,
        memo="직접 수정함",
        generated_from_rule_id=rule.id,
        generated_for_date=TARGET,
    )
    guard = DuplicateGuard(SqlTransactionStore(db_session))
    assert guard.exists(rule, TARGET) is True


def test_key_carries_rule_fields(make_rule, expense_category):
    rule = make_rule(category_id=expense_category.id, merchant="헬스장")
    key = DuplicateGuard(SqlTransactionStore(None)).key_for(rule, TARGET)
    assert key.owner_user_id == rule.created_by
    assert key.amount == rule.amount
    assert key.category_id == expense_category.id
    assert key.merchant == "헬스장"
    assert key.memo_marker == models.AUTO_GENERATED_MARKER
    assert key.rule_id == rule.id
