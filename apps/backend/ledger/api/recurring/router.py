from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ledger.core.config import settings
from ledger.core.database import get_db
from ledger.core.deps import get_current_user, verify_scheduler_key
from ledger.core.logging import get_logger
from ledger.schemas import (
    RecurringProcessOut,
    RecurringProcessRequest,
    RecurringRuleCreate,
    RecurringRuleGenerateRequest,
    RecurringRuleOut,
    RecurringRulePreviewOut,
    RecurringRuleUpdate,
    TransactionOut,
)
from ledger.services import OccurrenceAlreadyGenerated, RecurringScheduler
from ledger.services.recurrence import Unrecognized, parse_day_rule
from ledger import models


router = APIRouter(prefix="/recurring-rules", tags=["recurring-rules"])

logger = get_logger(__name__)

PREVIEW_MAX_DAYS = 366


def _get_owned_rule(db: Session, rule_id: int, user_id: int) -> models.RecurringRule:
    rule = (
        db.query(models.RecurringRule)
        .filter(models.RecurringRule.id == rule_id, models.RecurringRule.created_by == user_id)
        .first()
    )
    if not rule:
        raise HTTPException(status_code=404, detail="RecurringRule not found")
    return rule


def _ensure_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    if db.get(models.Category, category_id) is None:
        raise HTTPException(status_code=400, detail="Category not found")


# 크론 트리거가 /{rule_id} 보다 먼저 매칭되도록 상단에 선언
@router.get("/process", response_model=RecurringProcessOut, dependencies=[Depends(verify_scheduler_key)])
def process_today(db: Session = Depends(get_db)):
    scheduler = RecurringScheduler(db)
    try:
        result = scheduler.process_today()
    except Exception as exc:  # noqa: BLE001
        logger.error("recurring.cron_failed", error=str(exc), exc_info=True)
        raise HTTPException(status_code=500, detail="Recurring processing failed")
    return RecurringProcessOut(
        data=result,
        message=f"created {result.created}, skipped {result.skipped}",
        timestamp=models.now_local_naive(),
    )


@router.post("/process", response_model=RecurringProcessOut)
def process_for_current_user(
    payload: RecurringProcessRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    scheduler = RecurringScheduler(db)
    try:
        if payload.is_range:
            data = scheduler.process_for_range(payload.start_date, payload.end_date, user_id=current_user.id)
        else:
            target = payload.date or models.today_local()
            data = scheduler.process_for_date(target, user_id=current_user.id)
    except Exception as exc:  # noqa: BLE001
        logger.error("recurring.manual_process_failed", user_id=current_user.id, error=str(exc), exc_info=True)
        raise HTTPException(status_code=500, detail="Recurring processing failed")
    return RecurringProcessOut(data=data, message="Recurring processing completed")


@router.post("", response_model=RecurringRuleOut, status_code=201)
def create_recurring_rule(
    payload: RecurringRuleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    _ensure_category(db, payload.category_id)
    item = models.RecurringRule(**payload.model_dump(), created_by=current_user.id)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.get("", response_model=list[RecurringRuleOut])
def list_recurring_rules(
    is_active: Optional[bool] = Query(None),
    group_id: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    q = db.query(models.RecurringRule).filter(models.RecurringRule.created_by == current_user.id)
    if is_active is not None:
        q = q.filter(models.RecurringRule.is_active == is_active)
    if group_id is not None:
        q = q.filter(models.RecurringRule.group_id == group_id)
    return q.order_by(
        models.RecurringRule.is_active.desc(),
        models.RecurringRule.created_at.desc(),
        models.RecurringRule.id.desc(),
    ).all()


@router.get("/{rule_id}", response_model=RecurringRuleOut)
def get_recurring_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _get_owned_rule(db, rule_id, current_user.id)


@router.patch("/{rule_id}", response_model=RecurringRuleOut)
def update_recurring_rule(
    rule_id: int,
    payload: RecurringRuleUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rule = _get_owned_rule(db, rule_id, current_user.id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return rule

    for key in ("frequency", "day_rule", "amount", "is_active"):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} must not be null")

    frequency = changes.get("frequency", rule.frequency)
    day_rule = changes.get("day_rule", rule.day_rule)
    parsed = parse_day_rule(frequency, day_rule, allow_multi_weekday=settings.RECURRING_WEEKLY_MULTI_DAY)
    if isinstance(parsed, Unrecognized):
        raise HTTPException(status_code=400, detail=f"unsupported day_rule: {parsed.reason}")
    if "category_id" in changes:
        _ensure_category(db, changes["category_id"])

    for key, value in changes.items():
        setattr(rule, key, value)
    db.commit()
    db.refresh(rule)
    return rule


@router.delete("/{rule_id}", status_code=204)
def delete_recurring_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rule = _get_owned_rule(db, rule_id, current_user.id)
    db.delete(rule)
    db.commit()
    return Response(status_code=204)


@router.post("/{rule_id}/generate", response_model=TransactionOut, status_code=201)
def generate_from_rule(
    rule_id: int,
    payload: RecurringRuleGenerateRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rule = _get_owned_rule(db, rule_id, current_user.id)
    if not rule.is_active:
        raise HTTPException(status_code=400, detail="Inactive recurring rule")
    try:
        return RecurringScheduler(db).generate_once(rule, payload.date)
    except OccurrenceAlreadyGenerated:
        raise HTTPException(status_code=409, detail="Transaction already generated for this date")


@router.get("/{rule_id}/preview", response_model=RecurringRulePreviewOut)
def preview_recurring_rule(
    rule_id: int,
    start: date = Query(...),
    end: date = Query(...),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    if end - start >= timedelta(days=PREVIEW_MAX_DAYS):
        raise HTTPException(status_code=400, detail=f"preview window must be at most {PREVIEW_MAX_DAYS} days")
    rule = _get_owned_rule(db, rule_id, current_user.id)
    dates = RecurringScheduler(db).preview_dates(rule, start, end)
    return RecurringRulePreviewOut(rule_id=rule.id, start=start, end=end, dates=dates, count=len(dates))
