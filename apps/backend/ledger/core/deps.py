from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ledger.core.config import settings
from ledger.core.database import get_db
from ledger import models


def get_current_user(db: Session = Depends(get_db)) -> models.User:
    """Very lightweight current user resolver.

    For now, returns the first user (creates a demo if none). Tests may override
    this dependency to simulate different users.
    """
    user = db.query(models.User).order_by(models.User.id).first()
    if not user:
        user = models.User(email="demo@example.com", nickname="Demo", is_active=True)
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def verify_scheduler_key(authorization: str | None = Header(default=None)) -> None:
    """Bearer-secret check for the cron trigger."""
    expected = settings.SCHEDULER_API_KEY
    if not expected:
        raise HTTPException(status_code=500, detail="Scheduler API key is not configured")
    if authorization is None or not secrets.compare_digest(authorization.encode(), f"Bearer {expected}".encode()):
        raise HTTPException(status_code=401, detail="Invalid scheduler credentials")
