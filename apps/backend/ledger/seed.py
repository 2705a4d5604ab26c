from __future__ import annotations

from sqlalchemy.orm import Session

from .core.database import SessionLocal
from .models import User, Category, CategoryType


def seed() -> None:
    db: Session = SessionLocal()
    try:
        # 기본 사용자(데모)
        user = db.query(User).filter_by(email="demo@example.com").first()
        if not user:
            user = User(email="demo@example.com", nickname="Demo", is_active=True)
            db.add(user)
            db.flush()

        # 기본 수입/지출 카테고리
        for name, ctype in (("급여", CategoryType.INCOME), ("고정지출", CategoryType.EXPENSE)):
            cat = db.query(Category).filter_by(name=name, type=ctype, created_by=user.id).first()
            if not cat:
                db.add(Category(name=name, type=ctype, created_by=user.id))

        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
