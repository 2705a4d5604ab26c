from __future__ import annotations

import os
import tempfile
from datetime import date
from typing import Generator, Any

import pytest
from sqlalchemy.orm import sessionmaker

from ledger.core.database import Base, create_db_engine, get_db
from ledger.main import app
from ledger import models


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # 사용자 환경을 건드리지 않도록 임시 파일 SQLite 사용
    fd, path = tempfile.mkstemp(prefix="ledger_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = create_db_engine(test_db_url)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # 간단 시드: demo user + 수입/지출 카테고리 1개씩
    user = models.User(email="demo@example.com", nickname="Demo", is_active=True)
    session.add(user)
    session.flush()
    session.add(models.Category(name="급여", type=models.CategoryType.INCOME, created_by=user.id))
    session.add(models.Category(name="고정지출", type=models.CategoryType.EXPENSE, created_by=user.id))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        # 테이블 데이터 정리 (SQLAlchemy 2.x 스타일)
        with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=ON")


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def demo_user(db_session) -> models.User:
    return db_session.query(models.User).filter_by(email="demo@example.com").one()


@pytest.fixture()
def income_category(db_session) -> models.Category:
    return db_session.query(models.Category).filter_by(type=models.CategoryType.INCOME).one()


@pytest.fixture()
def expense_category(db_session) -> models.Category:
    return db_session.query(models.Category).filter_by(type=models.CategoryType.EXPENSE).one()


@pytest.fixture()
def make_rule(db_session, demo_user):
    """Factory for persisted recurring rules with sensible defaults."""

    def _make(**overrides) -> models.RecurringRule:
        values = {
            "created_by": demo_user.id,
            "start_date": date(2025, 1, 1),
            "frequency": models.RecurringFrequency.MONTHLY,
            "day_rule": "매월 5일",
            "amount": 50_000,
            "merchant": None,
            "memo": None,
            "is_active": True,
        }
        values.update(overrides)
        rule = models.RecurringRule(**values)
        db_session.add(rule)
        db_session.commit()
        db_session.refresh(rule)
        return rule

    return _make
