from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Household Ledger Backend"
    ENV: str = "dev"

    # 기본 SQLite 파일 DB: apps/backend/db.sqlite3 절대경로 (CWD 무관)
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "Asia/Seoul"

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["console", "json"] = "console"

    # 크론 트리거용 Bearer 키. 미설정 시 크론 엔드포인트는 500을 반환
    SCHEDULER_API_KEY: str | None = None

    # 반복 거래 일괄 처리 정책
    RECURRING_MAX_RANGE_DAYS: int = 31
    RECURRING_RANGE_FAILURE_POLICY: Literal["fail_fast", "isolate"] = "fail_fast"
    RECURRING_WEEKLY_MULTI_DAY: bool = False

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="LEDGER_", case_sensitive=False)


settings = Settings()
