"""Application settings: single file, Pydantic-based.

DB selection:
  - DATABASE_URL set and non-empty -> PostgreSQL
  - DATABASE_URL absent/empty -> SQLite (DB_SQLITE_PATH, default data/hivepay.db)

Payout and ledger defaults live in PayoutSettings / HiveSettings so every service
can fall back to them when a caller does not pass explicit values.
"""

import re
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from db.enums import Currency, PercentageStrategy


def _project_root() -> Path:
    """Project root. config.py lives at the root."""
    return Path(__file__).resolve().parent


def _ensure_env_loaded() -> None:
    """Load .env from the project root (then its parent). Idempotent."""
    root: Path = _project_root()
    for candidate in (root / ".env", root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)


_ensure_env_loaded()


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str | None = Field(
        default=None,
        description="PostgreSQL DSN; when set, uses Postgres.",
        validation_alias="DATABASE_URL",
    )
    sqlite_path: str | None = Field(default="data/hivepay.db")
    pool_size: int = Field(default=5)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)
    busy_timeout_ms: int = Field(default=30000)

    def _use_postgres(self) -> bool:
        return bool((self.database_url or "").strip())

    def _resolved_sqlite_path(self) -> Path:
        raw: str = (self.sqlite_path or "data/hivepay.db").strip()
        path: Path = Path(raw)
        if not path.is_absolute():
            path = (_project_root() / path).resolve()
        return path

    def _redacted_postgres_dsn(self) -> str:
        url: str = (self.database_url or "").strip()
        return re.sub(r":([^:@]+)@", r":***@", url) if url else ""

    @property
    def url(self) -> str:
        if self._use_postgres():
            return (self.database_url or "").strip()
        path = self._resolved_sqlite_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path.as_posix()}"

    def db_info_for_logging(self) -> str:
        if self._use_postgres():
            return f"PostgreSQL @ {self._redacted_postgres_dsn()}"
        return f"SQLite @ {self._resolved_sqlite_path().as_posix()}"


class HiveSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HIVE_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    rpc_url: str = Field(default="https://api.hive.blog")
    hafah_url: str = Field(default="https://api.hive.blog/hafah-api")
    rpc_timeout: float = Field(default=30.0)
    retry_attempts: int = Field(default=3)
    retry_delay: float = Field(default=1.0)
    page_size: int = Field(default=200, description="Delegation history page size")
    reward_page_size: int = Field(default=400)
    page_delay: float = Field(default=0.15, description="Seconds between history pages")
    ratio_ttl_seconds: float = Field(default=300.0)
    fallback_hp_per_vests: Decimal = Field(default=Decimal("0.0005993102"))
    stats_ttl_seconds: float = Field(default=600.0)


class PayoutSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PAYOUT_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_percentage: Decimal = Field(default=Decimal("15"))
    min_percentage: Decimal = Field(default=Decimal("10"))
    max_percentage: Decimal = Field(default=Decimal("20"))
    percentage_strategy: PercentageStrategy = Field(default=PercentageStrategy.BINARY)
    graded_reference_reward: Decimal = Field(
        default=Decimal("100"),
        description="Realized reward (HP) at which the graded strategy yields the base percentage",
    )
    retained_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    currency: Currency = Field(default=Currency.HIVE)
    max_batch_size: int = Field(default=30, ge=1, le=30)
    gateway_timeout_seconds: float = Field(default=120.0)
    memo_template: str = Field(
        default="🌱 Aliento Pay - Curation Rewards - {period} period, {percentage:.1f}% return"
    )
    default_memo: str = Field(default="Payment from Aliento.pay")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HIVEPAY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    api_key: str | None = Field(default=None, description="API key for mutation endpoints")
    data_dir: Path = Field(default=Path("data"))

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    hive: HiveSettings = Field(default_factory=HiveSettings)
    payout: PayoutSettings = Field(default_factory=PayoutSettings)

    def model_post_init(self, _context: object) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
