"""Engine and per-request session for the payment ledger store."""

import logging
from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import DatabaseSettings, get_settings
from db.models import Base

logger = logging.getLogger(__name__)

# Batch rows cascade to their payments, so SQLite must enforce foreign keys.
SQLITE_PRAGMAS: tuple[str, ...] = ("foreign_keys=ON", "journal_mode=WAL")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _engine_options(db: DatabaseSettings, echo: bool) -> dict[str, Any]:
    if not db._use_postgres():
        return {"echo": echo}
    return {
        "echo": echo,
        "pool_size": db.pool_size,
        "pool_timeout": db.pool_timeout,
        "pool_recycle": db.pool_recycle,
        "pool_pre_ping": True,
    }


def _sqlite_pragmas(busy_timeout_ms: int):
    def _apply(dbapi_conn, connection_record) -> None:
        cur = dbapi_conn.cursor()
        for pragma in (*SQLITE_PRAGMAS, f"busy_timeout={busy_timeout_ms}"):
            cur.execute(f"PRAGMA {pragma}")
        cur.close()

    return _apply


def get_engine() -> Engine:
    """Shared engine for the configured backend, built on first use."""
    global _engine

    if _engine is None:
        settings = get_settings()
        db: DatabaseSettings = settings.database
        _engine = create_engine(db.url, **_engine_options(db, settings.debug))
        if not db._use_postgres():
            event.listen(_engine, "connect", _sqlite_pragmas(db.busy_timeout_ms))
        logger.info("Payment store engine: %s", db.db_info_for_logging())
    return _engine


def init_db() -> list[str]:
    """Create the batch and payment tables that do not exist yet; returns their names."""
    engine = get_engine()
    before: set[str] = set(inspect(engine).get_table_names())
    Base.metadata.create_all(engine)
    created: list[str] = sorted(set(Base.metadata.tables) - before)
    if created:
        logger.info("Created tables: %s", ", ".join(created))
    else:
        logger.info("Payment tables already present")
    return created


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, committed when the handler returns."""
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    session: Session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    """Drop the cached engine so the next call picks up changed settings."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
