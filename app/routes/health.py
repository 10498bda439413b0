"""Payment store health report."""

import logging
import os

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from config import DatabaseSettings, get_settings
from db.connection import get_engine
from db.models import Base
from hivepay.services._types import DbInfoDict

logger: logging.Logger = logging.getLogger(__name__)

EXPECTED_TABLES: tuple[str, ...] = tuple(sorted(Base.metadata.tables))


def _location(db: DatabaseSettings) -> tuple[str, str]:
    if db._use_postgres():
        return "postgres", db._redacted_postgres_dsn()
    return "sqlite", db._resolved_sqlite_path().as_posix()


def get_db_info() -> DbInfoDict:
    """Report which payment tables exist; store errors land in ``error`` instead of raising."""
    backend_type, url_or_path = _location(get_settings().database)
    info = DbInfoDict(
        backend_type=backend_type,
        database_url_or_path=url_or_path,
        tables_present=[],
        tables_missing=list(EXPECTED_TABLES),
        schema_initialized=False,
        pid=os.getpid(),
    )
    try:
        existing: set[str] = set(inspect(get_engine()).get_table_names())
    except SQLAlchemyError as e:
        logger.warning("Payment store inspection failed: %s", e)
        info["error"] = str(e)
        return info

    info["tables_present"] = [t for t in EXPECTED_TABLES if t in existing]
    info["tables_missing"] = [t for t in EXPECTED_TABLES if t not in existing]
    info["schema_initialized"] = not info["tables_missing"]
    return info
