"""Shared fixtures: in-memory SQLite DB with all tables, fake ledger."""

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base
from hivepay.services.converter import UnitConverter
from hivepay.services.ratio_cache import GlobalRatioCache
from tests.fakes import FakeLedger


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng: Engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    factory: sessionmaker[Session] = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    sess: Session = factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def converter(ledger: FakeLedger) -> UnitConverter:
    return UnitConverter(GlobalRatioCache(ledger, ttl_seconds=300))
