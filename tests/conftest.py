# tests/conftest.py
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.database.database import Base
from src.database import models  # noqa: F401  (테이블 등록)

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """고정된 시각을 반환하는 clock 함수."""
    return lambda: FIXED_NOW


@pytest.fixture
def engine():
    """테스트마다 새로 만드는 인메모리 SQLite 엔진."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()
