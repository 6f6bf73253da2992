from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import idcore.db.session  # noqa: F401  注册 SQLite 外键开关
from idcore.core.config import get_settings
from idcore.db.base import Base


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch) -> Generator[None, None, None]:
    """测试中降低 PBKDF2 迭代次数，其余参数保持默认。"""
    monkeypatch.setenv("IDC_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
    monkeypatch.setenv("IDC_APP_DEBUG", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
