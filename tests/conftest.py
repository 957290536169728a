import os

# app 을 import 하기 전에 테스트용 환경 변수를 채운다
# (.env 가 없어도 SQLite 메모리 DB 로 전체 테스트가 돈다)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-access-secret")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["CACHE_BACKEND"] = "memory"
os.environ["MAIL_BACKEND"] = "outbox"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app as fastapi_app
from app.core.config import settings
from app.core.deps import get_cache, get_db, get_mailer
from app.db.base import Base
from app.db.session import enable_sqlite_foreign_keys
from app.services.cache import InMemoryCacheStore, PermissionCache
from app.services.mail import OutboxMailDispatcher

# ✅ 모델 import (Base.metadata에 테이블 등록)
import app.models.user  # noqa: F401
import app.models.rbac  # noqa: F401
import app.models.token  # noqa: F401


TEST_DB_URL = settings.TEST_DATABASE_URL or "sqlite://"

if TEST_DB_URL.startswith("sqlite"):
    # 메모리 DB 는 커넥션마다 따로 생기므로 하나의 커넥션을 공유
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(TEST_DB_URL, pool_pre_ping=True)
enable_sqlite_foreign_keys(engine)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """테스트 전체 시작/종료 때만 스키마 생성/삭제"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """각 테스트마다 데이터 초기화 (테이블은 유지, row만 삭제)"""
    yield
    # FK 의존성 역순으로 삭제
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db_session():
    """테스트에서 직접 DB 조작할 때 쓰는 세션"""
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def cache():
    return PermissionCache(InMemoryCacheStore())


@pytest.fixture()
def mailer():
    return OutboxMailDispatcher()


@pytest.fixture()
def client(cache, mailer):
    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_cache] = lambda: cache
    fastapi_app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
