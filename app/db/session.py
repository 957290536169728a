"""
session.py

데이터베이스 엔진 및 세션(Session) 관리 파일.

이 파일은 SQLAlchemy Engine과 SessionLocal을 생성하여
애플리케이션 전반에서 공통으로 사용하는 DB 연결을 관리한다.

FastAPI 의존성(get_db)을 통해
요청 단위로 세션을 생성/종료하는 구조를 지원한다.
저장소(services) 함수는 이 세션을 인자로 받기 때문에,
여러 엔티티에 걸친 쓰기도 하나의 트랜잭션(commit 1회)으로 묶을 수 있다.

설계 원칙:
- DB 연결 설정은 한 곳에서만 정의
- 세션 생성/종료 책임을 명확히 분리
- pool_pre_ping=True로 유휴 연결 오류 방지
- SQLite 사용 시 외래 키(ON DELETE CASCADE) 강제 활성화

관련 파일:
- app.core.config        : DATABASE_URL 설정
- app.core.deps          : get_db 의존성

"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    # SQLite는 연결마다 PRAGMA를 켜야 FK 제약이 동작한다
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# SQLAlchemy Engine 생성
# pool_pre_ping=True:
#   장시간 idle 후 끊어진 DB 커넥션을 자동으로 감지/재연결
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)
enable_sqlite_foreign_keys(engine)

# 요청 단위로 사용할 세션 팩토리
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)
