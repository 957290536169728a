"""
main.py

FastAPI 애플리케이션 진입점(Entry Point).

이 파일은 서버 실행 시 가장 먼저 로드되며,
애플리케이션 전반의 설정과 라우터 등록을 담당한다.

주요 역할:
- 로깅 초기화
- FastAPI 앱 인스턴스 생성
- CORS 미들웨어 설정
- 도메인 예외(AppError) → JSON 응답 핸들러 등록
- 라우터(auth, users) 등록

설계 원칙:
- 비즈니스 로직은 포함하지 않고 설정/조립 역할만 수행
- 실제 기능은 routers / services 계층에 위임
- 헬스 체크 / 정적 파일 제공은 이 서비스 밖(인프라)에서 담당

관련 파일:
- app.core.config        : 환경 변수 및 설정 로드
- app.core.errors        : 예외 핸들러
- app.core.logging       : 로깅 설정
- app.routers.*          : 기능별 API 라우터

"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging
from app.routers import auth, users

setup_logging()

app = FastAPI(title="Identity & Access Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(users.router)
