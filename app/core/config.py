"""
config.py

애플리케이션 전역 설정(Configuration) 관리 파일.

이 파일은 .env 환경 변수들을 Pydantic BaseSettings를 통해 로드하여
애플리케이션 전반에서 공통으로 사용하는 설정 값을 제공한다.

주요 설정 항목:
- 데이터베이스 연결 정보
- JWT(access / refresh) 시크릿 및 만료 정책
- 이메일 인증 / 비밀번호 재설정 토큰 정책
- 권한 캐시 및 메일 큐 백엔드
- CORS 허용 도메인 목록, 로그 레벨

설계 원칙:
- 모든 환경 변수는 이 파일을 통해서만 접근
- 로컬 / 테스트 / 운영 환경을 .env로 분리하여 관리
- 설정 값은 런타임 중 변경되지 않는 불변 객체로 취급

관련 파일:
- app.main               : CORS / 로깅 초기화 시 설정 사용
- app.core.security      : JWT 시크릿 / 만료 / bcrypt rounds 사용
- app.core.deps          : 캐시 / 메일 백엔드 선택
- app.db.session         : DATABASE_URL 사용

"""

from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


# .env 파일에 정의된 환경 변수를 로드하는 설정 클래스
# extra="ignore" 옵션으로 정의되지 않은 환경 변수는 무시
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DATABASE_URL: str
    TEST_DATABASE_URL: str | None = None

    SECRET_KEY: str
    REFRESH_SECRET_KEY: str  # access와 다른 키 사용
    ALGORITHM: str = "HS256"

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 14

    BCRYPT_ROUNDS: int = 12

    # 단일 사용 토큰(이메일 인증 / 비밀번호 재설정)
    # - TOKEN_BYTES: secrets.token_urlsafe 입력 바이트 수 (48 bytes = 384 bits, 64자)
    TOKEN_BYTES: int = 48
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 2
    RESET_TOKEN_EXPIRE_HOURS: int = 2

    # 메일 본문에 들어가는 프론트엔드 링크 기준 주소
    FRONTEND_URL: str = "http://localhost:3000"

    # 권한 캐시 백엔드
    # - memory: 프로세스 내부 dict (로컬 / 테스트)
    # - redis : 여러 인스턴스가 공유
    CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"

    # 메일 발송 요청 백엔드 (실제 SMTP 발송은 외부 워커 담당)
    MAIL_BACKEND: Literal["outbox", "redis"] = "outbox"
    MAIL_QUEUE_NAME: str = "mail_queue"

    # CORS 허용 도메인 (프론트엔드 주소)
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    LOG_LEVEL: str = "INFO"

# 애플리케이션 전역에서 import하여 사용하는 Settings 인스턴스
# 실행 시 한 번만 생성됨
settings = Settings()
