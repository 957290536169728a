from functools import lru_cache
from typing import Generator
import uuid

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.security import decode_access_token
from app.db.session import SessionLocal
from app.schemas.auth import UserInformation
from app.services.auth import AuthService
from app.services.cache import InMemoryCacheStore, PermissionCache, RedisCacheStore
from app.services.mail import OutboxMailDispatcher, RedisMailQueue

# Swagger Authorize에서 "Bearer 토큰" 입력받는 스키마
bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# 캐시 / 메일 백엔드는 프로세스당 하나만 만든다
@lru_cache
def get_cache() -> PermissionCache:
    if settings.CACHE_BACKEND == "redis":
        return PermissionCache(RedisCacheStore(settings.REDIS_URL))
    return PermissionCache(InMemoryCacheStore())


@lru_cache
def get_mailer():
    if settings.MAIL_BACKEND == "redis":
        return RedisMailQueue(settings.REDIS_URL, settings.MAIL_QUEUE_NAME)
    return OutboxMailDispatcher()


def get_auth_service(
    cache: PermissionCache = Depends(get_cache),
    mailer=Depends(get_mailer),
) -> AuthService:
    return AuthService(cache, mailer)


def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> UserInformation:
    if cred is None:
        raise UnauthorizedError("Not authenticated")

    try:
        # access 토큰만 허용 (refresh 토큰 차단)
        user_id = uuid.UUID(decode_access_token(cred.credentials))
    except (JWTError, ValueError):
        raise UnauthorizedError("Could not validate credentials")

    # 권한 정보는 토큰이 아니라 캐시 / DB 에서 매 요청 확인
    return auth.current_user(db, user_id)


def require_permission(permission: str):
    def _checker(current_user: UserInformation = Depends(get_current_user)) -> UserInformation:
        if not current_user.has_permission(permission):
            raise ForbiddenError(f"Requires permission {permission}")
        return current_user
    return _checker
