"""
security.py

비밀번호 해싱, JWT 세션 토큰 생성/검증, 단일 사용 토큰 문자열 생성을 담당하는
보안 유틸리티 모음.

이 파일은 인증(auth) 로직에서 사용하는
저수준(low-level) 보안 기능만을 제공하며,
라우터나 비즈니스 로직은 포함하지 않는다.

주요 기능:
- 비밀번호 해싱 및 검증 (bcrypt)
- JWT Access Token / Refresh Token 생성
- Access / Refresh Token 디코딩 및 검증
- 이메일 인증 / 비밀번호 재설정용 랜덤 토큰 생성

설계 원칙:
- Access Token과 Refresh Token은 서로 다른 시크릿 키 / 만료 시간 사용
- 토큰에는 subject(sub)만 담고 권한 정보는 넣지 않는다
  (권한은 요청마다 캐시 / PermissionResolver로 새로 확인)
- 시간 기반(exp) 만료는 UTC 기준으로 처리

관련 파일:
- app.core.config        : JWT 시크릿 키 및 만료 설정
- app.core.deps          : 토큰을 실제로 검증하는 인증 의존성
- app.services.auth      : 로그인 / 재발급 흐름

"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from app.core.config import settings


# bcrypt 기반 비밀번호 해싱 컨텍스트
# deprecated="auto"로 향후 알고리즘 교체 가능하도록 설정

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


"""
비밀번호 해싱 함수

- 평문 비밀번호를 bcrypt 해시로 변환
- DB에는 해시 값만 저장

"""

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


"""
비밀번호 검증 함수

- 사용자가 입력한 평문 비밀번호와
  DB에 저장된 해시 값을 비교

"""

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# 존재하지 않는 이메일로 로그인할 때도 bcrypt 비교를 한 번 수행해
# 응답 시간으로 계정 존재 여부가 드러나지 않게 한다
DUMMY_PASSWORD_HASH = get_password_hash("timing-equalization-dummy")


"""
단일 사용 토큰 문자열 생성

- 이메일 인증 / 비밀번호 재설정 링크에 들어가는 불투명(opaque) 문자열
- secrets 기반 CSPRNG, URL-safe

"""

def generate_random_token(nbytes: int | None = None) -> str:
    return secrets.token_urlsafe(nbytes or settings.TOKEN_BYTES)


"""
JWT 토큰 생성 내부 공통 함수

- Access / Refresh 토큰 생성 로직을 공통화
- subject(sub): 사용자 식별자(user_id)
- token_type: access 또는 refresh
- exp: 만료 시각 (UTC timestamp)

"""

def _create_token(*, subject: str, token_type: Literal["access", "refresh"],
                  expires_delta: timedelta, secret: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        # 같은 초에 발급된 토큰끼리도 서로 다른 값이 되도록
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=settings.ALGORITHM)


"""
Access Token 생성 함수

- API 요청 인증에 사용
- 비교적 짧은 만료 시간 사용
- Authorization Header(Bearer)에 담겨 전달됨

"""

def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        subject=subject,
        token_type="access",
        expires_delta=expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        secret=settings.SECRET_KEY,
    )


"""
Refresh Token 생성 함수

- Access Token 재발급에 사용
- 비교적 긴 만료 시간 사용, access와 다른 시크릿 키로 서명

"""

def create_refresh_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        subject=subject,
        token_type="refresh",
        expires_delta=expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        secret=settings.REFRESH_SECRET_KEY,
    )


def _decode_token(token: str, *, secret: str, token_type: str) -> str:
    payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    if payload.get("type") != token_type:
        raise JWTError(f"Not an {token_type} token")
    sub = payload.get("sub")
    if not sub:
        raise JWTError("Missing subject")
    return sub


"""
Access / Refresh Token 디코딩 및 검증 함수

- 서명 / 만료(exp) / 토큰 타입 확인
- subject(user_id) 반환
- 유효하지 않을 경우 JWTError 발생

"""

def decode_access_token(token: str) -> str:
    return _decode_token(token, secret=settings.SECRET_KEY, token_type="access")


def decode_refresh_token(token: str) -> str:
    return _decode_token(token, secret=settings.REFRESH_SECRET_KEY, token_type="refresh")
