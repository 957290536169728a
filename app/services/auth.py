"""
services/auth.py

인증(Authentication) 흐름 비즈니스 로직.

이 파일은 회원 가입, 이메일 인증, 로그인, 비밀번호 재설정 등
인증 흐름 전체를 조립하며, 여러 엔티티에 걸친 쓰기의 트랜잭션 경계를 소유한다.

주요 흐름:
- register            : 사용자 + 이메일 인증 토큰을 한 트랜잭션으로 생성 → commit 후 메일 요청
- resend_verification : 모르는 이메일이면 조용히 성공 (계정 존재 여부 노출 방지)
- verify_email        : 토큰 소비 + email_verified_at 설정을 한 트랜잭션으로
- login               : 존재 → 이메일 인증 → active → 비밀번호 순서로 검사,
                        성공 시 캐시 invalidate → 권한 조회 → populate → 토큰 발급
- forgot_password     : 모르는 이메일이면 조용히 성공, 미인증이면 거부
- reset_password      : 토큰 소비 + 비밀번호 해시 변경을 한 트랜잭션으로

설계 원칙:
- HTTP / FastAPI 의존성 없음 (라우터는 입력 검증과 응답 포장만 담당)
- 트랜잭션 안에서 실패하면 rollback 후 예외 전파 (부분 반영 없음)
- 메일 요청은 트랜잭션 밖, commit 이후에만 수행
- 토큰 검증 실패는 없음 / 만료 / 사용됨을 구분하지 않고 같은 메시지

관련 파일:
- app.services.users        : 사용자 조회 / 생성
- app.services.tokens       : 단일 사용 토큰 발급 / 검증 / 소비
- app.services.permissions  : 권한 정보 조회
- app.services.cache        : 권한 캐시
- app.services.mail         : 메일 발송 요청
- app.routers.auth          : 인증 API

"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import UnauthorizedError, ValidationError
from app.core.security import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from app.models.token import EmailVerification, PasswordResetToken
from app.models.user import User, UserStatus
from app.schemas.auth import LoginRequest, LoginResult, RegisterRequest, UserInformation
from app.schemas.user import UserCreate, UserForAuth
from app.services.cache import PermissionCache
from app.services.permissions import resolve_user_information
from app.services.tokens import consume_token, find_valid_token, issue_token
from app.services.users import create_user, find_by_email, translate_integrity_error

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_NOT_VERIFIED = "Please verify your email to proceed"
ACCOUNT_NOT_ACTIVE = "Your account is not active"
EMAIL_IN_USE = "Email already in use"
REGISTRATION_PENDING = "Please verify your email to complete registration"
EMAIL_ALREADY_VERIFIED = "Email is already verified"
INVALID_VERIFICATION_TOKEN = "Invalid or expired verification token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
USER_INFORMATION_UNAVAILABLE = "User information could not be retrieved"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _reject_registered(user: UserForAuth | None) -> None:
    if user is None:
        return
    if user.email_verified_at is not None:
        raise ValidationError.for_field("email", EMAIL_IN_USE)
    raise ValidationError.for_field("email", REGISTRATION_PENDING)


class AuthService:
    def __init__(self, cache: PermissionCache, mailer) -> None:
        self.cache = cache
        self.mailer = mailer

    # ------------------------------------------------------------------
    # 메일 요청 (commit 이후에만 호출)
    # ------------------------------------------------------------------

    def _send_verification_mail(self, *, name: str, email: str, token: str) -> None:
        self.mailer.send(
            "Verify your email address",
            email,
            "auth/verify-email",
            {
                "name": name,
                "verify_url": f"{settings.FRONTEND_URL}/verify-email?token={token}",
            },
        )

    def _send_reset_mail(self, *, name: str, email: str, token: str) -> None:
        self.mailer.send(
            "Reset your password",
            email,
            "auth/forgot-password",
            {
                "name": name,
                "reset_url": f"{settings.FRONTEND_URL}/reset-password?token={token}",
            },
        )

    # ------------------------------------------------------------------
    # 회원 가입 / 이메일 인증
    # ------------------------------------------------------------------

    def register(self, db: Session, data: RegisterRequest) -> uuid.UUID:
        _reject_registered(find_by_email(db, data.email))

        try:
            user_id = create_user(db, UserCreate(name=data.name, email=data.email, password=data.password))
            token = issue_token(
                db,
                EmailVerification,
                user_id,
                ttl=timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
            )
            db.commit()
        except (IntegrityError, ValidationError) as exc:
            # 동시 가입으로 사전 검사 이후 같은 이메일이 먼저 들어간 경우
            db.rollback()
            _reject_registered(find_by_email(db, data.email))
            if isinstance(exc, IntegrityError):
                raise translate_integrity_error(exc)
            raise
        except Exception:
            db.rollback()
            raise

        logger.info("registered user %s", user_id)
        self._send_verification_mail(name=data.name, email=data.email, token=token)
        return user_id

    def resend_verification(self, db: Session, email: str) -> None:
        user = find_by_email(db, email)
        if user is None:
            return

        if user.email_verified_at is not None:
            raise ValidationError.for_field("email", EMAIL_ALREADY_VERIFIED)

        try:
            token = issue_token(
                db,
                EmailVerification,
                user.id,
                ttl=timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        self._send_verification_mail(name=user.name, email=user.email, token=token)

    def verify_email(self, db: Session, token: str) -> None:
        record = find_valid_token(db, EmailVerification, token)
        if record is None:
            raise ValidationError.for_field("token", INVALID_VERIFICATION_TOKEN)

        now = _utcnow()
        try:
            user = db.scalar(select(User).where(User.id == record.user_id, User.deleted_at.is_(None)))
            if user is None or not consume_token(db, EmailVerification, token, now=now):
                raise ValidationError.for_field("token", INVALID_VERIFICATION_TOKEN)

            # 인증 상태는 되돌리지 않는다 (이미 인증된 경우 최초 시각 유지)
            if user.email_verified_at is None:
                user.email_verified_at = now
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("email verified for user %s", record.user_id)

    # ------------------------------------------------------------------
    # 로그인 / 세션
    # ------------------------------------------------------------------

    def login(self, db: Session, data: LoginRequest) -> LoginResult:
        user = find_by_email(db, data.email)
        if user is None:
            # 계정 존재 여부가 응답 시간으로 드러나지 않도록 비교는 수행
            verify_password(data.password, DUMMY_PASSWORD_HASH)
            logger.info("login failed: unknown email")
            raise ValidationError.for_field("email", INVALID_CREDENTIALS)

        if user.email_verified_at is None:
            logger.info("login failed for user %s: email not verified", user.id)
            raise ValidationError.for_field("email", EMAIL_NOT_VERIFIED)

        if user.status != UserStatus.ACTIVE:
            logger.info("login failed for user %s: status=%s", user.id, user.status.value)
            raise ValidationError.for_field("email", ACCOUNT_NOT_ACTIVE)

        if not verify_password(data.password, user.password_hash):
            logger.info("login failed for user %s: bad password", user.id)
            raise ValidationError.for_field("email", INVALID_CREDENTIALS)

        # 기존 캐시를 먼저 지우고 새로 조회한 권한으로 채운다
        self.cache.invalidate(user.id)
        try:
            information = resolve_user_information(db, user.id)
        except UnauthorizedError:
            raise ValidationError.for_field("user", USER_INFORMATION_UNAVAILABLE)
        self.cache.populate(user.id, information)

        logger.info("user %s logged in", user.id)
        return LoginResult(
            user=information,
            access_token=create_access_token(subject=str(user.id)),
            refresh_token=create_refresh_token(subject=str(user.id)),
        )

    def current_user(self, db: Session, user_id: uuid.UUID) -> UserInformation:
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached

        # 조회 도중 권한이 바뀌어 invalidate 되면 이 결과는 캐시에 넣지 않는다
        generation = self.cache.generation(user_id)
        information = resolve_user_information(db, user_id)
        if generation is not None:
            self.cache.populate(user_id, information, generation=generation)
        return information

    def refresh(self, db: Session, refresh_token: str) -> str:
        try:
            user_id = uuid.UUID(decode_refresh_token(refresh_token))
        except (JWTError, ValueError):
            raise UnauthorizedError("Invalid refresh token")

        # 삭제 / 비활성화된 사용자는 재발급 불가
        self.current_user(db, user_id)
        return create_access_token(subject=str(user_id))

    # ------------------------------------------------------------------
    # 비밀번호 재설정
    # ------------------------------------------------------------------

    def forgot_password(self, db: Session, email: str) -> None:
        user = find_by_email(db, email)
        if user is None:
            return

        if user.email_verified_at is None:
            raise ValidationError.for_field("email", EMAIL_NOT_VERIFIED)

        try:
            token = issue_token(
                db,
                PasswordResetToken,
                user.id,
                ttl=timedelta(hours=settings.RESET_TOKEN_EXPIRE_HOURS),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        self._send_reset_mail(name=user.name, email=user.email, token=token)

    def is_reset_token_valid(self, db: Session, token: str) -> bool:
        return find_valid_token(db, PasswordResetToken, token) is not None

    def reset_password(self, db: Session, token: str, password: str) -> None:
        record = find_valid_token(db, PasswordResetToken, token)
        if record is None:
            raise ValidationError.for_field("token", INVALID_RESET_TOKEN)

        password_hash = get_password_hash(password)
        try:
            user = db.scalar(select(User).where(User.id == record.user_id, User.deleted_at.is_(None)))
            if user is None or not consume_token(db, PasswordResetToken, token):
                raise ValidationError.for_field("token", INVALID_RESET_TOKEN)

            user.password_hash = password_hash
            db.commit()
        except Exception:
            db.rollback()
            raise

        self.cache.invalidate(record.user_id)
        logger.info("password reset for user %s", record.user_id)
