import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.user import utcnow


class _SingleUseTokenColumns:
    """단일 사용 토큰 공통 컬럼.

    - token: 추측 불가능한 랜덤 문자열, 테이블 내 고유
    - expired_at: 발급 시각 + TTL
    - used_at: 소비(consume) 시각. 한 번 설정되면 영구적으로 무효
    """

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    token: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    expired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class EmailVerification(_SingleUseTokenColumns, Base):
    """이메일 인증 토큰 (인증 1회분)."""

    __tablename__ = "email_verifications"


class PasswordResetToken(_SingleUseTokenColumns, Base):
    """비밀번호 재설정 토큰 (재설정 1회분)."""

    __tablename__ = "password_reset_tokens"
