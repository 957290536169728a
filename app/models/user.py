"""
user.py

사용자(User) 모델 정의 파일.

이 파일은 사용자의 기본 정보와
계정 상태(status), 이메일 인증 여부, 탈퇴 상태(Soft Delete)를 관리한다.

모든 인증, 권한 조회, 관리자 사용자 관리 기능의 기준이 되는 핵심 모델이다.

"""

import uuid
import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


"""
사용자 계정 상태 정의

- active     : 정상 (로그인 가능한 유일한 상태)
- inactive   : 비활성
- suspended  : 일시 정지
- blocked    : 차단

"""

class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    BLOCKED = "blocked"



"""
사용자(User) 모델

- email 은 탈퇴하지 않은 사용자 사이에서만 고유 (partial unique index)
- email_verified_at 이 NULL 이면 이메일 미인증 → 로그인 불가
- deleted_at 으로 Soft Delete 지원 (모든 조회 / 인증 경로에서 제외)

"""

class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_email_active",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_users_email_deleted_at_status", "email", "deleted_at", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[UserStatus] = mapped_column(
        SAEnum(UserStatus, name="user_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    remark: Mapped[str | None] = mapped_column(String(255), nullable=True)

    email_verified_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
