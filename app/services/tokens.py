"""
services/tokens.py

단일 사용 토큰(이메일 인증 / 비밀번호 재설정) 생명주기 관리.

토큰 상태는 한 방향으로만 진행된다.
    발급(issued) → 소비(consumed) 또는 만료(expired)
한 번 소비되거나 만료된 토큰은 다시 유효해지지 않는다.

유효 조건:
    used_at IS NULL AND now < expired_at

설계 원칙:
- "존재하지 않음 / 이미 사용됨 / 만료됨"을 호출 측에 구분해서 알려주지 않는다
  (하나의 쿼리 조건으로 판정, 결과는 레코드 또는 None)
- 소비는 조건부 UPDATE 한 번으로 처리해서 동시에 두 요청이 같은 토큰을 써도
  한쪽만 성공한다
- commit 하지 않는다. 소비와 그에 따른 상태 변경(인증 완료 / 비밀번호 변경)은
  호출 측 트랜잭션 안에서 함께 commit 된다

"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.security import generate_random_token
from app.models.token import EmailVerification, PasswordResetToken

logger = logging.getLogger(__name__)

TokenModel = TypeVar("TokenModel", EmailVerification, PasswordResetToken)

DEFAULT_TOKEN_TTL = timedelta(hours=2)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def issue_token(
    db: Session,
    model: Type[TokenModel],
    user_id: uuid.UUID,
    *,
    ttl: timedelta = DEFAULT_TOKEN_TTL,
    now: datetime | None = None,
) -> str:
    """새 토큰을 발급하고 토큰 문자열을 반환한다 (flush 까지만 수행)."""
    issued_at = _now(now)
    token = generate_random_token()
    db.add(
        model(
            user_id=user_id,
            token=token,
            expired_at=issued_at + ttl,
            used_at=None,
        )
    )
    db.flush()
    logger.info("issued %s for user %s", model.__tablename__, user_id)
    return token


def find_valid_token(
    db: Session,
    model: Type[TokenModel],
    token: str,
    *,
    now: datetime | None = None,
) -> TokenModel | None:
    return db.scalar(
        select(model).where(
            model.token == token,
            model.used_at.is_(None),
            model.expired_at > _now(now),
        )
    )


def consume_token(
    db: Session,
    model: Type[TokenModel],
    token: str,
    *,
    now: datetime | None = None,
) -> bool:
    """토큰을 사용 처리한다. 유효한 토큰 한 건이 실제로 바뀐 경우에만 True."""
    consumed_at = _now(now)
    result = db.execute(
        update(model)
        .where(
            model.token == token,
            model.used_at.is_(None),
            model.expired_at > consumed_at,
        )
        .values(used_at=consumed_at, updated_at=consumed_at)
        .execution_options(synchronize_session=False)
    )
    consumed = result.rowcount == 1
    if consumed:
        logger.info("consumed %s token", model.__tablename__)
    return consumed
