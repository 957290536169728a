"""
services/users.py

사용자 저장소(Credential Store) 로직 모음.

이 파일은 사용자 레코드의 조회 / 생성 / 수정 / Soft Delete / 목록 조회를 담당한다.
모든 함수는 호출 측이 넘겨준 Session 위에서 동작하며 commit 하지 않는다.
(트랜잭션 경계는 라우터 / AuthService 가 관리)

주요 기능:
- 인증 경로 전용 이메일 조회 (비밀번호 해시 포함)
- 사용자 생성 (비밀번호 해싱 + 역할 할당을 같은 쓰기 안에서 처리)
- 역할(id, name) 조인 상세 조회
- 수정 / Soft Delete
- 검색 / 필터 / 정렬 / 페이지네이션 목록 조회

설계 원칙:
- Soft Delete(deleted_at IS NOT NULL)된 사용자는 모든 조회 / 중복 검사에서 제외
- ORM relationship 대신 용도별 명시적 조인 쿼리 + 전용 스키마(projection) 반환
- 중복 키(IntegrityError)는 사전 검사와 같은 ValidationError 로 변환

관련 파일:
- app.models.user / app.models.rbac : 테이블 정의
- app.schemas.user                  : 입력 / 반환 스키마
- app.routers.users                 : 관리자 사용자 관리 API

"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import String, asc, cast, delete, desc, exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.core.security import get_password_hash
from app.models.rbac import Role, UserRole
from app.models.user import User
from app.schemas.user import (
    Page,
    PageMeta,
    RoleRef,
    UserCreate,
    UserDetail,
    UserForAuth,
    UserListItem,
    UserListQuery,
    UserUpdate,
)

logger = logging.getLogger(__name__)

EMAIL_EXISTS_MESSAGE = "Email already exists"

# 목록 정렬에 허용되는 컬럼 (그 외 값은 id 로 대체)
ORDERABLE_COLUMNS = {
    "id": User.id,
    "name": User.name,
    "email": User.email,
    "status": User.status,
    "created_at": User.created_at,
    "updated_at": User.updated_at,
}
DEFAULT_SORT = "id"


def _not_deleted():
    return User.deleted_at.is_(None)


def _get_active_row(db: Session, user_id: uuid.UUID) -> User:
    user = db.scalar(select(User).where(User.id == user_id, _not_deleted()))
    if not user:
        raise NotFoundError("User not found")
    return user


def _email_taken(db: Session, email: str, *, exclude_id: uuid.UUID | None = None) -> bool:
    stmt = select(User.id).where(User.email == email, _not_deleted())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def _ensure_roles_exist(db: Session, role_ids: list[uuid.UUID]) -> None:
    found = set(db.scalars(select(Role.id).where(Role.id.in_(role_ids))).all())
    missing = [str(r) for r in role_ids if r not in found]
    if missing:
        raise ValidationError.for_field("role_ids", f"Role not found: {', '.join(missing)}")


def _assign_roles(db: Session, user_id: uuid.UUID, role_ids: list[uuid.UUID]) -> None:
    # 같은 id 가 두 번 들어와도 복합 PK 충돌이 나지 않도록 순서 유지하며 중복 제거
    for role_id in dict.fromkeys(role_ids):
        db.add(UserRole(user_id=user_id, role_id=role_id))


"""
중복 키 예외 변환

- 동시 가입 등으로 사전 검사를 통과한 뒤 unique 제약에 걸린 경우
- 사전 검사가 냈을 것과 같은 ValidationError 로 바꿔서 반환
- 호출 측은 db.rollback() 후 이 예외를 raise 한다

"""

def translate_integrity_error(exc: IntegrityError) -> ValidationError:
    logger.info("unique constraint violation: %s", type(exc.orig).__name__)
    return ValidationError.for_field("email", EMAIL_EXISTS_MESSAGE)


"""
인증 경로 전용 이메일 조회

- Soft Delete 되지 않은 사용자만 조회
- 비밀번호 해시를 포함하므로 외부 응답에 그대로 쓰지 않는다
- 없으면 None

"""

def find_by_email(db: Session, email: str) -> UserForAuth | None:
    user = db.scalar(select(User).where(User.email == email, _not_deleted()))
    if not user:
        return None
    return UserForAuth.model_validate(user)


"""
사용자 생성

- 같은 이메일의 활성(미삭제) 사용자가 있으면 ValidationError(email)
- 존재하지 않는 역할 id 가 있으면 ValidationError(role_ids)
- 비밀번호 해싱 후 사용자 + 역할 할당을 같은 세션에 기록하고 flush

"""

def create_user(
    db: Session,
    data: UserCreate,
    *,
    email_verified_at: datetime | None = None,
) -> uuid.UUID:
    if _email_taken(db, data.email):
        raise ValidationError.for_field("email", EMAIL_EXISTS_MESSAGE)

    if data.role_ids:
        _ensure_roles_exist(db, data.role_ids)

    user = User(
        id=uuid.uuid4(),
        name=data.name,
        email=data.email,
        password_hash=get_password_hash(data.password),
        status=data.status,
        remark=data.remark,
        email_verified_at=email_verified_at,
    )
    db.add(user)
    # 역할 행보다 사용자 행이 먼저 INSERT 되도록
    db.flush()

    if data.role_ids:
        _assign_roles(db, user.id, data.role_ids)
        db.flush()

    return user.id


def get_user_roles(db: Session, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[RoleRef]]:
    rows = db.execute(
        select(UserRole.user_id, Role.id, Role.name)
        .join(Role, Role.id == UserRole.role_id)
        .where(UserRole.user_id.in_(user_ids))
        .order_by(Role.name)
    ).all()

    roles: dict[uuid.UUID, list[RoleRef]] = defaultdict(list)
    for user_id, role_id, role_name in rows:
        roles[user_id].append(RoleRef(id=role_id, name=role_name))
    return roles


"""
사용자 상세 조회

- 역할(id, name) 목록을 함께 반환
- 없거나 Soft Delete 된 경우 NotFoundError

"""

def get_user_detail(db: Session, user_id: uuid.UUID) -> UserDetail:
    user = _get_active_row(db, user_id)
    roles = get_user_roles(db, [user.id]).get(user.id, [])
    return UserDetail(
        id=user.id,
        name=user.name,
        email=user.email,
        status=user.status,
        remark=user.remark,
        roles=roles,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


"""
사용자 수정

- 이름 / 이메일은 전달된 값으로 교체 (이메일은 다른 활성 사용자와 중복 불가)
- status / remark 는 None 이면 기존 값 유지
- role_ids: None 이면 유지, [] 이면 전부 제거, 목록이면 삭제 후 재등록으로 통째로 교체

"""

def update_user(db: Session, user_id: uuid.UUID, data: UserUpdate) -> None:
    user = _get_active_row(db, user_id)

    if data.email != user.email and _email_taken(db, data.email, exclude_id=user.id):
        raise ValidationError.for_field("email", EMAIL_EXISTS_MESSAGE)

    if data.role_ids:
        _ensure_roles_exist(db, data.role_ids)

    user.name = data.name
    user.email = data.email
    if data.status is not None:
        user.status = data.status
    if data.remark is not None:
        user.remark = data.remark

    if data.role_ids is not None:
        db.execute(delete(UserRole).where(UserRole.user_id == user.id))
        _assign_roles(db, user.id, data.role_ids)

    db.flush()


"""
사용자 Soft Delete

- 행을 지우지 않고 deleted_at 만 기록
- 이후 모든 조회 / 인증 / 이메일 중복 검사에서 제외됨

"""

def soft_delete_user(db: Session, user_id: uuid.UUID) -> None:
    user = _get_active_row(db, user_id)
    user.deleted_at = datetime.now(timezone.utc)
    db.flush()


"""
사용자 목록 조회

- search: 이름 / 이메일 / 상태에 대한 대소문자 무시 부분 일치 (OR)
- filter: status(정확히 일치), name / email(부분 일치), role_id(연결 테이블 EXISTS)
  여러 필터는 AND 로 결합
- sort: 화이트리스트 컬럼만 허용, 그 외는 id
- total 은 페이지와 같은 WHERE 조건으로 계산

"""

def list_users(db: Session, query: UserListQuery) -> Page[UserListItem]:
    conditions = [_not_deleted()]

    if query.search:
        pattern = f"%{query.search}%"
        conditions.append(
            or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                cast(User.status, String).ilike(pattern),
            )
        )

    f = query.filter
    if f.status is not None:
        conditions.append(User.status == f.status)
    if f.name:
        conditions.append(User.name.ilike(f"%{f.name}%"))
    if f.email:
        conditions.append(User.email.ilike(f"%{f.email}%"))
    if f.role_id is not None:
        conditions.append(
            exists().where(UserRole.user_id == User.id, UserRole.role_id == f.role_id)
        )

    sort_key = query.sort if query.sort in ORDERABLE_COLUMNS else DEFAULT_SORT
    column = ORDERABLE_COLUMNS[sort_key]
    order = asc(column) if query.sort_direction == "asc" else desc(column)

    offset = (query.page - 1) * query.limit
    users = db.scalars(
        select(User).where(*conditions).order_by(order, User.id).offset(offset).limit(query.limit)
    ).all()
    total = db.scalar(select(func.count()).select_from(User).where(*conditions)) or 0

    roles = get_user_roles(db, [u.id for u in users]) if users else {}
    data = [
        UserListItem(
            id=u.id,
            name=u.name,
            email=u.email,
            status=u.status,
            roles=[r.name for r in roles.get(u.id, [])],
            created_at=u.created_at,
            updated_at=u.updated_at,
        )
        for u in users
    ]
    return Page[UserListItem](
        data=data,
        meta=PageMeta(page=query.page, limit=query.limit, total=total),
    )
