"""
users.py

관리자용 사용자 관리 API 모음.

이 파일은 사용자 목록 조회(검색 / 필터 / 정렬 / 페이지네이션),
생성, 상세 조회, 수정, Soft Delete 를 담당한다.

설계 원칙:
- 각 API 는 대응하는 permission(user.read / create / update / delete) 필요
- 트랜잭션 제어(commit / rollback)는 라우터에서 수행
- 사용자 상태 / 역할이 바뀌면 commit 후 해당 사용자 권한 캐시 무효화
- Soft Delete 된 사용자는 모든 조회에서 제외

관련 파일:
- app.services.users       : 사용자 저장소 로직
- app.services.cache       : 권한 캐시
- app.core.deps            : 권한 검사(require_permission)

"""

import uuid
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.deps import get_cache, get_db, require_permission
from app.core.errors import AppError, ValidationError
from app.models.user import UserStatus, utcnow
from app.schemas.auth import UserInformation
from app.schemas.user import SortDirection, UserCreate, UserListFilter, UserListQuery, UserUpdate
from app.services.cache import PermissionCache
from app.services.rbac import USER_CREATE, USER_DELETE, USER_READ, USER_UPDATE
from app.services.users import (
    create_user,
    get_user_detail,
    list_users,
    soft_delete_user,
    translate_integrity_error,
    update_user,
)

router = APIRouter(prefix="/users", tags=["users"])


@contextmanager
def _transaction(db: Session):
    try:
        yield
        db.commit()
    except AppError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Database error: {type(e).__name__}")


"""
사용자 목록 조회 API

- page / limit 페이지네이션 (meta.total 은 필터 적용 후 전체 개수)
- search: 이름 / 이메일 / 상태 부분 일치
- sort: id, name, email, status, created_at, updated_at 외의 값은 id 로 대체

"""

@router.get("")
def list_all_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    sort: str | None = None,
    sort_direction: SortDirection = "desc",
    status_filter: UserStatus | None = Query(None, alias="status"),
    name: str | None = None,
    email: str | None = None,
    role_id: uuid.UUID | None = None,
    db: Session = Depends(get_db),
    _: UserInformation = Depends(require_permission(USER_READ)),
):
    query = UserListQuery(
        page=page,
        limit=limit,
        search=search,
        sort=sort,
        sort_direction=sort_direction,
        filter=UserListFilter(status=status_filter, name=name, email=email, role_id=role_id),
    )
    return list_users(db, query).model_dump(mode="json")


# 사용자 생성 (관리자가 만든 계정은 이메일 인증 절차 없이 인증된 상태로 생성)
@router.post("", status_code=status.HTTP_201_CREATED)
def create_user_by_admin(
    data: UserCreate,
    db: Session = Depends(get_db),
    _: UserInformation = Depends(require_permission(USER_CREATE)),
):
    with _transaction(db):
        user_id = create_user(db, data, email_verified_at=utcnow())
    return {"message": "User created", "data": {"id": str(user_id)}}


@router.get("/{user_id}")
def get_user_details(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: UserInformation = Depends(require_permission(USER_READ)),
):
    return {"data": get_user_detail(db, user_id).model_dump(mode="json")}


"""
사용자 수정 API

- role_ids 생략: 기존 역할 유지 / [] : 전부 제거 / 목록: 통째로 교체
- commit 후 해당 사용자 권한 캐시 무효화

"""

@router.put("/{user_id}")
def update_user_by_admin(
    user_id: uuid.UUID,
    data: UserUpdate,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    _: UserInformation = Depends(require_permission(USER_UPDATE)),
):
    with _transaction(db):
        update_user(db, user_id, data)
    cache.invalidate(user_id)
    return {"message": "User updated", "data": get_user_detail(db, user_id).model_dump(mode="json")}


# 사용자 Soft Delete
@router.delete("/{user_id}")
def delete_user_by_admin(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user: UserInformation = Depends(require_permission(USER_DELETE)),
):
    # 자기 자신 삭제 금지
    if user_id == current_user.id:
        raise ValidationError.for_field("user_id", "Cannot delete yourself")

    with _transaction(db):
        soft_delete_user(db, user_id)
    cache.invalidate(user_id)
    return {"message": "User deleted", "data": {"id": str(user_id)}}
