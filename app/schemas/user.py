from datetime import datetime
from typing import Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.user import UserStatus


T = TypeVar("T")

SortDirection = Literal["asc", "desc"]


# 🔹 관리자 사용자 생성 요청
class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=64)
    status: UserStatus = UserStatus.ACTIVE
    remark: str | None = Field(default=None, max_length=255)
    role_ids: list[UUID] | None = None


# 🔹 관리자 사용자 수정 요청
# - role_ids 생략(None): 기존 역할 유지
# - role_ids == []     : 모든 역할 제거
# - role_ids == [...]  : 전달된 목록으로 통째로 교체
class UserUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    status: UserStatus | None = None
    remark: str | None = Field(default=None, max_length=255)
    role_ids: list[UUID] | None = None


# 🔹 인증 경로 전용 조회 결과 (비밀번호 해시 포함, 외부 노출 금지)
class UserForAuth(BaseModel):
    id: UUID
    name: str
    email: str
    password_hash: str
    status: UserStatus
    email_verified_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class RoleRef(BaseModel):
    id: UUID
    name: str


# 🔹 사용자 상세 응답
class UserDetail(BaseModel):
    id: UUID
    name: str
    email: str
    status: UserStatus
    remark: str | None
    roles: list[RoleRef]
    created_at: datetime
    updated_at: datetime


# 🔹 사용자 목록 한 줄
class UserListItem(BaseModel):
    id: UUID
    name: str
    email: str
    status: UserStatus
    roles: list[str]
    created_at: datetime
    updated_at: datetime


class UserListFilter(BaseModel):
    status: UserStatus | None = None
    name: str | None = None
    email: str | None = None
    role_id: UUID | None = None


# 🔹 목록 조회 파라미터
# sort 는 화이트리스트 밖의 값이 오면 id 로 대체 (검증 에러 아님)
class UserListQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    search: str | None = None
    sort: str | None = None
    sort_direction: SortDirection = "desc"
    filter: UserListFilter = Field(default_factory=UserListFilter)


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int


class Page(BaseModel, Generic[T]):
    data: list[T]
    meta: PageMeta
