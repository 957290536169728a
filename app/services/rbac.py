"""
services/rbac.py

역할(Role) / 권한(Permission) 관리 로직.

역할에 권한을 붙이거나 사용자에게 역할을 부여하면 해당 사용자들의
캐시된 권한 정보가 낡게 된다. 이 파일의 변경 함수들은 영향받는 사용자 id 목록을
반환하고, 호출 측은 commit 이후 PermissionCache.invalidate_many 로 캐시를 지운다.

설계 원칙:
- commit 은 호출 측에서 수행
- 부모(Role / Permission) 삭제 전에 연결 테이블 행을 먼저 삭제
  (ON DELETE CASCADE 가 없는 저장소에서도 같은 결과)

"""

import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.models.rbac import Permission, Role, RolePermission, UserRole


# 사용자 관리 API 가 요구하는 권한
USER_READ = "user.read"
USER_CREATE = "user.create"
USER_UPDATE = "user.update"
USER_DELETE = "user.delete"

DEFAULT_PERMISSIONS = {
    USER_READ: "user",
    USER_CREATE: "user",
    USER_UPDATE: "user",
    USER_DELETE: "user",
}
ADMIN_ROLE = "admin"


def _users_with_roles(db: Session, role_ids: list[uuid.UUID]) -> list[uuid.UUID]:
    if not role_ids:
        return []
    return list(db.scalars(select(UserRole.user_id).where(UserRole.role_id.in_(role_ids)).distinct()).all())


def get_or_create_permission(db: Session, *, name: str, group: str) -> Permission:
    permission = db.scalar(select(Permission).where(Permission.name == name))
    if permission:
        return permission
    permission = Permission(id=uuid.uuid4(), name=name, group=group)
    db.add(permission)
    db.flush()
    return permission


def create_role(db: Session, *, name: str) -> Role:
    if db.scalar(select(Role.id).where(Role.name == name)):
        raise ValidationError.for_field("name", "Role already exists")
    role = Role(id=uuid.uuid4(), name=name)
    db.add(role)
    db.flush()
    return role


def get_role_by_name(db: Session, name: str) -> Role | None:
    return db.scalar(select(Role).where(Role.name == name))


"""
역할의 권한 목록 교체

- 기존 role_permissions 행을 지우고 전달된 권한으로 다시 등록
- 이 역할을 가진 사용자 id 목록 반환 (캐시 무효화 대상)

"""

def set_role_permissions(db: Session, role_id: uuid.UUID, permission_ids: list[uuid.UUID]) -> list[uuid.UUID]:
    if not db.scalar(select(Role.id).where(Role.id == role_id)):
        raise NotFoundError("Role not found")

    found = set(db.scalars(select(Permission.id).where(Permission.id.in_(permission_ids))).all())
    missing = [str(p) for p in permission_ids if p not in found]
    if missing:
        raise ValidationError.for_field("permission_ids", f"Permission not found: {', '.join(missing)}")

    db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
    for permission_id in dict.fromkeys(permission_ids):
        db.add(RolePermission(role_id=role_id, permission_id=permission_id))
    db.flush()

    return _users_with_roles(db, [role_id])


"""
사용자에게 역할 추가

- 이미 가진 역할이면 아무것도 하지 않음
- 캐시 무효화 대상인 사용자 id 반환

"""

def assign_role(db: Session, user_id: uuid.UUID, role_id: uuid.UUID) -> list[uuid.UUID]:
    exists = db.scalar(
        select(UserRole.user_id).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
    )
    if not exists:
        db.add(UserRole(user_id=user_id, role_id=role_id))
        db.flush()
    return [user_id]


def revoke_role(db: Session, user_id: uuid.UUID, role_id: uuid.UUID) -> list[uuid.UUID]:
    db.execute(delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id))
    db.flush()
    return [user_id]


"""
역할 삭제

- 연결 행(user_roles, role_permissions)을 먼저 지운 뒤 역할 삭제
- 이 역할을 가지고 있던 사용자 id 목록 반환

"""

def delete_role(db: Session, role_id: uuid.UUID) -> list[uuid.UUID]:
    role = db.scalar(select(Role).where(Role.id == role_id))
    if not role:
        raise NotFoundError("Role not found")

    affected = _users_with_roles(db, [role_id])
    db.execute(delete(UserRole).where(UserRole.role_id == role_id))
    db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
    db.delete(role)
    db.flush()
    return affected


def delete_permission(db: Session, permission_id: uuid.UUID) -> list[uuid.UUID]:
    permission = db.scalar(select(Permission).where(Permission.id == permission_id))
    if not permission:
        raise NotFoundError("Permission not found")

    role_ids = list(
        db.scalars(select(RolePermission.role_id).where(RolePermission.permission_id == permission_id)).all()
    )
    affected = _users_with_roles(db, role_ids)
    db.execute(delete(RolePermission).where(RolePermission.permission_id == permission_id))
    db.delete(permission)
    db.flush()
    return affected



"""
기본 권한 / admin 역할 생성

- 이미 있으면 그대로 사용 (여러 번 실행해도 안전)
- admin 역할에는 기본 권한 전부를 부여
- 캐시 무효화 대상인 사용자 id 목록과 admin 역할 반환

"""

def seed_default_rbac(db: Session) -> tuple[Role, list[uuid.UUID]]:
    permissions = [get_or_create_permission(db, name=name, group=group) for name, group in DEFAULT_PERMISSIONS.items()]
    role = get_role_by_name(db, ADMIN_ROLE) or create_role(db, name=ADMIN_ROLE)
    affected = set_role_permissions(db, role.id, [p.id for p in permissions])
    return role, affected
