"""
역할 / 권한 관리 서비스 테스트.
- 변경 함수가 캐시 무효화 대상 사용자 id 를 돌려주는지,
  부모 삭제 시 연결 행이 함께 정리되는지 검증한다.
"""

import uuid

import pytest
from sqlalchemy import select

from app.core.errors import NotFoundError, ValidationError
from app.models.rbac import RolePermission, UserRole
from app.services.permissions import resolve_user_information
from app.services.rbac import (
    ADMIN_ROLE,
    DEFAULT_PERMISSIONS,
    assign_role,
    create_role,
    delete_permission,
    delete_role,
    get_or_create_permission,
    revoke_role,
    seed_default_rbac,
    set_role_permissions,
)
from tests.helpers import create_user_in_db, unique_email


def test_seed_is_idempotent(db_session):
    role, affected = seed_default_rbac(db_session)
    db_session.commit()
    assert role.name == ADMIN_ROLE
    assert affected == []

    again, _ = seed_default_rbac(db_session)
    db_session.commit()
    assert again.id == role.id

    user_id = create_user_in_db(db_session, email=unique_email(), password="UserPassw0rd!", role_ids=[role.id])
    info = resolve_user_information(db_session, user_id)
    assert info.permissions[0].permissions == sorted(DEFAULT_PERMISSIONS)


def test_create_role_rejects_duplicate(db_session):
    create_role(db_session, name="ops")
    with pytest.raises(ValidationError) as exc:
        create_role(db_session, name="ops")
    assert exc.value.errors == {"name": ["Role already exists"]}
    db_session.rollback()


def test_set_role_permissions_validates_input(db_session):
    role = create_role(db_session, name="ops")
    db_session.commit()

    with pytest.raises(NotFoundError):
        set_role_permissions(db_session, uuid.uuid4(), [])
    with pytest.raises(ValidationError):
        set_role_permissions(db_session, role.id, [uuid.uuid4()])
    db_session.rollback()


def test_assign_and_revoke_role(db_session):
    role = create_role(db_session, name="ops")
    perm = get_or_create_permission(db_session, name="ops.run", group="ops")
    set_role_permissions(db_session, role.id, [perm.id])
    user_id = create_user_in_db(db_session, email=unique_email(), password="UserPassw0rd!")

    assert assign_role(db_session, user_id, role.id) == [user_id]
    # 이미 가진 역할이면 그대로
    assert assign_role(db_session, user_id, role.id) == [user_id]
    db_session.commit()
    assert resolve_user_information(db_session, user_id).roles == ["ops"]

    assert revoke_role(db_session, user_id, role.id) == [user_id]
    db_session.commit()
    assert resolve_user_information(db_session, user_id).roles == []


def test_delete_role_cleans_join_rows(db_session):
    role = create_role(db_session, name="ops")
    perm = get_or_create_permission(db_session, name="ops.run", group="ops")
    set_role_permissions(db_session, role.id, [perm.id])
    user_id = create_user_in_db(db_session, email=unique_email(), password="UserPassw0rd!", role_ids=[role.id])

    assert delete_role(db_session, role.id) == [user_id]
    db_session.commit()

    assert db_session.scalars(select(UserRole).where(UserRole.role_id == role.id)).all() == []
    assert db_session.scalars(select(RolePermission).where(RolePermission.role_id == role.id)).all() == []
    assert resolve_user_information(db_session, user_id).roles == []


def test_delete_permission_returns_affected_users(db_session):
    role = create_role(db_session, name="ops")
    keep = get_or_create_permission(db_session, name="ops.read", group="ops")
    drop = get_or_create_permission(db_session, name="ops.run", group="ops")
    set_role_permissions(db_session, role.id, [keep.id, drop.id])
    user_id = create_user_in_db(db_session, email=unique_email(), password="UserPassw0rd!", role_ids=[role.id])

    assert delete_permission(db_session, drop.id) == [user_id]
    db_session.commit()

    info = resolve_user_information(db_session, user_id)
    assert info.permissions[0].permissions == ["ops.read"]
