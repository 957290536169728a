"""
services/permissions.py

사용자 권한 정보(UserInformation) 조회.

user → user_roles → roles → role_permissions → permissions
3단계 조인 결과를 역할별로 묶어서 반환한다.

- roles       : 역할 이름 목록
- permissions : [{name: 역할 이름, permissions: [권한 이름, ...]}, ...]
                역할 단위로 그룹핑하며, 여러 역할에 같은 권한이 있어도 합치지 않는다

결과는 권한 캐시(app.services.cache)에 그대로 저장되고,
로그인 응답의 user 필드로도 사용된다.

"""

import logging
import uuid
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import UnauthorizedError
from app.models.rbac import Permission, Role, RolePermission, UserRole
from app.models.user import User, UserStatus
from app.schemas.auth import RolePermissions, UserInformation

logger = logging.getLogger(__name__)


def resolve_user_information(db: Session, user_id: uuid.UUID) -> UserInformation:
    # 존재 + 미삭제 + active 인 사용자만 권한 정보를 받을 수 있다
    user = db.scalar(
        select(User).where(
            User.id == user_id,
            User.deleted_at.is_(None),
            User.status == UserStatus.ACTIVE,
        )
    )
    if not user:
        logger.info("permission resolution denied for user %s", user_id)
        raise UnauthorizedError("Unauthorized")

    roles = db.execute(
        select(Role.id, Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user.id)
        .order_by(Role.name)
    ).all()

    grouped: dict[uuid.UUID, list[str]] = defaultdict(list)
    if roles:
        rows = db.execute(
            select(RolePermission.role_id, Permission.name)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id.in_([role_id for role_id, _ in roles]))
            .order_by(Permission.name)
        ).all()
        for role_id, permission_name in rows:
            grouped[role_id].append(permission_name)

    return UserInformation(
        id=user.id,
        email=user.email,
        name=user.name,
        roles=[name for _, name in roles],
        permissions=[
            RolePermissions(name=name, permissions=grouped.get(role_id, []))
            for role_id, name in roles
        ],
    )
