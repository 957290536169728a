"""
권한 정보 조회 / 캐시 테스트.
- 로그인 시 invalidate → resolve → populate, 역할별 권한 그룹핑,
  비활성 사용자 거부, /auth/me read-through, 역할 변경 후 무효화를 검증한다.
"""

import uuid

import pytest

from app.core.errors import UnauthorizedError
from app.models.user import UserStatus
from app.schemas.auth import RolePermissions, UserInformation
from app.services.cache import InMemoryCacheStore, PermissionCache, user_cache_key
from app.services import auth as auth_service
from app.services.permissions import resolve_user_information
from app.services.rbac import create_role, get_or_create_permission, set_role_permissions
from tests.helpers import auth_header, create_user_in_db, login, unique_email


def _roles_with_permissions(db_session):
    editor = create_role(db_session, name="editor")
    viewer = create_role(db_session, name="viewer")
    read = get_or_create_permission(db_session, name="post.read", group="post")
    write = get_or_create_permission(db_session, name="post.write", group="post")
    set_role_permissions(db_session, editor.id, [write.id, read.id])
    set_role_permissions(db_session, viewer.id, [read.id])
    db_session.commit()
    return editor, viewer


def test_resolve_groups_permissions_per_role(db_session):
    editor, viewer = _roles_with_permissions(db_session)
    user_id = create_user_in_db(
        db_session, email=unique_email("multi"), password="UserPassw0rd!", role_ids=[viewer.id, editor.id]
    )

    info = resolve_user_information(db_session, user_id)
    assert info.id == user_id
    assert info.roles == ["editor", "viewer"]
    # 역할 간 같은 권한이 있어도 합치지 않는다
    assert info.permissions == [
        RolePermissions(name="editor", permissions=["post.read", "post.write"]),
        RolePermissions(name="viewer", permissions=["post.read"]),
    ]
    assert info.has_permission("post.write")
    assert not info.has_permission("post.delete")


def test_resolve_rejects_missing_inactive_and_deleted(db_session):
    with pytest.raises(UnauthorizedError):
        resolve_user_information(db_session, uuid.uuid4())

    suspended = create_user_in_db(
        db_session, email=unique_email("suspended"), password="UserPassw0rd!", status=UserStatus.SUSPENDED
    )
    with pytest.raises(UnauthorizedError) as exc:
        resolve_user_information(db_session, suspended)
    assert exc.value.message == "Unauthorized"


def test_login_populates_cache(client, db_session, cache):
    editor, _ = _roles_with_permissions(db_session)
    email = unique_email("cached")
    user_id = create_user_in_db(db_session, email=email, password="UserPassw0rd!", role_ids=[editor.id])

    assert cache.get(user_id) is None
    data = login(client, email, "UserPassw0rd!")

    cached = cache.get(user_id)
    assert cached is not None
    assert cached.model_dump(mode="json") == data["user"]
    assert cached.roles == ["editor"]


def test_login_replaces_stale_entry(client, db_session, cache):
    email = unique_email("stale")
    user_id = create_user_in_db(db_session, email=email, password="UserPassw0rd!")

    stale = UserInformation(
        id=user_id,
        email=email,
        name="old",
        roles=["admin"],
        permissions=[RolePermissions(name="admin", permissions=["user.delete"])],
    )
    cache.populate(user_id, stale)

    data = login(client, email, "UserPassw0rd!")
    assert data["user"]["roles"] == []
    assert cache.get(user_id).roles == []


def test_me_reads_through_cache(client, db_session, cache):
    email = unique_email("me")
    user_id = create_user_in_db(db_session, email=email, password="UserPassw0rd!")
    token = login(client, email, "UserPassw0rd!")["access_token"]

    # 캐시에 있는 값을 그대로 돌려준다
    cache.populate(
        user_id,
        UserInformation(id=user_id, email=email, name="from-cache", roles=[], permissions=[]),
    )
    res = client.get("/auth/me", headers=auth_header(token))
    assert res.json()["data"]["name"] == "from-cache"

    # miss 면 DB 에서 다시 조회하고 캐시를 채운다
    cache.invalidate(user_id)
    res = client.get("/auth/me", headers=auth_header(token))
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "테스트유저"
    assert cache.get(user_id) is not None


def test_me_requires_valid_token(client):
    assert client.get("/auth/me").status_code == 401
    res = client.get("/auth/me", headers=auth_header("not-a-jwt"))
    assert res.status_code == 401
    assert res.json()["detail"] == "Could not validate credentials"


def test_role_change_returns_affected_users(db_session, cache):
    editor, viewer = _roles_with_permissions(db_session)
    email = unique_email("affected")
    user_id = create_user_in_db(db_session, email=email, password="UserPassw0rd!", role_ids=[viewer.id])
    cache.populate(user_id, resolve_user_information(db_session, user_id))

    delete = get_or_create_permission(db_session, name="post.delete", group="post")
    affected = set_role_permissions(db_session, viewer.id, [delete.id])
    db_session.commit()
    assert affected == [user_id]

    cache.invalidate_many(affected)
    assert cache.get(user_id) is None
    refreshed = resolve_user_information(db_session, user_id)
    assert refreshed.permissions == [RolePermissions(name="viewer", permissions=["post.delete"])]


def test_malformed_cache_entry_is_a_miss():
    store = InMemoryCacheStore()
    cache = PermissionCache(store)
    user_id = uuid.uuid4()

    store.set(user_cache_key(user_id), "{not json")
    assert cache.get(user_id) is None
    assert store.get(user_cache_key(user_id)) is None


def test_in_memory_store_ttl(monkeypatch):
    store = InMemoryCacheStore()
    clock = [100.0]
    monkeypatch.setattr("app.services.cache.time.monotonic", lambda: clock[0])

    store.set("a", "1", ttl_sec=10)
    store.set("b", "2")
    clock[0] = 111.0
    assert store.get("a") is None
    assert store.get("b") == "2"


def test_revoke_during_read_through_is_not_cached(client, db_session, cache, monkeypatch):
    editor, _ = _roles_with_permissions(db_session)
    email = unique_email("race")
    user_id = create_user_in_db(db_session, email=email, password="UserPassw0rd!", role_ids=[editor.id])
    token = login(client, email, "UserPassw0rd!")["access_token"]
    cache.invalidate(user_id)

    resolve = auth_service.resolve_user_information

    # DB 조회가 끝난 직후, 응답 전에 관리자가 권한을 회수한 상황
    def resolve_then_revoke(db, target_id):
        info = resolve(db, target_id)
        affected = set_role_permissions(db_session, editor.id, [])
        db_session.commit()
        cache.invalidate_many(affected)
        return info

    monkeypatch.setattr(auth_service, "resolve_user_information", resolve_then_revoke)
    res = client.get("/auth/me", headers=auth_header(token))
    assert res.status_code == 200
    assert cache.get(user_id) is None
    monkeypatch.undo()

    res = client.get("/auth/me", headers=auth_header(token))
    assert res.json()["data"]["permissions"] == [{"name": "editor", "permissions": []}]
    assert cache.get(user_id).permissions == [RolePermissions(name="editor", permissions=[])]


def test_populate_with_stale_generation_is_skipped():
    cache = PermissionCache(InMemoryCacheStore())
    user_id = uuid.uuid4()
    info = UserInformation(id=user_id, email="a@example.com", name="a", roles=[], permissions=[])

    generation = cache.generation(user_id)
    cache.invalidate(user_id)
    assert cache.populate(user_id, info, generation=generation) is False
    assert cache.get(user_id) is None

    assert cache.populate(user_id, info, generation=cache.generation(user_id)) is True
    assert cache.get(user_id) == info
