# tests/helpers.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.models.user import User, UserStatus
from app.schemas.user import UserCreate
from app.services.rbac import seed_default_rbac
from app.services.users import create_user


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:6]}@example.com"


def create_user_in_db(
    db: Session,
    *,
    email: str,
    password: str,
    name: str = "테스트유저",
    verified: bool = True,
    status: UserStatus = UserStatus.ACTIVE,
    role_ids: list[uuid.UUID] | None = None,
) -> uuid.UUID:
    user_id = create_user(
        db,
        UserCreate(name=name, email=email, password=password, status=status, role_ids=role_ids),
        email_verified_at=datetime.now(timezone.utc) if verified else None,
    )
    db.commit()
    return user_id


def login(client, email: str, password: str) -> dict:
    res = client.post("/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["data"]


def setup_admin(client, db: Session) -> dict:
    """
    admin 역할(user.* 권한 전부) + 해당 역할을 가진 인증된 관리자 + access token 세팅
    """
    role, _ = seed_default_rbac(db)
    db.commit()

    admin_email = unique_email("admin")
    admin_password = "AdminPassw0rd!"
    admin_id = create_user_in_db(
        db, email=admin_email, password=admin_password, name="ADMIN", role_ids=[role.id]
    )

    data = login(client, admin_email, admin_password)
    return {
        "role_id": role.id,
        "admin_id": admin_id,
        "admin_email": admin_email,
        "admin_password": admin_password,
        "admin_token": data["access_token"],
    }


def get_user(db: Session, user_id) -> User:
    # API 호출로 바뀐 값을 읽도록 identity map 을 비운다
    db.expire_all()
    if isinstance(user_id, str):
        user_id = uuid.UUID(user_id)
    return db.scalar(select(User).where(User.id == user_id))


def latest_token(db: Session, model, user_id) -> str:
    db.expire_all()
    if isinstance(user_id, str):
        user_id = uuid.UUID(user_id)
    return db.scalar(
        select(model.token).where(model.user_id == user_id).order_by(model.created_at.desc(), model.id)
    )


def token_from_mail(mailer, email: str, url_key: str) -> str:
    job = mailer.last_to(email)
    assert job is not None, f"no mail sent to {email}"
    return job.context[url_key].split("token=", 1)[1]


def fail_commits(monkeypatch, db: Session) -> None:
    """db.commit() 이 DB 오류로 실패하도록 만든다 (rollback 검증용)."""

    def _commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", _commit)
