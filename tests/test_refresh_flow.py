# tests/test_refresh_flow.py
from datetime import timedelta

from app.core.security import create_refresh_token
from app.models.user import UserStatus
from app.services.users import update_user
from app.schemas.user import UserUpdate
from tests.helpers import auth_header, create_user_in_db, login, unique_email


def test_refresh_issues_new_access_token(client, db_session):
    email = unique_email("refresh")
    create_user_in_db(db_session, email=email, password="UserPassw0rd!")
    data = login(client, email, "UserPassw0rd!")

    r1 = client.post("/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert r1.status_code == 200, r1.text
    access2 = r1.json()["data"]["access_token"]
    assert access2 and access2 != data["access_token"]
    assert r1.json()["data"]["token_type"] == "bearer"

    me = client.get("/auth/me", headers=auth_header(access2))
    assert me.status_code == 200
    assert me.json()["data"]["email"] == email


def test_refresh_rejects_wrong_token_type(client, db_session):
    email = unique_email("refresh")
    create_user_in_db(db_session, email=email, password="UserPassw0rd!")
    data = login(client, email, "UserPassw0rd!")

    # access token 으로 재발급 불가
    res = client.post("/auth/refresh", json={"refresh_token": data["access_token"]})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid refresh token"

    # refresh token 으로 API 호출 불가
    res = client.get("/auth/me", headers=auth_header(data["refresh_token"]))
    assert res.status_code == 401


def test_refresh_rejects_expired_token(client, db_session):
    user_id = create_user_in_db(db_session, email=unique_email("expired"), password="UserPassw0rd!")
    expired = create_refresh_token(subject=str(user_id), expires_delta=timedelta(seconds=-1))

    res = client.post("/auth/refresh", json={"refresh_token": expired})
    assert res.status_code == 401


def test_refresh_rejected_after_deactivation(client, db_session, cache):
    email = unique_email("inactive")
    user_id = create_user_in_db(db_session, email=email, password="UserPassw0rd!")
    data = login(client, email, "UserPassw0rd!")

    update_user(db_session, user_id, UserUpdate(name="x", email=email, status=UserStatus.SUSPENDED))
    db_session.commit()
    cache.invalidate(user_id)

    res = client.post("/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert res.status_code == 401
