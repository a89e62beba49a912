"""Registration, login, sessions and password reset."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import API, PASSWORD, register, unique_name
from game_hangar.models import PolicyRule
from game_hangar.policy import PolicyEngine
from game_hangar.repositories import UserRepository


def _session_ids(db: Session, user_id: str) -> list[uuid.UUID]:
    return [s.id for s in UserRepository(db).find_user_sessions(uuid.UUID(user_id))]


def test_register_sets_session_cookie_and_verify(client):
    username = unique_name("a")
    response = client.post(
        f"{API}/register",
        json={"username": username, "email": f"{username}@e", "password": "pw12pw12"},
    )
    assert response.status_code == 201
    assert "sessionID=" in response.headers["set-cookie"]
    assert "HttpOnly" in response.headers["set-cookie"]
    user = response.json()
    assert user["verified"] is False
    assert user["karma"] == 0
    assert "password_hash" not in user

    response = client.get(f"{API}/verify")
    assert response.status_code == 200
    assert response.json()["verified"] is True


def test_register_assigns_free_tier(client):
    user = register(client)
    role = client.get(f"{API}/roles/{user['roleID']}").json()
    assert role["name"] == "freetier"


def test_register_rejects_duplicate_username(make_client):
    username = unique_name()
    register(make_client(), username)
    response = make_client().post(
        f"{API}/register",
        json={"username": username, "email": f"other-{username}@example.com", "password": PASSWORD},
    )
    assert response.status_code == 409


def test_register_rejects_weak_password(client):
    response = client.post(
        f"{API}/register",
        json={"username": unique_name(), "email": "weak@example.com", "password": "short"},
    )
    assert response.status_code == 422


def test_register_creates_session_and_logout_tuple(client, db: Session):
    user = register(client)
    session_ids = _session_ids(db, user["id"])
    assert len(session_ids) == 1
    assert PolicyEngine(db).has_permission(user["id"], f"logout/{session_ids[0]}", "DELETE")


def test_login_by_username_and_email(make_client):
    username = unique_name()
    register(make_client(), username)

    client = make_client()
    response = client.post(f"{API}/login", json={"username": username, "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["username"] == username
    assert "sessionID" in client.cookies

    response = make_client().post(
        f"{API}/login", json={"email": f"{username.upper()}@EXAMPLE.COM", "password": PASSWORD}
    )
    assert response.status_code == 200


def test_login_failures(make_client):
    username = unique_name()
    register(make_client(), username)
    client = make_client()

    response = client.post(f"{API}/login", json={"username": username, "password": "wrongpass1"})
    assert response.status_code == 401
    assert response.json()["title"] == "Invalid credentials"

    response = client.post(f"{API}/login", json={"username": unique_name(), "password": PASSWORD})
    assert response.status_code == 401

    response = client.post(f"{API}/login", json={"password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["title"] == "Authentication required"


def test_verify_requires_session(client):
    assert client.get(f"{API}/verify").status_code == 401


def test_session_header_is_accepted(make_client):
    owner = make_client()
    register(owner)
    session_id = owner.cookies["sessionID"]

    response = make_client().get(f"{API}/verify", headers={"Sessionid": session_id})
    assert response.status_code == 200


def test_reset_password_ends_all_sessions(make_client, db: Session):
    first = make_client()
    user = register(first)
    second = make_client()
    second.post(f"{API}/login", json={"username": user["username"], "password": PASSWORD})
    assert len(_session_ids(db, user["id"])) == 2

    response = first.patch(f"{API}/reset-password/{user['id']}", headers={"Password": "newpass123"})
    assert response.status_code == 200
    assert "sessionID" not in first.cookies

    assert _session_ids(db, user["id"]) == []
    policy = PolicyEngine(db)
    assert not any(obj.startswith("logout/") for obj, _ in _user_permissions(db, user["id"]))
    assert policy.has_permission(user["id"], f"users/{user['id']}", "PATCH")

    assert second.get(f"{API}/verify").status_code == 401
    response = make_client().post(
        f"{API}/login", json={"username": user["username"], "password": "newpass123"}
    )
    assert response.status_code == 200


def _user_permissions(db: Session, user_id: str) -> list[tuple[str, str]]:
    rows = db.execute(
        select(PolicyRule.v1, PolicyRule.v2).where(PolicyRule.ptype == "p", PolicyRule.v0 == user_id)
    ).all()
    return [(row[0], row[1]) for row in rows]


def test_reset_password_validation(user_client):
    client, user = user_client
    url = f"{API}/reset-password/{user['id']}"
    assert client.patch(url).status_code == 422
    assert client.patch(url, headers={"Password": "short"}).status_code == 422


def test_reset_password_of_someone_else_is_forbidden(make_client):
    victim = register(make_client())
    attacker = make_client()
    register(attacker)
    response = attacker.patch(
        f"{API}/reset-password/{victim['id']}", headers={"Password": "newpass123"}
    )
    assert response.status_code == 403


def test_logout_other_session_forbidden_own_session_clears_cookie(make_client):
    mine = make_client()
    register(mine)
    my_sid = mine.cookies["sessionID"]

    other = make_client()
    register(other)
    other_sid = other.cookies["sessionID"]

    response = mine.delete(f"{API}/logout/{other_sid}")
    assert response.status_code == 403

    response = mine.delete(f"{API}/logout/{my_sid}")
    assert response.status_code == 200
    assert "sessionID" not in mine.cookies
    assert mine.get(f"{API}/verify").status_code == 401

    # The other session is untouched
    assert other.get(f"{API}/verify").status_code == 200


def test_admin_may_end_any_session(make_client, admin_client):
    other = make_client()
    register(other)
    other_sid = other.cookies["sessionID"]

    admin, _ = admin_client
    response = admin.delete(f"{API}/logout/{other_sid}")
    assert response.status_code == 200
    # Not the admin's own session, so the admin stays signed in
    assert "sessionID" in admin.cookies
    assert other.get(f"{API}/verify").status_code == 401
