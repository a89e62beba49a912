from __future__ import annotations

import io
import secrets
import uuid
from typing import Callable, Generator

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from game_hangar import settings
from game_hangar.db import SessionLocal
from game_hangar.errors import ObjectNotFoundError
from game_hangar.main import app, run_startup_tasks
from game_hangar.middleware import CSRF_COOKIE_NAME, CSRF_HEADER_NAME
from game_hangar.models import Role, User
from game_hangar.object_store import get_object_store

load_dotenv()

API = settings.API_PREFIX
PASSWORD = "hangar12345"


class FakeObjectStore:
    """In-memory stand-in for the S3 bucket."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    def exists(self, key: str) -> bool:
        return key in self.objects

    def put(self, key: str, data, length: int, content_type: str | None = None) -> None:
        self.objects[key] = data.read(length)

    def get_link(self, key: str) -> str:
        if key not in self.objects:
            raise ObjectNotFoundError()
        return f"https://bucket.example.com/{key}?X-Amz-Signature=test"

    def delete(self, key: str) -> None:
        if key not in self.objects:
            raise ObjectNotFoundError()
        del self.objects[key]


@pytest.fixture(scope="session")
def bootstrap() -> None:
    """Ping, migrate and seed the test database once; only database-backed fixtures ask for it."""
    run_startup_tasks()


@pytest.fixture()
def object_store(bootstrap) -> Generator[FakeObjectStore, None, None]:
    store = FakeObjectStore()
    app.dependency_overrides[get_object_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_object_store, None)


@pytest.fixture()
def make_client(object_store: FakeObjectStore) -> Callable[[], TestClient]:
    """Fresh client with its own cookie jar and a matching CSRF cookie/header pair."""

    def factory() -> TestClient:
        token = secrets.token_urlsafe(16)
        return TestClient(
            app,
            cookies={CSRF_COOKIE_NAME: token},
            headers={CSRF_HEADER_NAME: token},
        )

    return factory


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture()
def db(bootstrap) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def unique_name(prefix: str = "user") -> str:
    return f"{prefix}{uuid.uuid4().hex[:10]}"


def register(client: TestClient, username: str | None = None, password: str = PASSWORD) -> dict:
    """Register through the API; the client keeps the session cookie."""
    username = username or unique_name()
    response = client.post(
        f"{API}/register",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
            "displayName": username.title(),
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def set_role(user_id: str, role_name: str) -> None:
    with SessionLocal() as session:
        role_id = session.execute(select(Role.id).where(Role.name == role_name)).scalar_one()
        session.execute(update(User).where(User.id == uuid.UUID(user_id)).values(role_id=role_id))
        session.commit()


@pytest.fixture()
def user_client(make_client) -> tuple[TestClient, dict]:
    client = make_client()
    return client, register(client)


@pytest.fixture()
def admin_client(make_client) -> tuple[TestClient, dict]:
    client = make_client()
    user = register(client, unique_name("admin"))
    set_role(user["id"], "admin")
    return client, user


def upload(content: bytes, name: str = "blob.bin") -> dict:
    return {"file": (name, io.BytesIO(content), "application/octet-stream")}
