from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from imobconnect.accounts.models import User
from imobconnect.core.auth import AuthUser, get_current_user
from imobconnect.core.config import get_settings
from imobconnect.core.database import Base, get_db
from imobconnect.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        session.add_all(
            [
                User(id=1, username="ana", password="secret", email="ana@example.com", full_name="Ana Souza"),
                User(id=2, username="bruno", password="secret", email="bruno@example.com", full_name="Bruno Alves", role="admin"),
            ]
        )
        session.commit()
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_me_falls_back_to_stub_user(client: TestClient) -> None:
    response = client.get("/api/users/me")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == 1
    assert body["fullName"] == "Ana Souza"
    assert "password" not in body


def test_me_uses_bearer_token_subject(client: TestClient) -> None:
    token = jwt.encode({"sub": "2", "role": "admin"}, "test-secret", algorithm="HS256")

    response = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["username"] == "bruno"
    assert response.json()["role"] == "admin"


def test_invalid_token_falls_back_to_stub_user(client: TestClient) -> None:
    response = client.get("/api/users/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 200
    assert response.json()["id"] == 1


def test_me_for_unknown_user_returns_not_found(client: TestClient) -> None:
    app.dependency_overrides[get_current_user] = lambda: AuthUser(sub=404, role="agent")

    response = client.get("/api/users/me")

    assert response.status_code == 404
    assert response.json()["code"] == "accounts_user_get_failed"
    assert response.json()["message"] == "User not found"
