from fastapi.testclient import TestClient
from token_auth.auth_service.main import app, get_mail_sink
import pytest
from token_auth.auth_service.db import Base, engine, SessionLocal
from token_auth.auth_service.models import AuthEvent

from .fakes import RecordingMailSink


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def reset_database():
    # Drop all tables and recreate them before each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def outbox():
    sink = RecordingMailSink()
    app.dependency_overrides[get_mail_sink] = lambda: sink
    yield sink
    app.dependency_overrides.pop(get_mail_sink, None)


def register(client, email="a@x.com", password="p1"):
    response = client.post("/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201
    return response.json()


def login(client, email="a@x.com", password="p1"):
    return client.post("/auth/login", json={"email": email, "password": password})


def events(event_type):
    db = SessionLocal()
    try:
        return db.query(AuthEvent).filter(AuthEvent.event_type == event_type).all()
    finally:
        db.close()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_and_login(client):
    user = register(client)
    assert user["email"] == "a@x.com"
    assert "password" not in user

    response = login(client)
    assert response.status_code == 200
    body = response.json()
    assert body["access_token"]
    assert body["refresh_token"]
    assert body["token_type"] == "bearer"


def test_register_duplicate_email(client):
    register(client)
    response = client.post("/auth/register", json={"email": "A@x.com", "password": "other"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already exists"


def test_register_missing_fields(client):
    response = client.post("/auth/register", json={"email": "a@x.com"})
    assert response.status_code == 422


def test_login_wrong_password_and_unknown_email_match(client):
    register(client)

    wrong_password = login(client, password="wrong")
    unknown_email = login(client, email="nobody@x.com")

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_login_logs_events(client):
    user = register(client)
    assert login(client).status_code == 200
    assert login(client, password="wrong").status_code == 401

    successes = events("login_success")
    failures = events("login_failure")
    assert len(successes) == 1
    assert successes[0].user_id == user["id"]
    assert successes[0].ip_address is not None
    assert len(failures) == 1
    assert failures[0].email == "a@x.com"


def test_refresh_returns_new_pair(client):
    register(client)
    tokens = login(client).json()

    response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 200
    assert response.json()["access_token"]
    assert len(events("token_refresh")) == 1


def test_refresh_with_access_token(client):
    register(client)
    tokens = login(client).json()

    response = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token signature"


def test_refresh_without_token(client):
    response = client.post("/auth/refresh", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Token is required"


def test_refresh_with_garbage(client):
    response = client.post("/auth/refresh", json={"refresh_token": "garbage"})
    assert response.status_code == 400


def test_me_requires_access_token(client):
    user = register(client)
    tokens = login(client).json()

    ok = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert ok.status_code == 200
    assert ok.json() == {"id": user["id"], "email": "a@x.com"}

    refresh_as_bearer = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert refresh_as_bearer.status_code == 401

    anonymous = client.get("/auth/me")
    assert anonymous.status_code == 401


def test_change_password(client):
    register(client)
    tokens = login(client).json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    response = client.patch(
        "/auth/change-password",
        json={"password": "p2", "confirm_password": "p2"},
        headers=headers,
    )

    assert response.status_code == 200
    assert login(client, password="p2").status_code == 200
    assert login(client, password="p1").status_code == 401
    assert len(events("password_change")) == 1


def test_change_password_mismatch(client):
    register(client)
    tokens = login(client).json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    response = client.patch(
        "/auth/change-password",
        json={"password": "p2", "confirm_password": "p3"},
        headers=headers,
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Passwords do not match"
    assert login(client).status_code == 200


def test_change_password_requires_authentication(client):
    response = client.patch("/auth/change-password", json={"password": "p2", "confirm_password": "p2"})
    assert response.status_code == 401
