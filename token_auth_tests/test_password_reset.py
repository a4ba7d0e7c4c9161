from fastapi.testclient import TestClient
from token_auth.auth_service.main import app, get_mail_sink
from token_auth.auth_service.db import Base, engine, SessionLocal
from token_auth.auth_service.errors import MailDeliveryError
from token_auth.auth_service.models import AuthEvent, User
from token_auth.auth_service.auth import hash_password
import pytest

from .fakes import RecordingMailSink

client = TestClient(app)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def outbox():
    sink = RecordingMailSink()
    app.dependency_overrides[get_mail_sink] = lambda: sink
    yield sink
    app.dependency_overrides.pop(get_mail_sink, None)


def ensure_user(email="user@example.com", password="Secret123!"):
    db = SessionLocal()
    try:
        u = db.query(User).filter(User.email == email).first()
        if not u:
            u = User(email=email, password=hash_password(password))
            db.add(u)
            db.commit()
        # return stable scalar values to avoid DetachedInstance
        return {"id": u.id, "email": email}
    finally:
        db.close()


def request_reset_token(outbox, email):
    resp = client.post("/auth/forgot-password", json={"email": email})
    assert resp.status_code == 202
    return outbox.sent[-1].context["token"]


def test_forgot_password_sends_recovery_email(outbox):
    user_info = ensure_user()

    resp = client.post("/auth/forgot-password", json={"email": user_info["email"]})

    assert resp.status_code == 202
    assert len(outbox.sent) == 1
    message = outbox.sent[0]
    assert message.to == user_info["email"]
    assert message.template == "recover-password"
    assert message.context["token"] in message.context["reset_url"]

    db = SessionLocal()
    try:
        logged = db.query(AuthEvent).filter(AuthEvent.event_type == "password_reset_request").all()
        assert len(logged) == 1
        assert logged[0].email == user_info["email"]
    finally:
        db.close()


def test_forgot_password_unknown_email(outbox):
    resp = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert resp.status_code == 404
    assert outbox.sent == []


def test_forgot_password_mail_failure():
    class FailingSink:
        def send(self, message):
            raise MailDeliveryError("smtp down")

    ensure_user()
    app.dependency_overrides[get_mail_sink] = lambda: FailingSink()

    resp = client.post("/auth/forgot-password", json={"email": "user@example.com"})

    assert resp.status_code == 502


def test_reset_password_updates_password(outbox):
    user_info = ensure_user(password="OldPass1!")
    token = request_reset_token(outbox, user_info["email"])

    confirm = client.post(
        "/auth/reset-password",
        json={"token": token, "password": "NewPass2!", "confirm_password": "NewPass2!"},
    )
    assert confirm.status_code == 200

    login = client.post("/auth/login", json={"email": user_info["email"], "password": "NewPass2!"})
    assert login.status_code == 200
    old = client.post("/auth/login", json={"email": user_info["email"], "password": "OldPass1!"})
    assert old.status_code == 401


def test_reset_password_mismatch(outbox):
    user_info = ensure_user()
    token = request_reset_token(outbox, user_info["email"])

    resp = client.post(
        "/auth/reset-password",
        json={"token": token, "password": "NewPass2!", "confirm_password": "Different3!"},
    )
    assert resp.status_code == 422


def test_reset_password_rejects_invalid_token():
    ensure_user()
    bad = client.post(
        "/auth/reset-password",
        json={"token": "not-a-token", "password": "x", "confirm_password": "x"},
    )
    assert bad.status_code == 400


def test_reset_password_rejects_access_token():
    user_info = ensure_user()
    tokens = client.post("/auth/login", json={"email": user_info["email"], "password": "Secret123!"}).json()

    resp = client.post(
        "/auth/reset-password",
        json={"token": tokens["access_token"], "password": "x", "confirm_password": "x"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token signature"


def test_reset_password_missing_token():
    resp = client.post("/auth/reset-password", json={"password": "x", "confirm_password": "x"})
    assert resp.status_code == 400
