"""In-memory stand-ins for the user store, mail sink and clock."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from token_auth.auth_service.auth import hash_password


@dataclass
class FakeUser:
    id: int
    email: str
    password: str


class InMemoryUserStore:
    def __init__(self):
        self.users = {}
        self.password_changes = []

    def add(self, email: str, password: str) -> FakeUser:
        user = FakeUser(id=len(self.users) + 1, email=email, password=hash_password(password))
        self.users[user.id] = user
        return user

    def find_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    def find_by_id(self, user_id):
        try:
            return self.users.get(int(user_id))
        except (TypeError, ValueError):
            return None

    def change_password(self, user_id, new_password):
        user = self.find_by_id(user_id)
        if user is None:
            return False
        self.password_changes.append((user_id, new_password))
        user.password = hash_password(new_password)
        return True


class RecordingMailSink:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
