"""
Pytest configuration for auth service tests.

Sets the environment the service needs before any test module imports the
application.
"""
import os
import tempfile

import pytest

os.environ["JWT_SECRET"] = "test-access-secret-0123456789abcdef"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-0123456789abcdef"
os.environ["JWT_RESET_SECRET"] = "test-reset-secret-0123456789abcdef"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(tempfile.gettempdir(), 'token_auth_test.db')}"
os.environ["MAIL_TRANSPORT"] = "log"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from token_auth.auth_service.config import Settings  # noqa: E402
from token_auth.auth_service.tokens import TokenService  # noqa: E402

from .fakes import FakeClock, InMemoryUserStore, RecordingMailSink  # noqa: E402


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        JWT_SECRET="unit-access-secret-0123456789abcdef",
        JWT_REFRESH_SECRET="unit-refresh-secret-0123456789abcdef",
        JWT_RESET_SECRET="unit-reset-secret-0123456789abcdef",
        JWT_EXPIRES_IN="15m",
        JWT_REFRESH_EXPIRES_IN="7d",
        JWT_RESET_EXPIRES_IN="10m",
        PASSWORD_RESET_URL="https://app.example.com/reset-password",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_service(settings, clock):
    return TokenService(settings, clock=clock)


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def mail_sink():
    return RecordingMailSink()
