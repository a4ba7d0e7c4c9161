"""
Error kinds and flow results for the authentication flows.

Every flow in ``AuthService`` returns a ``Result``: either a value or one of
the ``AuthError`` kinds below. Callers branch on ``result.ok`` and map the
error kind to a response; nothing in the flows raises for an expected
authentication failure.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class AuthError(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    USER_NOT_FOUND = "user_not_found"
    MISSING_TOKEN = "missing_token"
    INVALID_SIGNATURE = "invalid_signature"
    TOKEN_EXPIRED = "token_expired"
    INVALID_TOKEN = "invalid_token"
    PASSWORD_MISMATCH = "password_mismatch"

    @property
    def message(self) -> str:
        return ERROR_MESSAGES[self]


ERROR_MESSAGES = {
    AuthError.INVALID_CREDENTIALS: "Invalid email or password",
    AuthError.USER_NOT_FOUND: "User not found",
    AuthError.MISSING_TOKEN: "Token is required",
    AuthError.INVALID_SIGNATURE: "Invalid token signature",
    AuthError.TOKEN_EXPIRED: "Token has expired",
    AuthError.INVALID_TOKEN: "Invalid token",
    AuthError.PASSWORD_MISMATCH: "Passwords do not match",
}


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[AuthError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AuthError) -> "Result[T]":
        return cls(error=error)


class MailDeliveryError(Exception):
    """Raised by a mail sink when a message could not be handed to the transport."""
