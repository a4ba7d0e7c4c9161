"""
JWT issuance and validation.

Each token role (access, refresh, reset) is signed with its own secret and has
its own lifetime, both taken from Settings. A token signed for one role never
verifies under another role's key.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

import jwt

from .config import Settings
from .errors import AuthError, Result

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenRole(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET = "reset"


@dataclass(frozen=True)
class TokenPayload:
    """Identity claims carried by every token."""
    id: str
    email: str

    @classmethod
    def for_user(cls, user) -> "TokenPayload":
        return cls(id=str(user.id), email=user.email)

    @classmethod
    def from_claims(cls, claims: dict) -> Optional["TokenPayload"]:
        user_id = claims.get("sub")
        email = claims.get("email")
        if user_id is None or not email:
            return None
        return cls(id=str(user_id), email=str(email))


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """Issues and validates role-scoped JWTs."""

    def __init__(self, settings: Settings, clock: Clock = utc_now):
        self._settings = settings
        self._clock = clock
        self._secrets = {
            TokenRole.ACCESS: settings.JWT_SECRET,
            TokenRole.REFRESH: settings.JWT_REFRESH_SECRET,
            TokenRole.RESET: settings.JWT_RESET_SECRET,
        }
        self._ttls = {
            TokenRole.ACCESS: settings.JWT_EXPIRES_IN,
            TokenRole.REFRESH: settings.JWT_REFRESH_EXPIRES_IN,
            TokenRole.RESET: settings.JWT_RESET_EXPIRES_IN,
        }

    def ttl_for(self, role: TokenRole) -> timedelta:
        return self._ttls[role]

    def _secret_for(self, role: TokenRole) -> str:
        return self._secrets[role].get_secret_value()

    def issue(self, payload: TokenPayload, role: TokenRole, ttl: Optional[timedelta] = None) -> str:
        """
        Sign payload for role, expiring ttl from now.

        Args:
            payload: Identity claims
            role: Which signing key to use
            ttl: Lifetime; defaults to the role's configured lifetime

        Returns:
            Encoded JWT
        """
        now = self._clock()
        expires = now + (ttl if ttl is not None else self.ttl_for(role))
        claims = {
            "sub": payload.id,
            "email": payload.email,
            "iat": int(now.timestamp()),
            "exp": expires.timestamp(),
        }
        return jwt.encode(claims, self._secret_for(role), algorithm=self._settings.JWT_ALGORITHM)

    def issue_pair(self, payload: TokenPayload) -> TokenPair:
        return TokenPair(
            access_token=self.issue(payload, TokenRole.ACCESS),
            refresh_token=self.issue(payload, TokenRole.REFRESH),
        )

    def decode(self, token: str) -> Result[TokenPayload]:
        """
        Read claims without checking signature or expiry.

        Only for recovering the identity to look the user up; never trust the
        result for an authorization decision.
        """
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return Result.failure(AuthError.INVALID_TOKEN)

        payload = TokenPayload.from_claims(claims)
        if payload is None:
            return Result.failure(AuthError.INVALID_TOKEN)
        return Result.success(payload)

    def verify(self, token: str, role: TokenRole) -> Result[TokenPayload]:
        """
        Check the signature against role's key, then the expiry.

        Returns INVALID_SIGNATURE when the token was not signed with role's key,
        TOKEN_EXPIRED once the clock reaches exp, and INVALID_TOKEN when the
        token cannot be parsed at all.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret_for(role),
                algorithms=[self._settings.JWT_ALGORITHM],
                # expiry is checked against the injected clock below
                options={"verify_exp": False, "verify_iat": False, "require": ["exp", "sub"]},
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError):
            return Result.failure(AuthError.INVALID_SIGNATURE)
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected %s token: %s", role.value, e)
            return Result.failure(AuthError.INVALID_TOKEN)

        expires = claims["exp"]
        if not isinstance(expires, (int, float)):
            return Result.failure(AuthError.INVALID_TOKEN)
        if self._clock().timestamp() >= expires:
            return Result.failure(AuthError.TOKEN_EXPIRED)

        payload = TokenPayload.from_claims(claims)
        if payload is None:
            return Result.failure(AuthError.INVALID_TOKEN)
        return Result.success(payload)
