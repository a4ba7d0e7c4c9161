"""
Authentication flows: sign-in, refresh, forgot-password, reset-password and
change-password.

Each flow is a short linear sequence of store lookups, token checks and an
optional email, and returns a ``Result`` carrying either the value or the
``AuthError`` kind that ended it.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from .auth import verify_dummy_password, verify_password
from .config import Settings
from .errors import AuthError, Result
from .mailer import MailMessage, MailSink
from .tokens import TokenPair, TokenPayload, TokenRole, TokenService
from .users import UserStore

logger = logging.getLogger(__name__)

RECOVER_PASSWORD_TEMPLATE = "recover-password"
RECOVER_PASSWORD_SUBJECT = "Password recovery"


class AuthService:
    def __init__(self, users: UserStore, mailer: MailSink, tokens: TokenService, settings: Settings):
        self.users = users
        self.mailer = mailer
        self.tokens = tokens
        self.settings = settings

    def sign_in(self, email: str, password: str) -> Result[TokenPair]:
        user = self.users.find_by_email(email)
        if user is None:
            verify_dummy_password(password)
            logger.warning("Sign-in rejected: unknown email")
            return Result.failure(AuthError.INVALID_CREDENTIALS)

        if not verify_password(password, user.password):
            logger.warning("Sign-in rejected: wrong password for user_id=%s", user.id)
            return Result.failure(AuthError.INVALID_CREDENTIALS)

        logger.info("Sign-in succeeded: user_id=%s", user.id)
        return Result.success(self.tokens.issue_pair(TokenPayload.for_user(user)))

    def refresh(self, refresh_token: Optional[str]) -> Result[TokenPair]:
        """
        Exchange a refresh token for a new token pair.

        The presented refresh token is not revoked; it stays valid until its
        own expiry.
        """
        if not refresh_token:
            return Result.failure(AuthError.MISSING_TOKEN)

        claims = self.tokens.decode(refresh_token)
        if not claims.ok:
            return Result.failure(claims.error)

        user = self.users.find_by_email(claims.value.email)
        if user is None:
            return Result.failure(AuthError.USER_NOT_FOUND)

        verified = self.tokens.verify(refresh_token, TokenRole.REFRESH)
        if not verified.ok:
            logger.warning("Refresh rejected for user_id=%s: %s", user.id, verified.error.value)
            return Result.failure(verified.error)

        logger.info("Tokens refreshed: user_id=%s", user.id)
        return Result.success(self.tokens.issue_pair(TokenPayload.for_user(user)))

    def forgot_password(self, email: str) -> Result[None]:
        user = self.users.find_by_email(email)
        if user is None:
            return Result.failure(AuthError.USER_NOT_FOUND)

        token = self.tokens.issue(TokenPayload.for_user(user), TokenRole.RESET)
        ttl = self.tokens.ttl_for(TokenRole.RESET)
        self.mailer.send(MailMessage(
            to=user.email,
            subject=RECOVER_PASSWORD_SUBJECT,
            template=RECOVER_PASSWORD_TEMPLATE,
            context={
                "token": token,
                "email": user.email,
                "reset_url": self.reset_url(token),
                "expires_minutes": int(ttl.total_seconds() // 60),
            },
        ))
        logger.info("Password recovery email sent: user_id=%s", user.id)
        return Result.success()

    def reset_url(self, token: str) -> str:
        base = self.settings.PASSWORD_RESET_URL
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{urlencode({'token': token})}"

    def reset_password(self, reset_token: Optional[str], password: str, confirm_password: str) -> Result[None]:
        if not reset_token:
            return Result.failure(AuthError.MISSING_TOKEN)

        claims = self.tokens.decode(reset_token)
        if not claims.ok:
            return Result.failure(AuthError.INVALID_TOKEN)

        user = self.users.find_by_id(claims.value.id)
        if user is None:
            return Result.failure(AuthError.INVALID_TOKEN)

        verified = self.tokens.verify(reset_token, TokenRole.RESET)
        if not verified.ok:
            logger.warning("Password reset rejected for user_id=%s: %s", user.id, verified.error.value)
            return Result.failure(verified.error)

        return self.change_password(str(user.id), password, confirm_password)

    def change_password(self, user_id: str, password: str, confirm_password: str) -> Result[None]:
        if password != confirm_password:
            return Result.failure(AuthError.PASSWORD_MISMATCH)

        if not self.users.change_password(user_id, password):
            return Result.failure(AuthError.USER_NOT_FOUND)
        logger.info("Password changed: user_id=%s", user_id)
        return Result.success()
