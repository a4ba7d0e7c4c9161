import logging

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# Use pbkdf2_sha256 to avoid external bcrypt backend issues in some environments
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Verified against when the email is unknown so both sign-in failures take the same time
_DUMMY_HASH = pwd_context.hash("dummy-password-for-timing")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check a plaintext password against a stored salted hash.

    Returns False on mismatch and never raises for it. A stored value passlib
    cannot identify counts as a mismatch.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning("Stored password hash could not be verified: %s", e)
        return False


def verify_dummy_password(plain_password: str) -> bool:
    pwd_context.verify(plain_password, _DUMMY_HASH)
    return False
