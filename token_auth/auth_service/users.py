"""
User lookup and update.

``AuthService`` only depends on the ``UserStore`` protocol; ``SqlUserStore``
is the SQLAlchemy implementation used by the HTTP app.
"""
import logging
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .auth import hash_password
from .models import User

logger = logging.getLogger(__name__)


class StoredUser(Protocol):
    id: object
    email: str
    password: str


class UserStore(Protocol):
    def find_by_email(self, email: str) -> Optional[StoredUser]: ...

    def find_by_id(self, user_id: str) -> Optional[StoredUser]: ...

    def change_password(self, user_id: str, new_password: str) -> bool:
        """Hash new_password and persist it for user_id. False when no such user exists."""
        ...


class DuplicateEmailError(Exception):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


class SqlUserStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        try:
            pk = int(user_id)
        except (TypeError, ValueError):
            return None
        return self.db.get(User, pk)

    def change_password(self, user_id: str, new_password: str) -> bool:
        user = self.find_by_id(user_id)
        if user is None:
            logger.warning("Password not updated: no user_id=%s", user_id)
            return False
        user.password = hash_password(new_password)
        self.db.add(user)
        self.db.commit()
        logger.info("Password updated: user_id=%s", user.id)
        return True

    def create_user(self, email: str, password: str) -> User:
        user = User(email=normalize_email(email), password=hash_password(password))
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateEmailError(email) from e
        self.db.refresh(user)
        logger.info("User registered: user_id=%s", user.id)
        return user
