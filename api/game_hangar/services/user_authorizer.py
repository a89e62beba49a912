"""Password identity: lookup by email or username, hashing, verification, permission checks."""

from __future__ import annotations

import logging
from uuid import UUID

from passlib.context import CryptContext

from ..errors import AuthInvalidError, NotFoundError
from ..models import User
from ..policy import PolicyEngine
from ..repositories.users import UserRepository

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


class UserAuthorizer:
    def __init__(self, users: UserRepository, policy: PolicyEngine | None = None):
        self.users = users
        self.policy = policy if policy is not None else users.policy

    def identify_user(self, email: str | None = None, username: str | None = None) -> User:
        """
        Find a user by email, falling back to username.

        Raises:
            NotFoundError: If neither identifies a user.
        """
        if email:
            try:
                return self.users.find_user_by_email(email)
            except NotFoundError:
                pass
        if username:
            try:
                return self.users.find_user_by_username(username)
            except NotFoundError:
                pass
        raise NotFoundError("No user matches the given email or username")

    def create_password_hash(self, password: str) -> str:
        return hash_password(password)

    def check_password(self, password: str, user_id: UUID) -> User:
        """
        Compare ``password`` against the stored hash of ``user_id``.

        Raises:
            NotFoundError: If the user does not exist.
            AuthInvalidError: If the password does not match.
        """
        user = self.users.find_user(user_id)
        if not verify_password(password, user.password_hash):
            logger.info(f"Password mismatch for user {user_id}")
            raise AuthInvalidError("Wrong password")
        return user

    def check_permissions(self, user_id: UUID, role_name: str | None, obj: str, action: str) -> bool:
        """True when the user, or the user's role, may ``action`` on ``obj``."""
        return self.policy.enforce_any((str(user_id), role_name), obj, action)
