"""Resolves a session id into the calling user."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from ..errors import AuthMissingError, NotFoundError
from ..models import User, UserSession
from ..repositories.users import UserRepository


@dataclass(frozen=True)
class Caller:
    """The authenticated user behind a request."""

    session: UserSession
    user: User

    @property
    def user_id(self) -> UUID:
        return self.user.id

    @property
    def session_id(self) -> UUID:
        return self.session.id

    @property
    def role_name(self) -> str | None:
        return self.user.role_name


def parse_session_id(raw: str | None) -> UUID:
    """
    Raises:
        AuthMissingError: If ``raw`` is empty or not a UUID.
    """
    if not raw:
        raise AuthMissingError("No session")
    try:
        return UUID(raw)
    except ValueError as e:
        raise AuthMissingError("Malformed session id") from e


class UserIdentifier:
    def __init__(self, users: UserRepository):
        self.users = users

    def identify(self, raw_session_id: str | None) -> Caller:
        """
        Raises:
            AuthMissingError: If there is no session or it is unknown.
        """
        session_id = parse_session_id(raw_session_id)
        try:
            session = self.users.find_session(session_id)
            user = self.users.find_user(session.user_id)
        except NotFoundError as e:
            raise AuthMissingError("Session expired or unknown") from e
        return Caller(session=session, user=user)
