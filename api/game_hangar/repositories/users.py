"""User, session and role repositories over the ``user`` schema.

Policy tuples follow the rows they describe:

* a user owns ``users/<id>`` (PATCH, DELETE);
* a session lets its user ``DELETE logout/<sessionId>``;
* a role is a policy subject, renamed and dropped along with its row.
"""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Sequence
from uuid import UUID

from sqlalchemy import select

from ..db import NoRowsError
from ..errors import ConflictError, ObjectNotFoundError, UpstreamError
from ..models import Role, User, UserSession
from ..object_store import ObjectStore, check_file_size
from ..policy import PolicyEngine
from .base import SqlRepository

logger = logging.getLogger(__name__)

USER_ACTIONS = ("PATCH", "DELETE")


def user_object(user_id: Any) -> str:
    return f"users/{user_id}"


def logout_object(session_id: Any) -> str:
    return f"logout/{session_id}"


def profile_pic_key(user_id: Any) -> str:
    return f"profile-pic-{user_id}"


class UserRepository(SqlRepository):
    def __init__(self, db, store: ObjectStore | None = None, policy: PolicyEngine | None = None):
        super().__init__(db, policy)
        self.store = store

    def _with_picture(self, user: User) -> User:
        if user.profile_pic_key and self.store is not None:
            try:
                user.profile_pic_link = self.store.get_link(user.profile_pic_key)
            except ObjectNotFoundError:
                logger.warning(f"User {user.id} points at missing picture {user.profile_pic_key}")
        return user

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, fields: dict[str, Any]) -> User:
        with self._transaction():
            user = self._insert(User(**fields))
            self.policy.add_permissions(str(user.id), user_object(user.id), USER_ACTIONS)
        logger.info(f"Created user {user.id} ({user.username})")
        return user

    def find_user(self, user_id: UUID) -> User:
        return self._with_picture(self._get(User, user_id))

    def find_users(
        self, keywords: Sequence[str] | None = None, limit: int = 0, order: str | None = None
    ) -> list[User]:
        return [self._with_picture(u) for u in self._find(User, keywords, limit, order)]

    def find_user_by_email(self, email: str) -> User:
        return self._find_one(User.email == email, f"No user with email {email}")

    def find_user_by_username(self, username: str) -> User:
        return self._find_one(User.username == username, f"No user named {username}")

    def _find_one(self, criterion, detail: str) -> User:
        try:
            return self.db.execute(select(User).where(criterion)).unique().scalar_one()
        except NoRowsError as e:
            raise self.not_found_error(detail) from e

    def update_user(self, user_id: UUID, fields: dict[str, Any], version: int | None = None) -> User:
        return self._with_picture(self._update(User, user_id, fields, version))

    def set_verified(self, user_id: UUID) -> User:
        return self._update(User, user_id, {"verified": True})

    def set_password_hash(self, user_id: UUID, password_hash: str) -> User:
        return self._update(User, user_id, {"password_hash": password_hash})

    def upload_picture(
        self, user_id: UUID, data: BinaryIO, length: int, content_type: str | None = None
    ) -> User:
        check_file_size(length, "picture")
        self._get(User, user_id)
        key = profile_pic_key(user_id)
        self.store.put(key, data, length, content_type)
        user = self._update(User, user_id, {"profile_pic_key": key})
        return self._with_picture(user)

    def delete_user(self, user_id: UUID) -> None:
        """Delete the user; sessions cascade, their logout tuples go too."""
        user = self._get(User, user_id)
        key = user.profile_pic_key
        session_ids = self._session_ids(user_id)
        with self._transaction():
            self._apply_delete(User, user_id)
            for action in USER_ACTIONS:
                self.policy.remove_permission(str(user_id), user_object(user_id), action)
            for session_id in session_ids:
                self.policy.remove_permission(str(user_id), logout_object(session_id), "DELETE")
        logger.info(f"Deleted user {user_id} and {len(session_ids)} session(s)")

        if key and self.store is not None:
            try:
                self.store.delete(key)
            except (ObjectNotFoundError, UpstreamError) as e:
                logger.error(f"Failed to remove picture {key} of deleted user {user_id}: {e}")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _session_ids(self, user_id: UUID) -> list[UUID]:
        return list(
            self.db.execute(
                select(UserSession.id).where(UserSession.user_id == user_id)
            ).scalars().all()
        )

    def create_session(self, user_id: UUID) -> UserSession:
        with self._transaction():
            session = self._insert(UserSession(user_id=user_id))
            self.policy.add_permission(str(user_id), logout_object(session.id), "DELETE")
        logger.info(f"Created session for user {user_id}")
        return session

    def find_session(self, session_id: UUID) -> UserSession:
        return self._get(UserSession, session_id)

    def find_user_sessions(self, user_id: UUID) -> list[UserSession]:
        return list(
            self.db.execute(
                select(UserSession).where(UserSession.user_id == user_id)
            ).scalars().all()
        )

    def delete_session(self, session_id: UUID) -> None:
        session = self._get(UserSession, session_id)
        with self._transaction():
            self._apply_delete(UserSession, session_id)
            self.policy.remove_permission(str(session.user_id), logout_object(session_id), "DELETE")
        logger.info(f"Deleted session of user {session.user_id}")

    def delete_all_user_sessions(self, user_id: UUID) -> int:
        """Drop every session of ``user_id`` with its logout tuple."""
        session_ids = self._session_ids(user_id)
        with self._transaction():
            for session_id in session_ids:
                self.policy.remove_permission(str(user_id), logout_object(session_id), "DELETE")
            self.db.execute(
                UserSession.__table__.delete().where(UserSession.user_id == user_id)
            )
        logger.info(f"Deleted {len(session_ids)} session(s) of user {user_id}")
        return len(session_ids)


class RoleRepository(SqlRepository):
    def create_role(self, fields: dict[str, Any]) -> Role:
        with self._transaction():
            role = self._insert(Role(**fields))
        logger.info(f"Created role {role.name}")
        return role

    def find_role(self, role_id: UUID) -> Role:
        return self._get(Role, role_id)

    def find_role_by_name(self, name: str) -> Role:
        try:
            return self.db.execute(select(Role).where(Role.name == name)).scalar_one()
        except NoRowsError as e:
            raise self.not_found_error(f"No role named {name}") from e

    def find_roles(
        self, keywords: Sequence[str] | None = None, limit: int = 0, order: str | None = None
    ) -> list[Role]:
        return self._find(Role, keywords, limit, order)

    def update_role(self, role_id: UUID, fields: dict[str, Any], version: int) -> Role:
        """Rename the role; every tuple naming it follows in the same transaction."""
        old_name = self._get(Role, role_id).name
        with self._transaction():
            role = self._apply_update(Role, role_id, fields, version)
            self.policy.rename_subject(old_name, role.name)
        return role

    def delete_role(self, role_id: UUID) -> None:
        role = self._get(Role, role_id)
        in_use = self.db.execute(select(User.id).where(User.role_id == role_id).limit(1)).first()
        if in_use is not None:
            raise ConflictError(f"Role {role.name} is still assigned to users")
        name = role.name
        with self._transaction():
            self._apply_delete(Role, role_id)
            self.policy.remove_for_subject(name)
        logger.info(f"Deleted role {name}")
