"""Registration, login, verification, password reset and logout."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Response, status

from .. import schemas, settings
from ..auth import clear_session_cookie, get_current_caller, require_permission, set_session_cookie
from ..deps import get_role_repository, get_user_authorizer, get_user_repository
from ..errors import AuthInvalidError, AuthMissingError, NotFoundError, ValidationFailed
from ..repositories import RoleRepository, UserRepository
from ..seed import DEFAULT_ROLE
from ..services.user_authorizer import UserAuthorizer
from ..services.user_identifier import Caller

router = APIRouter(prefix=settings.API_PREFIX, tags=["Auth"])
logger = logging.getLogger(__name__)


@router.post("/register", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.RegisterRequest,
    response: Response,
    users: UserRepository = Depends(get_user_repository),
    roles: RoleRepository = Depends(get_role_repository),
    authorizer: UserAuthorizer = Depends(get_user_authorizer),
) -> schemas.User:
    """
    Create an account and sign it in.

    New accounts start unverified, with zero karma, on the free tier.
    """
    fields = payload.model_dump(exclude_none=True, exclude={"password"})
    fields["password_hash"] = authorizer.create_password_hash(payload.password)
    fields["role_id"] = roles.find_role_by_name(DEFAULT_ROLE).id
    fields["verified"] = False
    fields["karma"] = 0

    user = users.create_user(fields)
    session = users.create_session(user.id)
    set_session_cookie(response, session.id)
    logger.info(f"Registered user {user.id}")
    return schemas.User.model_validate(user)


@router.post("/login", response_model=schemas.User)
def login(
    payload: schemas.LoginRequest,
    response: Response,
    users: UserRepository = Depends(get_user_repository),
    authorizer: UserAuthorizer = Depends(get_user_authorizer),
) -> schemas.User:
    """Sign in with email or username and password; opens a new session."""
    if not payload.email and not payload.username:
        raise AuthMissingError("Email or username is required")
    try:
        user = authorizer.identify_user(payload.email, payload.username)
    except NotFoundError as e:
        raise AuthInvalidError("Unknown user or wrong password") from e
    authorizer.check_password(payload.password, user.id)

    session = users.create_session(user.id)
    set_session_cookie(response, session.id)
    return schemas.User.model_validate(user)


@router.get("/verify", response_model=schemas.User)
def verify(
    caller: Caller = Depends(get_current_caller),
    users: UserRepository = Depends(get_user_repository),
) -> schemas.User:
    """Mark the account behind the current session as verified."""
    return schemas.User.model_validate(users.set_verified(caller.user_id))


@router.patch("/reset-password/{id}", response_model=schemas.StatusMessage)
def reset_password(
    id: UUID,
    response: Response,
    password: str | None = Header(None, alias="Password"),
    caller: Caller = Depends(require_permission("users", "PATCH")),
    users: UserRepository = Depends(get_user_repository),
    authorizer: UserAuthorizer = Depends(get_user_authorizer),
) -> schemas.StatusMessage:
    """
    Replace the password of user ``id`` and end all of that user's sessions.

    The new password comes in the ``Password`` header.
    """
    if not password:
        raise ValidationFailed("Password header is required")
    try:
        schemas.check_password(password)
    except ValueError as e:
        raise ValidationFailed(str(e)) from e

    users.set_password_hash(id, authorizer.create_password_hash(password))
    ended = users.delete_all_user_sessions(id)
    if caller.user_id == id:
        clear_session_cookie(response)
    return schemas.StatusMessage(message=f"Password changed, {ended} session(s) ended")


@router.delete("/logout/{id}", response_model=schemas.StatusMessage)
def logout(
    id: UUID,
    response: Response,
    caller: Caller = Depends(require_permission("logout")),
    users: UserRepository = Depends(get_user_repository),
) -> schemas.StatusMessage:
    """
    End session ``id``.

    Users may end their own sessions only, admins any session. The cookie is
    cleared when the caller ends the session it is using.
    """
    users.delete_session(id)
    if caller.session_id == id:
        clear_session_cookie(response)
    return schemas.StatusMessage(message="Logged out")
