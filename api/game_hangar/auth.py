"""Session cookies, caller resolution and the policy check for protected routes."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable
from uuid import UUID

from fastapi import Depends, Request, Response

from . import settings
from .deps import get_user_authorizer, get_user_identifier
from .errors import ForbiddenError
from .object_store import TIER_LIMITS
from .services.user_authorizer import UserAuthorizer
from .services.user_identifier import Caller, UserIdentifier

logger = logging.getLogger(__name__)

# Non-browser clients may send the session id in this header instead
SESSION_HEADER = "Sessionid"


def read_session_id(request: Request) -> str | None:
    """Session id from the ``sessionID`` cookie, else from the ``Sessionid`` header."""
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or request.headers.get(SESSION_HEADER)


def set_session_cookie(response: Response, session_id: UUID) -> None:
    expires = datetime.now(timezone.utc) + timedelta(hours=settings.SESSION_TTL_HOURS)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        str(session_id),
        expires=expires,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.ENVIRONMENT == "production",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.ENVIRONMENT == "production",
    )


def get_current_caller(
    request: Request,
    identifier: UserIdentifier = Depends(get_user_identifier),
) -> Caller:
    """
    Resolve the session of the request into its user.

    Raises:
        AuthMissingError: If there is no session or it is unknown.
    """
    caller = identifier.identify(read_session_id(request))
    request.state.caller = caller
    return caller


def policy_object(resource: str, request: Request) -> str:
    """``"<resource>"`` for collection routes, ``"<resource>/<id>"`` for item routes."""
    item_id = request.path_params.get("id")
    return resource if item_id is None else f"{resource}/{item_id}"


def require_permission(resource: str, action: str | None = None) -> Callable[..., Caller]:
    """
    Dependency factory for protected routes.

    The caller's user id or role name must be allowed ``action`` (the HTTP
    method by default) on the resource object addressed by the route.
    """

    def dependency(
        request: Request,
        caller: Caller = Depends(get_current_caller),
        authorizer: UserAuthorizer = Depends(get_user_authorizer),
    ) -> Caller:
        obj = policy_object(resource, request)
        act = action or request.method
        if not authorizer.check_permissions(caller.user_id, caller.role_name, obj, act):
            logger.info(f"Denied {act} {obj} for user {caller.user_id} ({caller.role_name})")
            raise ForbiddenError(f"Not allowed to {act} {obj}")
        return caller

    return dependency


def upload_tier(caller: Caller) -> str:
    """Size tier of the caller's role; roles without a tier of their own upload as free tier."""
    role = caller.role_name
    return role if role in TIER_LIMITS and role != "picture" else "freetier"
