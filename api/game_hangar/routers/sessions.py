"""Session endpoints: read or end one login session."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from .. import schemas, settings
from ..auth import clear_session_cookie, require_permission
from ..deps import get_user_repository
from ..repositories import UserRepository
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/sessions", tags=["Sessions"])


# A session is visible to whoever may end it: its user, or an admin.
@router.get("/{id}", response_model=schemas.Session)
def get_session(
    id: UUID,
    caller: Caller = Depends(require_permission("logout", "DELETE")),
    users: UserRepository = Depends(get_user_repository),
) -> schemas.Session:
    return schemas.Session.model_validate(users.find_session(id))


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_session(
    id: UUID,
    response: Response,
    caller: Caller = Depends(require_permission("logout")),
    users: UserRepository = Depends(get_user_repository),
) -> schemas.StatusMessage:
    """Same as ``DELETE /logout/{id}``."""
    users.delete_session(id)
    if caller.session_id == id:
        clear_session_cookie(response)
    return schemas.StatusMessage(message=f"Session {id} ended")
