"""Forum message endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from .. import schemas, settings
from ..auth import require_permission
from ..deps import SearchParams, get_forum_repository, get_search_params
from ..repositories import ForumRepository
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/messages", tags=["Forum"])


@router.get("", response_model=list[schemas.Message])
def list_messages(
    params: SearchParams = Depends(get_search_params),
    forum: ForumRepository = Depends(get_forum_repository),
) -> list[schemas.Message]:
    return [
        schemas.Message.model_validate(m)
        for m in forum.find_messages(params.keywords, params.limit, params.order)
    ]


@router.get("/thread/{thread_id}", response_model=list[schemas.Message])
def list_thread_messages(
    thread_id: int,
    l: int = Query(0, ge=0),
    forum: ForumRepository = Depends(get_forum_repository),
) -> list[schemas.Message]:
    """Messages of one thread in posting order."""
    return [
        schemas.Message.model_validate(m) for m in forum.find_thread_messages(thread_id, l)
    ]


@router.get("/{id}", response_model=schemas.Message)
def get_message(id: int, forum: ForumRepository = Depends(get_forum_repository)) -> schemas.Message:
    return schemas.Message.model_validate(forum.find_message(id))


@router.post("", response_model=schemas.Message, status_code=status.HTTP_201_CREATED)
def create_message(
    payload: schemas.MessageCreate,
    caller: Caller = Depends(require_permission("messages")),
    forum: ForumRepository = Depends(get_forum_repository),
) -> schemas.Message:
    return schemas.Message.model_validate(forum.create_message(payload.model_dump(exclude_none=True)))


@router.patch("/{id}", response_model=schemas.Message)
def update_message(
    id: int,
    payload: schemas.MessageUpdate,
    caller: Caller = Depends(require_permission("messages")),
    forum: ForumRepository = Depends(get_forum_repository),
) -> schemas.Message:
    fields = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"version"})
    return schemas.Message.model_validate(forum.update_message(id, fields, payload.version))


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_message(
    id: int,
    caller: Caller = Depends(require_permission("messages")),
    forum: ForumRepository = Depends(get_forum_repository),
) -> schemas.StatusMessage:
    forum.delete_message(id)
    return schemas.StatusMessage(message=f"Message {id} deleted")
