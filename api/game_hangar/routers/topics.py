"""Forum topic endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from .. import schemas, settings
from ..auth import require_permission
from ..deps import SearchParams, get_forum_repository, get_search_params
from ..repositories import ForumRepository
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/topics", tags=["Forum"])


@router.get("", response_model=list[schemas.Topic])
def list_topics(
    params: SearchParams = Depends(get_search_params),
    forum: ForumRepository = Depends(get_forum_repository),
) -> list[schemas.Topic]:
    return [
        schemas.Topic.model_validate(t)
        for t in forum.find_topics(params.keywords, params.limit, params.order)
    ]


@router.get("/{id}", response_model=schemas.Topic)
def get_topic(id: int, forum: ForumRepository = Depends(get_forum_repository)) -> schemas.Topic:
    return schemas.Topic.model_validate(forum.find_topic(id))


@router.post("", response_model=schemas.Topic, status_code=status.HTTP_201_CREATED)
def create_topic(
    payload: schemas.TopicCreate,
    caller: Caller = Depends(require_permission("topics")),
    forum: ForumRepository = Depends(get_forum_repository),
) -> schemas.Topic:
    topic = forum.create_topic(payload.model_dump(), owner_id=caller.user_id)
    return schemas.Topic.model_validate(topic)


@router.patch("/{id}", response_model=schemas.Topic)
def update_topic(
    id: int,
    payload: schemas.TopicUpdate,
    caller: Caller = Depends(require_permission("topics")),
    forum: ForumRepository = Depends(get_forum_repository),
) -> schemas.Topic:
    fields = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"version"})
    return schemas.Topic.model_validate(forum.update_topic(id, fields, payload.version))


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_topic(
    id: int,
    caller: Caller = Depends(require_permission("topics")),
    forum: ForumRepository = Depends(get_forum_repository),
) -> schemas.StatusMessage:
    """Delete a topic with all of its threads and their messages."""
    forum.delete_topic(id)
    return schemas.StatusMessage(message=f"Topic {id} deleted")
