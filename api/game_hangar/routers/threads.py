"""Forum thread endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from .. import schemas, settings
from ..auth import require_permission
from ..deps import SearchParams, get_demo_repository, get_forum_repository, get_search_params
from ..errors import ConflictError
from ..repositories import DemoRepository, ForumRepository
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/threads", tags=["Forum"])


@router.get("", response_model=list[schemas.Thread])
def list_threads(
    params: SearchParams = Depends(get_search_params),
    forum: ForumRepository = Depends(get_forum_repository),
) -> list[schemas.Thread]:
    return [
        schemas.Thread.model_validate(t)
        for t in forum.find_threads(params.keywords, params.limit, params.order)
    ]


@router.get("/{id}", response_model=schemas.Thread)
def get_thread(id: int, forum: ForumRepository = Depends(get_forum_repository)) -> schemas.Thread:
    """Fetch a thread; each fetch counts as a view."""
    return schemas.Thread.model_validate(forum.find_thread(id))


@router.post("", response_model=schemas.Thread, status_code=status.HTTP_201_CREATED)
def create_thread(
    payload: schemas.ThreadCreate,
    caller: Caller = Depends(require_permission("threads")),
    forum: ForumRepository = Depends(get_forum_repository),
) -> schemas.Thread:
    return schemas.Thread.model_validate(forum.create_thread(payload.model_dump(exclude_none=True)))


@router.patch("/{id}", response_model=schemas.Thread)
def update_thread(
    id: int,
    payload: schemas.ThreadUpdate,
    caller: Caller = Depends(require_permission("threads")),
    forum: ForumRepository = Depends(get_forum_repository),
    demos: DemoRepository = Depends(get_demo_repository),
) -> schemas.Thread:
    """Update a thread. A demo's thread keeps the demo's title and the demo topic."""
    fields = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"version"})
    if fields.keys() & {"title", "topic_id"}:
        demo = demos.find_demo_by_thread(id)
        if demo is not None:
            raise ConflictError(
                f"Thread {id} belongs to demo {demo.id}; change its title through the demo"
            )
    return schemas.Thread.model_validate(forum.update_thread(id, fields, payload.version))


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_thread(
    id: int,
    caller: Caller = Depends(require_permission("threads")),
    forum: ForumRepository = Depends(get_forum_repository),
    demos: DemoRepository = Depends(get_demo_repository),
) -> schemas.StatusMessage:
    """Delete a thread and its messages. Threads of demos go away with their demo only."""
    demo = demos.find_demo_by_thread(id)
    if demo is not None:
        raise ConflictError(f"Thread {id} belongs to demo {demo.id}; delete the demo instead")
    forum.delete_thread(id)
    return schemas.StatusMessage(message=f"Thread {id} deleted")
