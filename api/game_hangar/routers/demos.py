"""Demo endpoints. Every demo is published together with its forum thread."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile, status

from .. import schemas, settings
from ..auth import require_permission, upload_tier
from ..deps import SearchParams, get_demo_repository, get_search_params, get_thread_syncer
from ..object_store import measure
from ..repositories import DemoRepository
from ..services.thread_sync import ThreadSyncer
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/demos", tags=["Demos"])


@router.get("", response_model=list[schemas.Demo])
def list_demos(
    params: SearchParams = Depends(get_search_params),
    demos: DemoRepository = Depends(get_demo_repository),
) -> list[schemas.Demo]:
    """
    List demos, optionally filtered by keywords.

    A demo matches when its title or description matches any keyword
    (English or Russian stemming), or when one of its tags equals a keyword.
    """
    return [
        schemas.Demo.model_validate(d)
        for d in demos.find_demos(params.keywords, params.limit, params.order)
    ]


@router.get("/{id}", response_model=schemas.Demo)
def get_demo(id: int, demos: DemoRepository = Depends(get_demo_repository)) -> schemas.Demo:
    """Fetch a demo; each fetch counts as a view."""
    return schemas.Demo.model_validate(demos.find_demo(id))


@router.post("", response_model=schemas.Demo, status_code=status.HTTP_201_CREATED)
def create_demo(
    payload: schemas.DemoCreate,
    caller: Caller = Depends(require_permission("demos")),
    syncer: ThreadSyncer = Depends(get_thread_syncer),
) -> schemas.Demo:
    demo = syncer.publish(payload.model_dump(exclude_none=True))
    return schemas.Demo.model_validate(demo)


@router.patch("/{id}", response_model=schemas.Demo)
def update_demo(
    id: int,
    payload: schemas.DemoUpdate,
    caller: Caller = Depends(require_permission("demos")),
    syncer: ThreadSyncer = Depends(get_thread_syncer),
) -> schemas.Demo:
    fields = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"version"})
    return schemas.Demo.model_validate(syncer.update(id, fields, payload.version))


@router.put("/{id}/file", response_model=schemas.Demo)
def upload_demo_file(
    id: int,
    file: UploadFile = File(...),
    caller: Caller = Depends(require_permission("demos", "PATCH")),
    demos: DemoRepository = Depends(get_demo_repository),
) -> schemas.Demo:
    """Upload or replace the playable build; the size cap depends on the caller's role."""
    length = measure(file.file)
    demo = demos.upload_file(id, file.file, length, upload_tier(caller), file.content_type)
    return schemas.Demo.model_validate(demo)


@router.put("/{id}/thumbnail", response_model=schemas.Demo)
def upload_demo_thumbnail(
    id: int,
    file: UploadFile = File(...),
    caller: Caller = Depends(require_permission("demos", "PATCH")),
    demos: DemoRepository = Depends(get_demo_repository),
) -> schemas.Demo:
    length = measure(file.file)
    return schemas.Demo.model_validate(
        demos.upload_thumbnail(id, file.file, length, file.content_type)
    )


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_demo(
    id: int,
    caller: Caller = Depends(require_permission("demos")),
    syncer: ThreadSyncer = Depends(get_thread_syncer),
) -> schemas.StatusMessage:
    syncer.retract(id)
    return schemas.StatusMessage(message=f"Demo {id} deleted")
