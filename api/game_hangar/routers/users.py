"""User account endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status

from .. import schemas, settings
from ..auth import require_permission
from ..deps import (
    SearchParams,
    get_role_repository,
    get_search_params,
    get_user_authorizer,
    get_user_repository,
)
from ..errors import ForbiddenError
from ..object_store import measure
from ..repositories import RoleRepository, UserRepository
from ..seed import DEFAULT_ROLE
from ..services.user_authorizer import UserAuthorizer
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/users", tags=["Users"])
logger = logging.getLogger(__name__)

PRIVILEGED_FIELDS = {"role_id", "karma"}


@router.get("", response_model=list[schemas.User])
def list_users(
    params: SearchParams = Depends(get_search_params),
    users: UserRepository = Depends(get_user_repository),
) -> list[schemas.User]:
    """List users, highest karma first unless another order is asked for."""
    return [
        schemas.User.model_validate(u)
        for u in users.find_users(params.keywords, params.limit, params.order)
    ]


@router.get("/{id}", response_model=schemas.User)
def get_user(id: UUID, users: UserRepository = Depends(get_user_repository)) -> schemas.User:
    return schemas.User.model_validate(users.find_user(id))


@router.post("", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    caller: Caller = Depends(require_permission("users")),
    users: UserRepository = Depends(get_user_repository),
    roles: RoleRepository = Depends(get_role_repository),
    authorizer: UserAuthorizer = Depends(get_user_authorizer),
) -> schemas.User:
    """Create an account on someone's behalf. Unlike registration, no session is opened."""
    fields = payload.model_dump(exclude_none=True, exclude={"password"})
    fields["password_hash"] = authorizer.create_password_hash(payload.password)
    if "role_id" not in fields:
        fields["role_id"] = roles.find_role_by_name(DEFAULT_ROLE).id
    return schemas.User.model_validate(users.create_user(fields))


@router.patch("/{id}", response_model=schemas.User)
def update_user(
    id: UUID,
    payload: schemas.UserUpdate,
    caller: Caller = Depends(require_permission("users")),
    users: UserRepository = Depends(get_user_repository),
    authorizer: UserAuthorizer = Depends(get_user_authorizer),
) -> schemas.User:
    """Update a profile. Role and karma are only changed by whoever may manage all users."""
    fields = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"version"})
    privileged = PRIVILEGED_FIELDS.intersection(fields)
    if privileged and not authorizer.check_permissions(caller.user_id, caller.role_name, "users", "PATCH"):
        raise ForbiddenError(f"Not allowed to change {', '.join(sorted(privileged))}")
    return schemas.User.model_validate(users.update_user(id, fields, payload.version))


@router.put("/{id}/picture", response_model=schemas.User)
def upload_profile_picture(
    id: UUID,
    file: UploadFile = File(...),
    caller: Caller = Depends(require_permission("users", "PATCH")),
    users: UserRepository = Depends(get_user_repository),
) -> schemas.User:
    """Upload or replace the profile picture; pictures are capped at 5 MiB."""
    length = measure(file.file)
    user = users.upload_picture(id, file.file, length, file.content_type)
    return schemas.User.model_validate(user)


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_user(
    id: UUID,
    caller: Caller = Depends(require_permission("users")),
    users: UserRepository = Depends(get_user_repository),
) -> schemas.StatusMessage:
    users.delete_user(id)
    return schemas.StatusMessage(message=f"User {id} deleted")
