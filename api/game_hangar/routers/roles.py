"""Role endpoints. A role's name is its subject in the policy engine."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from .. import schemas, settings
from ..auth import require_permission
from ..deps import SearchParams, get_role_repository, get_search_params
from ..repositories import RoleRepository
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/roles", tags=["Roles"])


@router.get("", response_model=list[schemas.Role])
def list_roles(
    params: SearchParams = Depends(get_search_params),
    roles: RoleRepository = Depends(get_role_repository),
) -> list[schemas.Role]:
    return [
        schemas.Role.model_validate(r)
        for r in roles.find_roles(params.keywords, params.limit, params.order)
    ]


@router.get("/{id}", response_model=schemas.Role)
def get_role(id: UUID, roles: RoleRepository = Depends(get_role_repository)) -> schemas.Role:
    return schemas.Role.model_validate(roles.find_role(id))


@router.post("", response_model=schemas.Role, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: schemas.RoleCreate,
    caller: Caller = Depends(require_permission("roles")),
    roles: RoleRepository = Depends(get_role_repository),
) -> schemas.Role:
    return schemas.Role.model_validate(roles.create_role(payload.model_dump()))


@router.patch("/{id}", response_model=schemas.Role)
def update_role(
    id: UUID,
    payload: schemas.RoleUpdate,
    caller: Caller = Depends(require_permission("roles")),
    roles: RoleRepository = Depends(get_role_repository),
) -> schemas.Role:
    """Rename a role; its permissions and groupings follow the new name."""
    fields = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"version"})
    return schemas.Role.model_validate(roles.update_role(id, fields, payload.version))


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_role(
    id: UUID,
    caller: Caller = Depends(require_permission("roles")),
    roles: RoleRepository = Depends(get_role_repository),
) -> schemas.StatusMessage:
    """Delete an unused role together with every policy tuple naming it."""
    roles.delete_role(id)
    return schemas.StatusMessage(message=f"Role {id} deleted")
