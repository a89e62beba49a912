"""Asset catalogue endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status

from .. import schemas, settings
from ..auth import require_permission, upload_tier
from ..deps import SearchParams, get_asset_repository, get_search_params
from ..object_store import measure
from ..repositories import AssetRepository
from ..services.user_identifier import Caller

router = APIRouter(prefix=f"{settings.API_PREFIX}/assets", tags=["Assets"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[schemas.Asset])
def list_assets(
    params: SearchParams = Depends(get_search_params),
    assets: AssetRepository = Depends(get_asset_repository),
) -> list[schemas.Asset]:
    return [
        schemas.Asset.model_validate(a)
        for a in assets.find_assets(params.keywords, params.limit, params.order)
    ]


@router.get("/{id}", response_model=schemas.Asset)
def get_asset(id: int, assets: AssetRepository = Depends(get_asset_repository)) -> schemas.Asset:
    return schemas.Asset.model_validate(assets.find_asset(id))


@router.post("", response_model=schemas.Asset, status_code=status.HTTP_201_CREATED)
def create_asset(
    payload: schemas.AssetCreate,
    caller: Caller = Depends(require_permission("assets")),
    assets: AssetRepository = Depends(get_asset_repository),
) -> schemas.Asset:
    asset = assets.create_asset(payload.model_dump(exclude_none=True), owner_id=caller.user_id)
    return schemas.Asset.model_validate(asset)


@router.patch("/{id}", response_model=schemas.Asset)
def update_asset(
    id: int,
    payload: schemas.AssetUpdate,
    caller: Caller = Depends(require_permission("assets")),
    assets: AssetRepository = Depends(get_asset_repository),
) -> schemas.Asset:
    fields = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"version"})
    return schemas.Asset.model_validate(assets.update_asset(id, fields, payload.version))


@router.put("/{id}/file", response_model=schemas.Asset)
def upload_asset_file(
    id: int,
    file: UploadFile = File(...),
    caller: Caller = Depends(require_permission("assets", "PATCH")),
    assets: AssetRepository = Depends(get_asset_repository),
) -> schemas.Asset:
    """
    Upload or replace the downloadable blob of an asset.

    The size cap depends on the caller's role.
    """
    length = measure(file.file)
    asset = assets.upload_file(id, file.file, length, upload_tier(caller), file.content_type)
    return schemas.Asset.model_validate(asset)


@router.delete("/{id}", response_model=schemas.StatusMessage)
def delete_asset(
    id: int,
    caller: Caller = Depends(require_permission("assets")),
    assets: AssetRepository = Depends(get_asset_repository),
) -> schemas.StatusMessage:
    assets.delete_asset(id)
    return schemas.StatusMessage(message=f"Asset {id} deleted")
