"""Asset repository: rows in ``asset.assets``, blobs in the object store."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Sequence

from ..errors import ObjectNotFoundError, UpstreamError
from ..models import Asset
from ..object_store import ObjectStore, check_file_size
from ..policy import PolicyEngine
from .base import SqlRepository

logger = logging.getLogger(__name__)


def asset_object(asset_id: int) -> str:
    return f"assets/{asset_id}"


def asset_key(asset_id: int) -> str:
    return f"asset-{asset_id}"


class AssetRepository(SqlRepository):
    def __init__(self, db, store: ObjectStore, policy: PolicyEngine | None = None):
        super().__init__(db, policy)
        self.store = store

    def _with_link(self, asset: Asset) -> Asset:
        """Resolve an uploaded blob into a presigned link for the response."""
        if asset.object_key:
            try:
                asset.presigned_link = self.store.get_link(asset.object_key)
            except ObjectNotFoundError:
                logger.warning(f"Asset {asset.id} points at missing object {asset.object_key}")
        return asset

    def create_asset(self, fields: dict[str, Any], owner_id: Any = None) -> Asset:
        with self._transaction():
            asset = self._insert(Asset(**fields))
            self._grant_owner(owner_id, asset_object(asset.id))
        logger.info(f"Created asset {asset.id}")
        return asset

    def find_asset(self, asset_id: int) -> Asset:
        return self._with_link(self._get(Asset, asset_id))

    def find_assets(
        self, keywords: Sequence[str] | None = None, limit: int = 0, order: str | None = None
    ) -> list[Asset]:
        return [self._with_link(a) for a in self._find(Asset, keywords, limit, order)]

    def update_asset(self, asset_id: int, fields: dict[str, Any], version: int) -> Asset:
        return self._with_link(self._update(Asset, asset_id, fields, version))

    def upload_file(
        self,
        asset_id: int,
        data: BinaryIO,
        length: int,
        tier: str,
        content_type: str | None = None,
    ) -> Asset:
        """Store the asset's blob under its key and record the key on the row."""
        check_file_size(length, tier)
        self._get(Asset, asset_id)
        key = asset_key(asset_id)
        self.store.put(key, data, length, content_type)
        asset = self._update(Asset, asset_id, {"object_key": key})
        return self._with_link(asset)

    def delete_asset(self, asset_id: int) -> None:
        """Delete the row, then the blob. Blob removal is best-effort."""
        key = self._get(Asset, asset_id).object_key
        with self._transaction():
            self._apply_delete(Asset, asset_id)
            self.policy.remove_permissions_for_object(asset_object(asset_id))
        logger.info(f"Deleted asset {asset_id}")

        if key:
            try:
                self.store.delete(key)
            except (ObjectNotFoundError, UpstreamError) as e:
                logger.error(f"Failed to remove blob {key} of deleted asset {asset_id}: {e}")
