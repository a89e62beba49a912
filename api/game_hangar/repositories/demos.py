"""Demo repository over ``demo.demos``; the build and its thumbnail live in the object store."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Sequence

from sqlalchemy import select

from ..errors import ObjectNotFoundError, UpstreamError
from ..models import Demo
from ..object_store import ObjectStore, check_file_size
from ..policy import PolicyEngine
from .base import SqlRepository

logger = logging.getLogger(__name__)

THUMBNAIL_TIER = "picture"


def demo_object(demo_id: int) -> str:
    return f"demos/{demo_id}"


def demo_key(demo_id: int) -> str:
    return f"demo-{demo_id}"


def demo_thumbnail_key(demo_id: int) -> str:
    return f"demo-thumbnail-{demo_id}"


class DemoRepository(SqlRepository):
    def __init__(self, db, store: ObjectStore | None = None, policy: PolicyEngine | None = None):
        super().__init__(db, policy)
        self.store = store

    def _with_links(self, demo: Demo) -> Demo:
        """Resolve uploaded blobs into presigned links for the response."""
        if self.store is None:
            return demo
        for key_attr, link_attr in (("object_key", "file_link"), ("thumbnail_key", "thumbnail_link")):
            key = getattr(demo, key_attr)
            if not key:
                continue
            try:
                setattr(demo, link_attr, self.store.get_link(key))
            except ObjectNotFoundError:
                logger.warning(f"Demo {demo.id} points at missing object {key}")
        return demo

    def create_demo(self, fields: dict[str, Any], thread_id: int) -> Demo:
        """Persist a demo already bound to ``thread_id``; the owner gets PATCH and DELETE."""
        with self._transaction():
            demo = self._insert(Demo(**fields, thread_id=thread_id))
            self._grant_owner(demo.user_id, demo_object(demo.id))
        logger.info(f"Created demo {demo.id} bound to thread {thread_id}")
        return demo

    def get_demo(self, demo_id: int) -> Demo:
        """Fetch without counting a view."""
        return self._get(Demo, demo_id)

    def find_demo(self, demo_id: int) -> Demo:
        return self._with_links(self._get_viewed(Demo, demo_id))

    def find_demos(
        self, keywords: Sequence[str] | None = None, limit: int = 0, order: str | None = None
    ) -> list[Demo]:
        return [self._with_links(d) for d in self._find(Demo, keywords, limit, order)]

    def find_demo_by_thread(self, thread_id: int) -> Demo | None:
        return self.db.execute(select(Demo).where(Demo.thread_id == thread_id)).scalar_one_or_none()

    def update_demo(self, demo_id: int, fields: dict[str, Any], version: int | None = None) -> Demo:
        return self._with_links(self._update(Demo, demo_id, fields, version))

    def _upload(
        self, demo_id: int, key: str, column: str, data: BinaryIO, length: int, content_type: str | None
    ) -> Demo:
        self._get(Demo, demo_id)
        self.store.put(key, data, length, content_type)
        demo = self._update(Demo, demo_id, {column: key})
        logger.info(f"Stored {key} for demo {demo_id}")
        return self._with_links(demo)

    def upload_file(
        self,
        demo_id: int,
        data: BinaryIO,
        length: int,
        tier: str,
        content_type: str | None = None,
    ) -> Demo:
        """Store the playable build, capped by the uploader's tier."""
        check_file_size(length, tier)
        return self._upload(demo_id, demo_key(demo_id), "object_key", data, length, content_type)

    def upload_thumbnail(
        self, demo_id: int, data: BinaryIO, length: int, content_type: str | None = None
    ) -> Demo:
        """Store the thumbnail, capped like a picture."""
        check_file_size(length, THUMBNAIL_TIER)
        return self._upload(
            demo_id, demo_thumbnail_key(demo_id), "thumbnail_key", data, length, content_type
        )

    def delete_demo(self, demo_id: int) -> None:
        """Delete the row, then its blobs. Blob removal is best-effort."""
        demo = self._get(Demo, demo_id)
        keys = [k for k in (demo.object_key, demo.thumbnail_key) if k]
        with self._transaction():
            self._apply_delete(Demo, demo_id)
            self.policy.remove_permissions_for_object(demo_object(demo_id))
        logger.info(f"Deleted demo {demo_id}")

        for key in keys:
            try:
                self.store.delete(key)
            except (ObjectNotFoundError, UpstreamError) as e:
                logger.error(f"Failed to remove blob {key} of deleted demo {demo_id}: {e}")
