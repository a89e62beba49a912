"""Keeps every demo bound to exactly one forum thread.

The demo row and its thread live in different schemas and are written in
separate transactions. Ordering and compensation keep them in step:

* publish: the thread is created first and its id stamped into the demo;
  if the demo then fails to persist, the thread is deleted again;
* update: the demo is updated, then its patch is projected onto the thread;
* retract: the thread is deleted first (a missing thread is fine, so a
  retry after a failed demo delete is harmless), then the demo.

Compensation failures are logged and never replace the original error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..errors import NotFoundError
from ..models import Demo
from ..repositories.demos import DemoRepository
from ..repositories.forum import ForumRepository

logger = logging.getLogger(__name__)

# Demo fields mirrored onto the thread
THREAD_FIELDS = ("title", "updated_at", "upvotes", "downvotes", "tags")


class ThreadSyncer:
    def __init__(
        self,
        forum: ForumRepository,
        demos: DemoRepository,
        demo_topic_id: int,
    ):
        self.forum = forum
        self.demos = demos
        self.demo_topic_id = demo_topic_id

    def post_thread(self, demo: dict[str, Any]) -> int:
        """Create the thread representing ``demo`` and return its id."""
        fields = {
            "title": demo["title"],
            "user_id": demo["user_id"],
            "topic_id": self.demo_topic_id,
            "tags": demo.get("tags"),
            "upvotes": demo.get("upvotes") or 0,
            "downvotes": demo.get("downvotes") or 0,
        }
        # Same timestamps as the demo when the caller stamped them
        fields.update({k: demo[k] for k in ("created_at", "updated_at") if demo.get(k) is not None})
        return self.forum.create_thread(fields).id

    def patch_thread(self, demo_id: int, patch: dict[str, Any], thread_id: int | None = None) -> None:
        """Project a demo patch onto the demo's thread."""
        fields = {k: patch[k] for k in THREAD_FIELDS if patch.get(k) is not None}
        if not fields:
            return
        if thread_id is None:
            thread_id = self.demos.get_demo(demo_id).thread_id
        self.forum.update_thread(thread_id, fields)

    def publish(self, demo: dict[str, Any]) -> Demo:
        """Create the demo together with its thread."""
        now = datetime.now(timezone.utc)
        demo = {**demo, "created_at": now, "updated_at": now}
        thread_id = self.post_thread(demo)
        try:
            return self.demos.create_demo(demo, thread_id)
        except Exception:
            self._compensate_thread(thread_id)
            raise

    def update(self, demo_id: int, patch: dict[str, Any], version: int | None = None) -> Demo:
        demo = self.demos.update_demo(demo_id, patch, version)
        self.patch_thread(demo.id, {**patch, "updated_at": demo.updated_at}, demo.thread_id)
        return demo

    def retract(self, demo_id: int) -> None:
        """Delete the demo's thread, then the demo."""
        demo = self.demos.get_demo(demo_id)
        thread_id = demo.thread_id
        try:
            self.forum.delete_thread(thread_id)
        except NotFoundError:
            logger.warning(f"Thread {thread_id} of demo {demo_id} was already gone")
        self.demos.delete_demo(demo_id)

    def _compensate_thread(self, thread_id: int) -> None:
        try:
            self.forum.delete_thread(thread_id)
            logger.warning(f"Removed orphan thread {thread_id} after failed demo create")
        except Exception as e:
            logger.error(f"Failed to remove orphan thread {thread_id}: {e}")
