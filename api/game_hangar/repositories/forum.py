"""Forum repository: topics, threads and messages in the ``forum`` schema.

Deleting a topic cascades to its threads, and a thread to its messages,
through the foreign keys.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import func, select

from ..errors import ConflictError
from ..models import DemoTopic, Message, Thread, Topic
from .base import SqlRepository

logger = logging.getLogger(__name__)


def topic_object(topic_id: int) -> str:
    return f"topics/{topic_id}"


def thread_object(thread_id: int) -> str:
    return f"threads/{thread_id}"


def message_object(message_id: int) -> str:
    return f"messages/{message_id}"


class ForumRepository(SqlRepository):
    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def create_topic(self, fields: dict[str, Any], owner_id: Any = None) -> Topic:
        with self._transaction():
            topic = self._insert(Topic(**fields))
            self._grant_owner(owner_id, topic_object(topic.id))
        logger.info(f"Created topic {topic.id} ({topic.name})")
        return topic

    def find_topic(self, topic_id: int) -> Topic:
        return self._get(Topic, topic_id)

    def find_topics(
        self, keywords: Sequence[str] | None = None, limit: int = 0, order: str | None = None
    ) -> list[Topic]:
        return self._find(Topic, keywords, limit, order)

    def find_demo_topic_id(self) -> int | None:
        """Id of the topic demo threads are posted to, or None before seeding."""
        return self.db.execute(select(func.min(DemoTopic.topic_id))).scalar_one()

    def ensure_demo_topic(self, name: str) -> int:
        """
        Return the recorded demo topic id, recording one first if needed.

        A topic already called ``name`` is adopted; otherwise one is created.
        The topic is tracked by id from then on, so renaming it is harmless.
        """
        topic_id = self.find_demo_topic_id()
        if topic_id is not None:
            return topic_id
        with self._transaction():
            topic_id = self.db.execute(
                select(Topic.id).where(Topic.name == name).order_by(Topic.id).limit(1)
            ).scalar_one_or_none()
            if topic_id is None:
                topic_id = self._insert(Topic(name=name)).id
            self.db.add(DemoTopic(topic_id=topic_id))
            self.db.flush()
        logger.info(f"Recorded topic {topic_id} ({name}) as the demo topic")
        return topic_id

    def update_topic(self, topic_id: int, fields: dict[str, Any], version: int) -> Topic:
        return self._update(Topic, topic_id, fields, version)

    def delete_topic(self, topic_id: int) -> None:
        if topic_id == self.find_demo_topic_id():
            raise ConflictError(f"Topic {topic_id} holds demo threads and cannot be deleted")
        thread_ids = self.db.execute(
            select(Thread.id).where(Thread.topic_id == topic_id)
        ).scalars().all()
        message_ids = self.db.execute(
            select(Message.id).join(Thread, Message.thread_id == Thread.id).where(
                Thread.topic_id == topic_id
            )
        ).scalars().all()
        with self._transaction():
            self._apply_delete(Topic, topic_id)
            self.policy.remove_permissions_for_object(topic_object(topic_id))
            for thread_id in thread_ids:
                self.policy.remove_permissions_for_object(thread_object(thread_id))
            for message_id in message_ids:
                self.policy.remove_permissions_for_object(message_object(message_id))
        logger.info(f"Deleted topic {topic_id} with {len(thread_ids)} thread(s)")

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    def create_thread(self, fields: dict[str, Any]) -> Thread:
        self._get(Topic, fields["topic_id"])
        with self._transaction():
            thread = self._insert(Thread(**fields))
            self._grant_owner(thread.user_id, thread_object(thread.id))
        logger.info(f"Created thread {thread.id} in topic {thread.topic_id}")
        return thread

    def find_thread(self, thread_id: int) -> Thread:
        return self._get_viewed(Thread, thread_id)

    def find_threads(
        self, keywords: Sequence[str] | None = None, limit: int = 0, order: str | None = None
    ) -> list[Thread]:
        return self._find(Thread, keywords, limit, order)

    def update_thread(self, thread_id: int, fields: dict[str, Any], version: int | None = None) -> Thread:
        return self._update(Thread, thread_id, fields, version)

    def delete_thread(self, thread_id: int) -> None:
        message_ids = self.db.execute(
            select(Message.id).where(Message.thread_id == thread_id)
        ).scalars().all()
        with self._transaction():
            self._apply_delete(Thread, thread_id)
            self.policy.remove_permissions_for_object(thread_object(thread_id))
            for message_id in message_ids:
                self.policy.remove_permissions_for_object(message_object(message_id))
        logger.info(f"Deleted thread {thread_id}")

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def create_message(self, fields: dict[str, Any]) -> Message:
        self._get(Thread, fields["thread_id"])
        with self._transaction():
            message = self._insert(Message(**fields))
            self._grant_owner(message.user_id, message_object(message.id))
        return message

    def find_message(self, message_id: int) -> Message:
        return self._get_viewed(Message, message_id)

    def find_messages(
        self, keywords: Sequence[str] | None = None, limit: int = 0, order: str | None = None
    ) -> list[Message]:
        return self._find(Message, keywords, limit, order)

    def find_thread_messages(self, thread_id: int, limit: int = 0) -> list[Message]:
        """Messages of one thread, oldest first; 404 when the thread is missing."""
        self._get(Thread, thread_id)
        return self._find(Message, None, limit, None, where=[Message.thread_id == thread_id])

    def update_message(
        self, message_id: int, fields: dict[str, Any], version: int | None = None
    ) -> Message:
        return self._update(Message, message_id, fields, version)

    def delete_message(self, message_id: int) -> None:
        with self._transaction():
            self._apply_delete(Message, message_id)
            self.policy.remove_permissions_for_object(message_object(message_id))
