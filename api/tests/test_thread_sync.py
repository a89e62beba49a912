"""ThreadSyncer ordering and compensation, against in-memory repositories."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from game_hangar.errors import ConflictError, NotFoundError, UpstreamError
from game_hangar.services.thread_sync import ThreadSyncer

DEMO_TOPIC = 7


class FakeForum:
    def __init__(self) -> None:
        self.threads: dict[int, dict] = {}
        self.fail_delete = False
        self._next = 1

    def create_thread(self, fields):
        thread_id = self._next
        self._next += 1
        self.threads[thread_id] = dict(fields)
        return SimpleNamespace(id=thread_id, **fields)

    def update_thread(self, thread_id, fields, version=None):
        if thread_id not in self.threads:
            raise NotFoundError()
        self.threads[thread_id].update(fields)

    def delete_thread(self, thread_id):
        if self.fail_delete:
            raise UpstreamError("forum is down")
        if self.threads.pop(thread_id, None) is None:
            raise NotFoundError()


class FakeDemos:
    def __init__(self) -> None:
        self.demos: dict[int, SimpleNamespace] = {}
        self.fail_create: Exception | None = None

    def create_demo(self, fields, thread_id):
        if self.fail_create:
            raise self.fail_create
        demo = SimpleNamespace(id=len(self.demos) + 1, thread_id=thread_id, **fields)
        self.demos[demo.id] = demo
        return demo

    def get_demo(self, demo_id):
        try:
            return self.demos[demo_id]
        except KeyError:
            raise NotFoundError() from None

    def update_demo(self, demo_id, fields, version=None):
        demo = self.get_demo(demo_id)
        for name, value in fields.items():
            setattr(demo, name, value)
        demo.updated_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
        return demo

    def delete_demo(self, demo_id):
        self.get_demo(demo_id)
        del self.demos[demo_id]


@pytest.fixture
def forum() -> FakeForum:
    return FakeForum()


@pytest.fixture
def demos() -> FakeDemos:
    return FakeDemos()


@pytest.fixture
def syncer(forum, demos) -> ThreadSyncer:
    return ThreadSyncer(forum, demos, demo_topic_id=DEMO_TOPIC)


def _demo() -> dict:
    return {"title": "Rocket", "link": "https://e", "user_id": uuid.uuid4(), "tags": ["space"]}


def test_publish_creates_thread_first(syncer, forum, demos):
    demo = syncer.publish(_demo())
    thread = forum.threads[demo.thread_id]
    assert thread["title"] == "Rocket"
    assert thread["topic_id"] == DEMO_TOPIC
    assert thread["tags"] == ["space"]
    assert thread["upvotes"] == 0


def test_publish_stamps_thread_and_demo_alike(syncer, forum):
    demo = syncer.publish(_demo())
    thread = forum.threads[demo.thread_id]
    assert thread["created_at"] == demo.created_at
    assert thread["updated_at"] == demo.updated_at == demo.created_at
    assert demo.created_at.tzinfo is not None


def test_failed_demo_create_removes_thread(syncer, forum, demos):
    demos.fail_create = ConflictError("duplicate")
    with pytest.raises(ConflictError):
        syncer.publish(_demo())
    assert forum.threads == {}


def test_failed_compensation_keeps_original_error(syncer, forum, demos):
    demos.fail_create = ConflictError("duplicate")
    forum.fail_delete = True
    with pytest.raises(ConflictError):
        syncer.publish(_demo())
    assert len(forum.threads) == 1


def test_update_projects_patch_onto_thread(syncer, forum):
    demo = syncer.publish(_demo())
    syncer.update(demo.id, {"title": "Rocket 2", "link": "https://f", "upvotes": 4})

    thread = forum.threads[demo.thread_id]
    assert thread["title"] == "Rocket 2"
    assert thread["upvotes"] == 4
    assert thread["updated_at"] == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert "link" not in thread


def test_patch_thread_ignores_non_thread_fields(syncer, forum):
    demo = syncer.publish(_demo())
    before = dict(forum.threads[demo.thread_id])
    syncer.patch_thread(demo.id, {"link": "https://g", "description": "new"})
    assert forum.threads[demo.thread_id] == before


def test_retract_deletes_thread_then_demo(syncer, forum, demos):
    demo = syncer.publish(_demo())
    syncer.retract(demo.id)
    assert forum.threads == {}
    assert demos.demos == {}


def test_retract_tolerates_missing_thread(syncer, forum, demos):
    demo = syncer.publish(_demo())
    forum.threads.clear()
    syncer.retract(demo.id)
    assert demos.demos == {}


def test_retract_missing_demo(syncer):
    with pytest.raises(NotFoundError):
        syncer.retract(42)
