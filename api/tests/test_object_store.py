from __future__ import annotations

import io
from datetime import timedelta

import pytest
from minio import S3Error

from game_hangar.errors import ObjectNotFoundError, ObjectTooLargeError, UpstreamError, ValidationFailed
from game_hangar.object_store import MIB, ObjectStore, check_file_size, measure


def _s3_error(code: str) -> S3Error:
    return S3Error(
        code=code,
        message=code,
        resource="/bucket/key",
        request_id="req",
        host_id="host",
        response=None,
    )


class FakeMinio:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.buckets: set[str] = set()

    def bucket_exists(self, bucket_name):
        return bucket_name in self.buckets

    def make_bucket(self, bucket_name):
        self.buckets.add(bucket_name)

    def stat_object(self, bucket_name, key):
        if key not in self.objects:
            raise _s3_error("NoSuchKey")
        return object()

    def put_object(self, bucket_name, key, data, length, content_type=None):
        self.objects[key] = data.read(length)

    def presigned_get_object(self, bucket_name, key, expires):
        return f"https://s3.example.com/{bucket_name}/{key}?expires={int(expires.total_seconds())}"

    def remove_object(self, bucket_name, key):
        self.objects.pop(key, None)


class BrokenMinio(FakeMinio):
    def stat_object(self, bucket_name, key):
        raise _s3_error("AccessDenied")

    def bucket_exists(self, bucket_name):
        raise _s3_error("AccessDenied")


@pytest.fixture
def store() -> ObjectStore:
    return ObjectStore(FakeMinio(), "hangar", link_ttl=timedelta(minutes=5), wait_seconds=0)


def test_file_size_caps():
    check_file_size(50 * MIB, "freetier")
    with pytest.raises(ObjectTooLargeError):
        check_file_size(51 * MIB, "freetier")
    check_file_size(150 * MIB, "paidtier")
    with pytest.raises(ObjectTooLargeError):
        check_file_size(150 * MIB + 1, "admin")
    with pytest.raises(ObjectTooLargeError):
        check_file_size(6 * MIB, "picture")


def test_unknown_tier():
    with pytest.raises(ValidationFailed):
        check_file_size(1, "platinum")


def test_measure_rewinds():
    data = io.BytesIO(b"12345")
    data.read(2)
    assert measure(data) == 5
    assert data.read() == b"12345"


def test_put_link_delete(store: ObjectStore):
    store.put("asset-1", io.BytesIO(b"blob"), 4)
    assert store.exists("asset-1")
    assert store.get_link("asset-1") == "https://s3.example.com/hangar/asset-1?expires=300"

    store.delete("asset-1")
    assert not store.exists("asset-1")


def test_missing_object(store: ObjectStore):
    with pytest.raises(ObjectNotFoundError):
        store.get_link("nope")
    with pytest.raises(ObjectNotFoundError):
        store.delete("nope")


def test_ensure_bucket_creates_once(store: ObjectStore):
    store.ensure_bucket()
    store.ensure_bucket()
    assert store.client.buckets == {"hangar"}


def test_store_failures_are_upstream():
    broken = ObjectStore(BrokenMinio(), "hangar", wait_seconds=0)
    with pytest.raises(UpstreamError):
        broken.exists("asset-1")
    with pytest.raises(UpstreamError):
        broken.ensure_bucket()


def test_put_times_out_when_object_never_appears():
    class BlackHole(FakeMinio):
        def put_object(self, bucket_name, key, data, length, content_type=None):
            pass

    store = ObjectStore(BlackHole(), "hangar", wait_seconds=0)
    with pytest.raises(ObjectNotFoundError):
        store.put("asset-2", io.BytesIO(b"x"), 1)
