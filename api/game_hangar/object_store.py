"""S3-compatible object store for asset files and profile pictures."""

from __future__ import annotations

import logging
import os
import time
from datetime import timedelta
from typing import BinaryIO
from urllib.parse import urlparse

from minio import Minio, S3Error

from . import settings
from .errors import ObjectNotFoundError, ObjectTooLargeError, UpstreamError, ValidationFailed

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

# Upload caps per tier, in bytes
TIER_LIMITS: dict[str, int] = {
    "freetier": 50 * MIB,
    "paidtier": 150 * MIB,
    "admin": 150 * MIB,
    "picture": 5 * MIB,
}

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NotFound", "ResourceNotFound"}


def check_file_size(size: int, tier: str) -> None:
    """
    Reject uploads larger than the tier allows.

    Raises:
        ObjectTooLargeError: If ``size`` exceeds the cap of ``tier``.
        ValidationFailed: If ``tier`` is unknown.
    """
    cap = TIER_LIMITS.get(tier)
    if cap is None:
        raise ValidationFailed(f"Unknown upload tier: {tier}")
    if size > cap:
        raise ObjectTooLargeError(
            f"Object of {size} bytes exceeds the {tier} limit of {cap} bytes"
        )


def measure(data: BinaryIO) -> int:
    """Size of a seekable stream, leaving it rewound."""
    data.seek(0, os.SEEK_END)
    size = data.tell()
    data.seek(0)
    return size


class ObjectStore:
    """Keyed blobs in one bucket, with presigned GET links."""

    def __init__(
        self,
        client: Minio,
        bucket_name: str,
        link_ttl: timedelta | None = None,
        wait_seconds: float | None = None,
        poll_interval: float = 0.5,
    ):
        self.client = client
        self.bucket_name = bucket_name
        self.link_ttl = link_ttl or timedelta(minutes=settings.PRESIGNED_URL_TTL_MINUTES)
        self.wait_seconds = settings.OBJECT_WAIT_SECONDS if wait_seconds is None else wait_seconds
        self.poll_interval = poll_interval

    @classmethod
    def from_env(cls) -> "ObjectStore":
        """
        Build the client from ``AWS_*`` variables.

        Raises:
            RuntimeError: If a required variable is missing.
        """
        env = settings.require_env(
            "AWS_BUCKET_NAME",
            "AWS_BUCKET_ENDPOINT",
            "AWS_BUCKET_REGION",
            "AWS_ACCESS_KEY_ID",
            "AWS_SECRET_ACCESS_KEY",
        )
        endpoint = env["AWS_BUCKET_ENDPOINT"]
        secure = settings.AWS_BUCKET_SECURE
        parsed = urlparse(endpoint)
        if parsed.scheme:
            # Minio wants host[:port]; the scheme decides TLS
            secure = parsed.scheme == "https"
            endpoint = parsed.netloc
        client = Minio(
            endpoint,
            access_key=env["AWS_ACCESS_KEY_ID"],
            secret_key=env["AWS_SECRET_ACCESS_KEY"],
            region=env["AWS_BUCKET_REGION"],
            secure=secure,
        )
        return cls(client, env["AWS_BUCKET_NAME"])

    def ensure_bucket(self) -> None:
        """Create the bucket when it does not exist. Any failure is fatal."""
        try:
            if not self.client.bucket_exists(self.bucket_name):
                self.client.make_bucket(self.bucket_name)
                logger.info(f"Created bucket {self.bucket_name}")
        except S3Error as e:
            raise UpstreamError(f"Bucket {self.bucket_name} is unavailable: {e.message}") from e

    def exists(self, key: str) -> bool:
        try:
            self.client.stat_object(self.bucket_name, key)
            return True
        except S3Error as e:
            if e.code in _MISSING_CODES:
                return False
            raise UpstreamError(f"ObjectStore.exists({key}): {e.message}") from e

    def _wait(self, key: str, present: bool) -> bool:
        deadline = time.monotonic() + self.wait_seconds
        while True:
            if self.exists(key) == present:
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(self.poll_interval)

    def put(self, key: str, data: BinaryIO, length: int, content_type: str | None = None) -> None:
        """
        Upload ``data`` under ``key`` and wait until it is visible.

        Raises:
            ObjectNotFoundError: If the object does not show up in time.
            UpstreamError: If the store rejects the upload.
        """
        try:
            self.client.put_object(
                self.bucket_name,
                key,
                data,
                length=length,
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as e:
            raise UpstreamError(f"ObjectStore.put({key}): {e.message}") from e
        if not self._wait(key, present=True):
            raise ObjectNotFoundError()
        logger.info(f"Stored object {key} ({length} bytes)")

    def get_link(self, key: str) -> str:
        """
        Presigned GET URL for ``key``, valid for ``link_ttl``.

        Raises:
            ObjectNotFoundError: If there is no such object.
        """
        if not self.exists(key):
            raise ObjectNotFoundError()
        try:
            return self.client.presigned_get_object(self.bucket_name, key, expires=self.link_ttl)
        except S3Error as e:
            raise UpstreamError(f"ObjectStore.get_link({key}): {e.message}") from e

    def delete(self, key: str) -> None:
        """
        Remove ``key`` and wait until it is gone.

        Raises:
            ObjectNotFoundError: If there is no such object.
        """
        if not self.exists(key):
            raise ObjectNotFoundError()
        try:
            self.client.remove_object(self.bucket_name, key)
        except S3Error as e:
            raise UpstreamError(f"ObjectStore.delete({key}): {e.message}") from e
        if not self._wait(key, present=False):
            raise UpstreamError(f"Object {key} still exists after delete")
        logger.info(f"Deleted object {key}")


_store: ObjectStore | None = None


def init_object_store() -> ObjectStore:
    """Create the process-wide store and its bucket."""
    global _store
    store = ObjectStore.from_env()
    store.ensure_bucket()
    _store = store
    return store


def get_object_store() -> ObjectStore:
    """FastAPI dependency; tests override it with an in-memory store."""
    global _store
    if _store is None:
        _store = init_object_store()
    return _store
