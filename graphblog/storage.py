"""
Image storage for post uploads: local disk, S3-compatible (Tencent COS) and
in-memory testing.
"""

from __future__ import annotations

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/png", "image/jpg", "image/jpeg"})


class ImageStorage(Protocol):
    """Defines the operations the API needs from image storage."""

    def store(self, data: bytes, suggested_name: str) -> str:
        ...

    def delete(self, path: str) -> None:
        ...


def is_allowed_image(content_type: Optional[str]) -> bool:
    return (content_type or "").lower() in ALLOWED_IMAGE_TYPES


def generate_filename(suggested_name: str, now: Optional[datetime] = None) -> str:
    """Timestamp-prefixed name; directory parts of the suggestion are dropped."""
    stamp = (now or datetime.now(timezone.utc)).isoformat(timespec="microseconds")
    stamp = stamp.replace("+00:00", "Z").replace(":", "-")
    base = os.path.basename((suggested_name or "").replace("\\", "/")).strip()
    return f"{stamp}-{base or 'upload'}"


def discard_image(storage: ImageStorage, path: Optional[str]) -> None:
    """Best-effort delete; failures are logged and never raised."""
    if not path:
        return
    try:
        storage.delete(path)
    except Exception as exc:
        logger.warning("Could not delete image %s: %s", path, exc)


@dataclass
class LocalImageStorage:
    """Writes uploads under ``directory``; paths are returned relative to its parent."""

    directory: str = "images"

    def __post_init__(self):
        os.makedirs(self.directory, exist_ok=True)

    @property
    def _prefix(self) -> str:
        return os.path.basename(os.path.normpath(self.directory))

    def _resolve(self, path: str) -> str:
        # Only files directly inside the storage directory can be touched.
        name = os.path.basename(path.replace("\\", "/"))
        if not name:
            raise FileNotFoundError(path)
        return os.path.join(self.directory, name)

    def store(self, data: bytes, suggested_name: str) -> str:
        filename = generate_filename(suggested_name)
        with open(os.path.join(self.directory, filename), "wb") as f:
            f.write(data)
        logger.info("Stored image %s (%d bytes)", filename, len(data))
        return f"{self._prefix}/{filename}"

    def delete(self, path: str) -> None:
        os.remove(self._resolve(path))
        logger.info("Deleted image %s", path)


@dataclass
class InMemoryImageStorage:
    """Test double for image storage."""

    prefix: str = "images"
    stored_objects: dict = field(default_factory=dict)

    def store(self, data: bytes, suggested_name: str) -> str:
        path = f"{self.prefix}/{generate_filename(suggested_name)}"
        self.stored_objects[path] = data
        return path

    def delete(self, path: str) -> None:
        if path not in self.stored_objects:
            raise FileNotFoundError(path)
        del self.stored_objects[path]


@dataclass
class CosImageStorage:
    """
    S3-compatible image storage for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    prefix: str = "images"

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def store(self, data: bytes, suggested_name: str) -> str:
        key = f"{self.prefix}/{generate_filename(suggested_name)}"
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=mimetypes.guess_type(key)[0] or "application/octet-stream",
        )
        return key

    def delete(self, path: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=path)
