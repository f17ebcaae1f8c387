from __future__ import annotations

import re
import tempfile
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import boto3

from dealflow.core.config import get_settings
from dealflow.errors import ValidationError

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


@dataclass(slots=True)
class PresignedUrl:
    url: str
    key: str


class ObjectStore(Protocol):
    def upload_url(self, key: str, content_type: str) -> str:
        ...

    def download_url(self, key: str) -> str:
        ...


class LocalObjectStore:
    """Filesystem store used for local runs and tests.

    URLs point at the API's own upload routes, which read and write the
    bytes under ``base_dir``.
    """

    url_prefix = "/api/uploads/local"

    def __init__(self, base_dir: str | None = None) -> None:
        self._base = Path(base_dir) if base_dir else Path(tempfile.gettempdir()) / "dealflow_objects"
        self._base.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        path = (self._base / key).resolve()
        if not path.is_relative_to(self._base.resolve()):
            raise ValidationError(f"Invalid object key: {key}")
        return path

    def store_bytes(self, key: str, content: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def get_bytes(self, key: str) -> bytes:
        path = self.path_for(key)
        if not path.exists():
            raise FileNotFoundError(f"object not found: {key}")
        return path.read_bytes()

    def upload_url(self, key: str, content_type: str) -> str:
        return f"{self.url_prefix}/{key}"

    def download_url(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"


class S3ObjectStore:
    def __init__(self, bucket: str, *, region: str, endpoint_url: str | None, expires_in: int) -> None:
        if not bucket:
            raise ValueError("storage_bucket is required for the s3 storage backend")
        self._bucket = bucket
        self._expires_in = expires_in
        client_kwargs: dict[str, str] = {"region_name": region}
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **client_kwargs)

    def upload_url(self, key: str, content_type: str) -> str:
        return self._client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self._bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=self._expires_in,
        )

    def download_url(self, key: str) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=self._expires_in,
        )


@lru_cache
def get_object_store() -> ObjectStore:
    settings = get_settings()
    if settings.storage_backend.lower() == "s3":
        return S3ObjectStore(
            settings.storage_bucket,
            region=settings.storage_region,
            endpoint_url=settings.storage_endpoint_url,
            expires_in=settings.storage_url_expiry_seconds,
        )
    return LocalObjectStore(settings.storage_local_dir)


def key_owner(key: str) -> str | None:
    """Owner segment of a key built by ``build_object_key``."""
    parts = key.split("/")
    return parts[1] if len(parts) >= 3 else None


def build_object_key(owner: str, file_name: str, folder: str | None = None) -> str:
    sanitized = _UNSAFE_NAME_RE.sub("_", file_name)
    timestamp = int(time.time() * 1000)
    return f"{folder or 'uploads'}/{owner}/{timestamp}-{sanitized}"


def presign(
    owner: str,
    *,
    file_name: str | None,
    file_type: str | None = None,
    folder: str | None = None,
    action: str = "upload",
    key: str | None = None,
    store: ObjectStore | None = None,
) -> PresignedUrl:
    if not file_name and not key:
        raise ValidationError.missing(["file_name"])
    if action not in {"upload", "download"}:
        raise ValidationError(f"Unsupported storage action: {action}")

    store = store or get_object_store()
    object_key = key or build_object_key(owner, file_name or "", folder)
    if action == "download":
        return PresignedUrl(url=store.download_url(object_key), key=object_key)
    return PresignedUrl(url=store.upload_url(object_key, file_type or "application/octet-stream"), key=object_key)
