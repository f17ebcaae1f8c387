from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from dealflow.core.config import get_settings
from dealflow.errors import ValidationError
from dealflow.storage import LocalObjectStore, S3ObjectStore, build_object_key, get_object_store, presign


@pytest.fixture(autouse=True)
def reset_store() -> Generator[None, None, None]:
    get_settings.cache_clear()
    get_object_store.cache_clear()
    yield
    get_settings.cache_clear()
    get_object_store.cache_clear()


def test_object_key_sanitises_file_name() -> None:
    key = build_object_key("user-1", "roof photo (1).jpg")
    folder, owner, name = key.split("/")
    assert folder == "uploads"
    assert owner == "user-1"
    assert name.endswith("-roof_photo__1_.jpg")
    assert build_object_key("user-1", "a.pdf", "contracts").startswith("contracts/user-1/")


def test_local_presign_round_trips_bytes(tmp_path: Path) -> None:
    store = LocalObjectStore(str(tmp_path))
    upload = presign("user-1", file_name="receipt.pdf", file_type="application/pdf", store=store)
    assert upload.url == f"/api/uploads/local/{upload.key}"

    store.store_bytes(upload.key, b"%PDF")
    download = presign("user-1", file_name=None, action="download", key=upload.key, store=store)
    assert download.key == upload.key
    assert store.get_bytes(download.key) == b"%PDF"


def test_local_store_reports_missing_object(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        LocalObjectStore(str(tmp_path)).get_bytes("uploads/nothing.txt")


def test_presign_validates_input(tmp_path: Path) -> None:
    store = LocalObjectStore(str(tmp_path))
    with pytest.raises(ValidationError) as exc_info:
        presign("user-1", file_name=None, store=store)
    assert exc_info.value.missing_fields == ["file_name"]

    with pytest.raises(ValidationError):
        presign("user-1", file_name="a.txt", action="delete", store=store)


def test_s3_store_signs_urls(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test-key")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test-secret")
    store = S3ObjectStore("deal-files", region="us-east-1", endpoint_url="http://localhost:9000", expires_in=60)

    result = presign("user-1", file_name="photo.jpg", file_type="image/jpeg", store=store)
    assert result.key.startswith("uploads/user-1/")
    assert "deal-files" in result.url
    assert "Signature" in result.url


def test_s3_store_requires_bucket() -> None:
    with pytest.raises(ValueError):
        S3ObjectStore("", region="us-east-1", endpoint_url=None, expires_in=60)


def test_settings_select_backend(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_LOCAL_DIR", str(tmp_path))
    assert isinstance(get_object_store(), LocalObjectStore)


def test_local_store_rejects_keys_outside_base_dir(tmp_path: Path) -> None:
    store = LocalObjectStore(str(tmp_path / "objects"))
    with pytest.raises(ValidationError):
        store.store_bytes("../escape.txt", b"x")
