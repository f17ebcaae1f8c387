from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from dealflow import storage
from dealflow.api.deps import get_caller
from dealflow.errors import NotFoundError
from dealflow.platform.security import Caller, ResourceAction, ResourceKind, access_guard


router = APIRouter(prefix="/api/uploads", tags=["uploads"])


class PresignRequest(BaseModel):
    file_name: str | None = None
    file_type: str | None = None
    folder: str | None = None
    action: Literal["upload", "download"] = "upload"
    key: str | None = None


class PresignRead(BaseModel):
    url: str
    key: str


class StoredObjectRead(BaseModel):
    key: str
    size: int


@router.post("/url", response_model=PresignRead)
def presign_url(dto: PresignRequest, caller: Caller = Depends(get_caller)) -> PresignRead:
    access_guard.require_role(caller, ResourceKind.DOCUMENT, ResourceAction.CREATE)
    result = storage.presign(
        caller.user_id,
        file_name=dto.file_name,
        file_type=dto.file_type,
        folder=dto.folder,
        action=dto.action,
        key=dto.key,
    )
    return PresignRead(url=result.url, key=result.key)


def _local_store() -> storage.LocalObjectStore:
    store = storage.get_object_store()
    if not isinstance(store, storage.LocalObjectStore):
        raise NotFoundError("local uploads are disabled")
    return store


@router.put("/local/{key:path}", response_model=StoredObjectRead)
async def put_local_object(key: str, request: Request, caller: Caller = Depends(get_caller)) -> StoredObjectRead:
    access_guard.require_self(caller, ResourceKind.DOCUMENT, ResourceAction.CREATE, storage.key_owner(key) or "")
    store = _local_store()
    content = await request.body()
    store.store_bytes(key, content)
    return StoredObjectRead(key=key, size=len(content))


@router.get("/local/{key:path}")
def get_local_object(key: str, caller: Caller = Depends(get_caller)) -> Response:
    access_guard.require_role(caller, ResourceKind.DOCUMENT, ResourceAction.READ)
    store = _local_store()
    try:
        content = store.get_bytes(key)
    except FileNotFoundError as exc:
        raise NotFoundError("object not found") from exc
    return Response(content=content, media_type="application/octet-stream")
