from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dealflow.admin.schemas import IdentityRecord, IdentitySyncRequest, IdentitySyncResult
from dealflow.admin.service import identity_service
from dealflow.api.deps import get_caller
from dealflow.core.database import get_db
from dealflow.platform.security import Caller


router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/sync-identities", response_model=IdentitySyncResult)
def sync_identities(
    dto: IdentitySyncRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> IdentitySyncResult:
    return identity_service.sync_identities(db, caller, dto)


@router.post("/users", response_model=IdentitySyncResult, status_code=status.HTTP_201_CREATED)
def create_user(
    dto: IdentityRecord,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> IdentitySyncResult:
    return identity_service.create_user(db, caller, dto)
