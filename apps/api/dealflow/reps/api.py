from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from dealflow.api.deps import get_caller
from dealflow.core.database import get_db
from dealflow.platform.security import Caller
from dealflow.reps.schemas import RepCreate, RepRead, RepUpdate
from dealflow.reps.service import rep_service


router = APIRouter(prefix="/api/reps", tags=["reps"])


@router.get("", response_model=list[RepRead])
def list_reps(
    for_assignment: bool = Query(default=False),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> list[RepRead]:
    return rep_service.list_reps(db, caller, for_assignment=for_assignment)


@router.post("", response_model=RepRead, status_code=status.HTTP_201_CREATED)
def create_rep(dto: RepCreate, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> RepRead:
    return rep_service.create_rep(db, caller, dto)


@router.get("/{rep_id}", response_model=RepRead)
def get_rep(rep_id: uuid.UUID, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> RepRead:
    return rep_service.get_rep(db, caller, rep_id)


@router.patch("/{rep_id}", response_model=RepRead)
def update_rep(
    rep_id: uuid.UUID,
    dto: RepUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> RepRead:
    return rep_service.update_rep(db, caller, rep_id, dto)


@router.delete("/{rep_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_rep(rep_id: uuid.UUID, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> Response:
    rep_service.delete_rep(db, caller, rep_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
