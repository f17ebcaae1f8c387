from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from dealflow.api.deps import get_caller
from dealflow.core.database import get_db
from dealflow.pins.schemas import PinCreate, PinRead
from dealflow.pins.service import pin_service
from dealflow.platform.security import Caller


router = APIRouter(prefix="/api/pins", tags=["pins"])


@router.get("", response_model=list[PinRead])
def list_pins(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> list[PinRead]:
    return pin_service.list_pins(db, caller)


@router.post("", response_model=PinRead, status_code=status.HTTP_201_CREATED)
def create_pin(dto: PinCreate, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> PinRead:
    return pin_service.create_pin(db, caller, dto)


@router.get("/{pin_id}", response_model=PinRead)
def get_pin(pin_id: uuid.UUID, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> PinRead:
    return pin_service.get_pin(db, caller, pin_id)


@router.patch("/{pin_id}", response_model=PinRead)
def update_pin(
    pin_id: uuid.UUID,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> PinRead:
    return pin_service.update_pin(db, caller, pin_id, payload)


@router.delete("/{pin_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_pin(pin_id: uuid.UUID, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> Response:
    pin_service.delete_pin(db, caller, pin_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
