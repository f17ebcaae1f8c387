from __future__ import annotations

import uuid
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from dealflow.api.deps import get_caller
from dealflow.commissions.schemas import CommissionBreakdownRead, CommissionCreate, CommissionRead
from dealflow.commissions.service import commission_service
from dealflow.core.database import get_db
from dealflow.platform.security import Caller


router = APIRouter(prefix="/api/commissions", tags=["commissions"])


@router.get("", response_model=list[CommissionRead])
def list_commissions(
    status_filter: Literal["paid", "unpaid"] | None = Query(default=None, alias="status"),
    deal_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> list[CommissionRead]:
    paid = None if status_filter is None else status_filter == "paid"
    return commission_service.list_commissions(db, caller, paid=paid, deal_id=deal_id)


@router.post("", response_model=CommissionRead, status_code=status.HTTP_201_CREATED)
def create_commission(
    dto: CommissionCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> CommissionRead:
    return commission_service.create_commission(db, caller, dto)


@router.get("/{commission_id}", response_model=CommissionRead)
def get_commission(
    commission_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> CommissionRead:
    return commission_service.get_commission(db, caller, commission_id)


@router.get("/{commission_id}/breakdown", response_model=CommissionBreakdownRead)
def get_commission_breakdown(
    commission_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> CommissionBreakdownRead:
    return commission_service.breakdown(db, caller, commission_id)


@router.patch("/{commission_id}", response_model=CommissionRead)
def update_commission(
    commission_id: uuid.UUID,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> CommissionRead:
    return commission_service.update_commission(db, caller, commission_id, payload)


@router.post("/{commission_id}/mark-paid", response_model=CommissionRead)
def mark_commission_paid(
    commission_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> CommissionRead:
    return commission_service.mark_paid(db, caller, commission_id)
