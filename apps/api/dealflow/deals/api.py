from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from dealflow.api.deps import get_caller
from dealflow.core.database import get_db
from dealflow.deals.schemas import (
    DealCreate,
    DealDetailRead,
    DealRead,
    DocumentCreate,
    DocumentRead,
    PinConversionRead,
    PinConversionRequest,
    StatusOverrideRequest,
)
from dealflow.deals.service import deal_service
from dealflow.lifecycle.catalog import status_catalog
from dealflow.platform.security import Caller


router = APIRouter(prefix="/api/deals", tags=["deals"])


@router.get("/statuses")
def list_statuses() -> list[dict[str, Any]]:
    return [
        {
            "status": item.status.value,
            "step": item.step,
            "phase": item.phase.value,
            "label": item.label,
            "color": item.color,
            "description": item.description,
            "action_label": item.action_label,
            "next_status": item.next_status.value if item.next_status else None,
            "requirements": list(item.requirements),
            "progress_percentage": status_catalog.progress_percentage(item.status),
        }
        for item in status_catalog.ordered()
    ]


@router.get("", response_model=list[DealRead])
def list_deals(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> list[DealRead]:
    return deal_service.list_deals(db, caller)


@router.post("", response_model=DealDetailRead, status_code=status.HTTP_201_CREATED)
def create_deal(
    dto: DealCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> DealDetailRead:
    return deal_service.create_deal(db, caller, dto)


@router.post("/from-pin", response_model=PinConversionRead, status_code=status.HTTP_201_CREATED)
def create_deal_from_pin(
    dto: PinConversionRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> PinConversionRead:
    return deal_service.create_deal_from_pin(db, caller, dto)


@router.get("/{deal_id}", response_model=DealDetailRead)
def get_deal(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> DealDetailRead:
    return deal_service.get_deal(db, caller, deal_id)


@router.patch("/{deal_id}", response_model=DealDetailRead)
def update_deal(
    deal_id: uuid.UUID,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> DealDetailRead:
    return deal_service.update_deal(db, caller, deal_id, payload)


@router.post("/{deal_id}/advance", response_model=DealDetailRead)
def advance_deal(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> DealDetailRead:
    return deal_service.advance_deal(db, caller, deal_id)


@router.put("/{deal_id}/status", response_model=DealDetailRead)
def override_status(
    deal_id: uuid.UUID,
    dto: StatusOverrideRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> DealDetailRead:
    return deal_service.override_status(db, caller, deal_id, dto.status)


@router.post("/{deal_id}/request-payment", response_model=DealDetailRead)
def request_payment(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> DealDetailRead:
    return deal_service.request_payment(db, caller, deal_id)


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_deal(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Response:
    deal_service.delete_deal(db, caller, deal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{deal_id}/documents", response_model=list[DocumentRead])
def list_documents(
    deal_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> list[DocumentRead]:
    return deal_service.list_documents(db, caller, deal_id)


@router.post("/{deal_id}/documents", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def add_document(
    deal_id: uuid.UUID,
    dto: DocumentCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> DocumentRead:
    return deal_service.add_document(db, caller, deal_id, dto)


@router.delete("/{deal_id}/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_document(
    deal_id: uuid.UUID,
    document_id: uuid.UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Response:
    deal_service.delete_document(db, caller, deal_id, document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
