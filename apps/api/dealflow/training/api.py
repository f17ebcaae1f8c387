from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dealflow.api.deps import get_caller
from dealflow.core.database import get_db
from dealflow.platform.security import Caller
from dealflow.training.schemas import ExamResultRead, ExamSubmission, TrainingStatusRead
from dealflow.training.service import training_service


router = APIRouter(prefix="/api/training", tags=["training"])


@router.get("", response_model=TrainingStatusRead)
def get_training(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> TrainingStatusRead:
    return training_service.get_status(db, caller)


@router.post("/submit", response_model=ExamResultRead)
def submit_exam(dto: ExamSubmission, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)) -> ExamResultRead:
    return training_service.submit_exam(db, caller, dto)
