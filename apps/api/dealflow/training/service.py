from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from dealflow import audit, events
from dealflow.admin.models import utcnow
from dealflow.core.database import transaction
from dealflow.errors import NotFoundError, ValidationError
from dealflow.platform.security import AccessGuard, Caller, ResourceAction, ResourceKind, access_guard
from dealflow.reps.models import Rep
from dealflow.training.courses import REQUIRED_COURSES, is_passing, score_exam
from dealflow.training.models import TrainingProgress
from dealflow.training.schemas import CourseProgressRead, ExamResultRead, ExamSubmission, TrainingStatusRead


logger = logging.getLogger("dealflow.training")


@dataclass(slots=True)
class TrainingService:
    """Onboarding exams per rep; a rep is trained once every required course is passed."""

    guard: AccessGuard = access_guard

    def get_status(self, session: Session, caller: Caller) -> TrainingStatusRead:
        rep = self._caller_rep(session, caller, ResourceAction.READ)
        rows = session.scalars(
            select(TrainingProgress).where(TrainingProgress.rep_id == rep.id).order_by(TrainingProgress.course_id)
        ).all()
        return TrainingStatusRead(
            training_completed=rep.training_completed,
            courses=[CourseProgressRead.model_validate(row) for row in rows],
        )

    def submit_exam(self, session: Session, caller: Caller, dto: ExamSubmission) -> ExamResultRead:
        rep = self._caller_rep(session, caller, ResourceAction.UPDATE)
        missing = [name for name in ("course_id", "answers") if not getattr(dto, name)]
        if missing:
            raise ValidationError.missing(missing)

        score = score_exam(dto.course_id, dto.answers)
        passed = is_passing(score)
        newly_trained = False
        with transaction(session):
            progress = session.scalar(
                select(TrainingProgress).where(
                    TrainingProgress.rep_id == rep.id, TrainingProgress.course_id == dto.course_id
                )
            )
            if progress is None:
                progress = TrainingProgress(rep_id=rep.id, course_id=dto.course_id)
                session.add(progress)
            progress.exam_score = score
            progress.exam_passed = passed
            progress.completed_at = utcnow() if passed else None
            session.flush()

            if not rep.training_completed and self._passed_all(session, rep.id):
                rep.training_completed = True
                newly_trained = True
            audit.record_for(
                caller, "training", progress.id, "training.exam_submitted", None,
                {"course_id": dto.course_id, "score": score, "passed": passed},
            )

        if newly_trained:
            events.emit("rep.training_completed", rep_id=rep.id)
            logger.info("training.completed", extra={"user_id": caller.user_id, "action": "complete"})
        return ExamResultRead(
            score=score,
            passed=passed,
            training_completed=rep.training_completed,
            progress=CourseProgressRead.model_validate(progress),
        )

    def _passed_all(self, session: Session, rep_id: uuid.UUID) -> bool:
        passed = set(
            session.scalars(
                select(TrainingProgress.course_id).where(
                    TrainingProgress.rep_id == rep_id, TrainingProgress.exam_passed.is_(True)
                )
            ).all()
        )
        return passed.issuperset(REQUIRED_COURSES)

    def _caller_rep(self, session: Session, caller: Caller, action: ResourceAction) -> Rep:
        self.guard.require_role(caller, ResourceKind.TRAINING, action)
        rep = session.get(Rep, caller.rep_id) if caller.rep_id is not None else None
        if rep is None:
            raise NotFoundError("rep not found")
        return rep


training_service = TrainingService()
