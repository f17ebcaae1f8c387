from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dealflow.admin.models import utcnow
from dealflow.core.database import Base


class TrainingProgress(Base):
    __tablename__ = "training_progress"
    __table_args__ = (
        UniqueConstraint("rep_id", "course_id", name="uq_training_progress_rep_course"),
        Index("ix_training_progress_rep_id", "rep_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    rep_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("reps.id", ondelete="CASCADE"), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    exam_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    exam_passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
