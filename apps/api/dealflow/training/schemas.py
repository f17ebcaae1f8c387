from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ExamSubmission(BaseModel):
    course_id: str | None = None
    answers: dict[str, str] | None = None


class CourseProgressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: str
    exam_score: int | None
    exam_passed: bool
    completed_at: datetime | None


class TrainingStatusRead(BaseModel):
    training_completed: bool
    courses: list[CourseProgressRead] = Field(default_factory=list)


class ExamResultRead(BaseModel):
    score: int
    passed: bool
    training_completed: bool
    progress: CourseProgressRead
