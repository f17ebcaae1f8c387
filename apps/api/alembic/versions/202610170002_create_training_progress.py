"""create training progress

Revision ID: 202610170002
Revises: 202610170001
Create Date: 2026-10-17 00:02:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610170002"
down_revision: str | None = "202610170001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "training_progress",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("rep_id", sa.Uuid(), sa.ForeignKey("reps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("exam_score", sa.Integer(), nullable=True),
        sa.Column("exam_passed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("rep_id", "course_id", name="uq_training_progress_rep_course"),
    )
    op.create_index("ix_training_progress_rep_id", "training_progress", ["rep_id"])


def downgrade() -> None:
    op.drop_index("ix_training_progress_rep_id", table_name="training_progress")
    op.drop_table("training_progress")
