"""add_lookup_indexes

Indexes on the catalog, attendee and insight query paths.

Revision ID: 8c2d4e6f1a90
Revises: 3b1f0c9a7d21
Create Date: 2026-03-09

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "8c2d4e6f1a90"
down_revision: Union[str, Sequence[str], None] = "3b1f0c9a7d21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_lessons_course "
        "ON lessons(course_id, position)"
    ))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_enrollments_course "
        "ON enrollments(course_id)"
    ))
    # instructor insights scan failed attempts
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_quiz_attempts_lesson "
        "ON quiz_attempts(lesson_id, passed)"
    ))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_lesson_progress_user "
        "ON lesson_progress(user_id, last_accessed)"
    ))


def downgrade() -> None:
    for name in (
        "idx_lesson_progress_user",
        "idx_quiz_attempts_lesson",
        "idx_enrollments_course",
        "idx_lessons_course",
    ):
        op.execute(sa.text(f"DROP INDEX IF EXISTS {name}"))
