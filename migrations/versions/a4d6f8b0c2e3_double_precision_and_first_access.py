"""double_precision_and_first_access

Widen price, duration and paid_amount to DOUBLE PRECISION on PostgreSQL
(REAL there is a 4-byte float). Add lesson_progress.first_accessed,
backfilled from last_accessed.

Revision ID: a4d6f8b0c2e3
Revises: 8c2d4e6f1a90
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "a4d6f8b0c2e3"
down_revision: Union[str, Sequence[str], None] = "8c2d4e6f1a90"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FLOAT_COLUMNS = (
    ("courses", "price"),
    ("lessons", "duration"),
    ("enrollments", "paid_amount"),
)


def _column_exists(bind, table: str, column: str) -> bool:
    if bind.dialect.name == "postgresql":
        result = bind.execute(sa.text(
            "SELECT 1 FROM information_schema.columns "
            "WHERE table_name = :t AND column_name = :c"
        ), {"t": table, "c": column})
        return result.fetchone() is not None
    result = bind.execute(sa.text(f"PRAGMA table_info({table})"))
    return any(row[1] == column for row in result.fetchall())


def upgrade() -> None:
    bind = op.get_bind()

    # SQLite REAL is already 8 bytes
    if bind.dialect.name == "postgresql":
        for table, column in FLOAT_COLUMNS:
            op.execute(sa.text(
                f"ALTER TABLE {table} ALTER COLUMN {column} TYPE DOUBLE PRECISION"
            ))

    if not _column_exists(bind, "lesson_progress", "first_accessed"):
        op.execute(sa.text("ALTER TABLE lesson_progress ADD COLUMN first_accessed TEXT"))
    op.execute(sa.text(
        "UPDATE lesson_progress SET first_accessed = last_accessed "
        "WHERE first_accessed IS NULL"
    ))


def downgrade() -> None:
    # SQLite >= 3.35 and PostgreSQL both support DROP COLUMN
    op.execute(sa.text("ALTER TABLE lesson_progress DROP COLUMN first_accessed"))
    if op.get_bind().dialect.name == "postgresql":
        for table, column in FLOAT_COLUMNS:
            op.execute(sa.text(f"ALTER TABLE {table} ALTER COLUMN {column} TYPE REAL"))
