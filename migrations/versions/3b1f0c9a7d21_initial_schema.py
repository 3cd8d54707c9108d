"""initial_schema

Creates the LearnSphere tables from learnsphere/db/schema.sql.

Revision ID: 3b1f0c9a7d21
Revises:
Create Date: 2026-03-02 10:14:37.201554

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "3b1f0c9a7d21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _adapt_sql(sql: str, dialect_name: str) -> str:
    """Adapt DDL for the target database dialect."""
    if dialect_name == "postgresql":
        sql = sql.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
    return sql


def upgrade() -> None:
    """Create the full schema.

    schema.sql uses CREATE ... IF NOT EXISTS throughout, so this is safe to
    run against a database that was bootstrapped from the file directly.
    """
    dialect_name = op.get_bind().dialect.name

    schema_path = Path(__file__).resolve().parents[2] / "learnsphere" / "db" / "schema.sql"
    schema_sql = schema_path.read_text()
    # op.execute doesn't support executescript, run statement by statement
    for statement in schema_sql.split(";"):
        lines = [
            line for line in statement.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        cleaned = "\n".join(lines).strip()
        if cleaned:
            op.execute(sa.text(_adapt_sql(cleaned, dialect_name)))


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    tables = [
        "course_invitations",
        "enrollments",
        "lesson_progress",
        "quiz_attempts",
        "quiz_questions",
        "lessons",
        "courses",
        "users",
    ]
    for table in tables:
        op.drop_table(table)
