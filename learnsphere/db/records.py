"""
records.py - Row decoding and shared lookups

Provides fetch helpers used by more than one service:
- users
- courses
- lessons (with owning course's responsible admin)
- quiz_questions
"""

import json
from typing import Optional, List, Dict, Any

COURSE_BOOL_FIELDS = ("published",)
LESSON_BOOL_FIELDS = ("allow_download",)


def row_to_dict(
    row,
    parse_json_fields: tuple = (),
    bool_fields: tuple = (),
) -> Optional[Dict[str, Any]]:
    """Convert a database row to a dictionary, decoding JSON and 0/1 columns."""
    if row is None:
        return None

    result = {key: row[key] for key in row.keys()}

    for field in parse_json_fields:
        if field in result and result[field]:
            try:
                result[field] = json.loads(result[field])
            except (json.JSONDecodeError, TypeError):
                pass  # Keep original value if JSON parsing fails
    for field in bool_fields:
        if field in result and result[field] is not None:
            result[field] = bool(result[field])

    return result


def course_to_dict(row) -> Optional[Dict[str, Any]]:
    course = row_to_dict(row, parse_json_fields=("tags",), bool_fields=COURSE_BOOL_FIELDS)
    if course is not None and not course.get("tags"):
        course["tags"] = []
    return course


def lesson_to_dict(row) -> Optional[Dict[str, Any]]:
    lesson = row_to_dict(row, parse_json_fields=("attachments",), bool_fields=LESSON_BOOL_FIELDS)
    if lesson is not None and not lesson.get("attachments"):
        lesson["attachments"] = []
    return lesson


def question_to_dict(row) -> Optional[Dict[str, Any]]:
    return row_to_dict(row, parse_json_fields=("options",))


def attempt_to_dict(row) -> Optional[Dict[str, Any]]:
    return row_to_dict(row, bool_fields=("passed",))


# ══════════════════════════════════════════════════════════════════════════════
# USERS
# ══════════════════════════════════════════════════════════════════════════════

USER_PUBLIC_COLUMNS = "id, name, email, role, avatar, total_points, created_at"


async def get_user(db, user_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        f"SELECT {USER_PUBLIC_COLUMNS} FROM users WHERE id = ?",
        (user_id,),
    )
    return row_to_dict(await cursor.fetchone())


async def get_user_by_email(db, email: str) -> Optional[Dict[str, Any]]:
    """Includes password_hash; never return this row to a client as-is."""
    cursor = await db.execute(
        f"SELECT {USER_PUBLIC_COLUMNS}, password_hash FROM users WHERE email = ?",
        (email.lower(),),
    )
    return row_to_dict(await cursor.fetchone())


# ══════════════════════════════════════════════════════════════════════════════
# COURSES / LESSONS
# ══════════════════════════════════════════════════════════════════════════════

async def get_course(db, course_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute("SELECT * FROM courses WHERE id = ?", (course_id,))
    return course_to_dict(await cursor.fetchone())


async def get_lesson(db, lesson_id: int) -> Optional[Dict[str, Any]]:
    """Lesson row plus the owning course's responsible_admin_id."""
    cursor = await db.execute(
        """SELECT l.*, c.responsible_admin_id
           FROM lessons l
           JOIN courses c ON c.id = l.course_id
           WHERE l.id = ?""",
        (lesson_id,),
    )
    return lesson_to_dict(await cursor.fetchone())


async def get_lesson_questions(db, lesson_id: int) -> List[Dict[str, Any]]:
    """Questions in stored order: position, then insertion order."""
    cursor = await db.execute(
        """SELECT * FROM quiz_questions
           WHERE lesson_id = ?
           ORDER BY position, id""",
        (lesson_id,),
    )
    return [question_to_dict(row) for row in await cursor.fetchall()]
