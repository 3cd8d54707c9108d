"""
lesson_service.py - Lesson CRUD and learner progress

Provides:
- list_lessons / create_lesson / update_lesson / delete_lesson
- update_progress(db, lesson_id, user_id, is_completed, time_spent)
- get_progress_by_course(db, course_id, user_id)
"""

import json
import logging
from typing import Any, Dict, List, Optional

from learnsphere.db import records
from learnsphere.db.database import transaction, utcnow
from learnsphere.errors import NotFoundError, PermissionDeniedError
from learnsphere.services.progress import recompute_enrollment_progress, upsert_lesson_progress
from learnsphere.services.roles import AuthContext

logger = logging.getLogger(__name__)

_LESSON_COLUMNS = (
    "title", "description", "content", "duration", "type", "position",
    "allow_download", "attachments", "pass_score", "points_reward",
)


def _to_row_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert validated lesson fields into column values."""
    values = {}
    for column in _LESSON_COLUMNS:
        if column not in data:
            continue
        value = data[column]
        if column == "attachments":
            value = json.dumps(value or [])
        elif column == "allow_download":
            value = int(bool(value))
        elif column == "type" and hasattr(value, "value"):
            value = value.value
        values[column] = value
    return values


async def _course_for_staff(db, course_id: int, user: AuthContext) -> Dict[str, Any]:
    course = await records.get_course(db, course_id)
    if not course:
        raise NotFoundError("Course not found")
    if not user.can_manage(course["responsible_admin_id"]):
        raise PermissionDeniedError("Not authorized to modify lessons of this course")
    return course


async def _lesson_for_staff(db, lesson_id: int, user: AuthContext) -> Dict[str, Any]:
    lesson = await records.get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")
    if not user.can_manage(lesson["responsible_admin_id"]):
        raise PermissionDeniedError("Not authorized to modify this lesson")
    return lesson


async def list_lessons(db, course_id: int, user: AuthContext) -> List[Dict[str, Any]]:
    """Lessons of a course by position, each flagged with the caller's completion."""
    course = await records.get_course(db, course_id)
    if not course or (not course["published"] and not user.can_manage(course["responsible_admin_id"])):
        raise NotFoundError("Course not found")

    cursor = await db.execute(
        """SELECT l.*, COALESCE(lp.is_completed, 0) AS is_completed
           FROM lessons l
           LEFT JOIN lesson_progress lp ON lp.lesson_id = l.id AND lp.user_id = ?
           WHERE l.course_id = ?
           ORDER BY l.position, l.id""",
        (user.user_id, course_id),
    )
    lessons = []
    for row in await cursor.fetchall():
        lesson = records.lesson_to_dict(row)
        lesson["is_completed"] = bool(lesson["is_completed"])
        lessons.append(lesson)
    return lessons


async def create_lesson(db, course_id: int, data: Dict[str, Any], user: AuthContext) -> Dict[str, Any]:
    await _course_for_staff(db, course_id, user)

    values = _to_row_values(data)
    now = utcnow()
    values.update(course_id=course_id, created_at=now, updated_at=now)
    columns = ", ".join(values)
    marks = ", ".join("?" for _ in values)

    async with transaction(db):
        cursor = await db.execute(
            f"INSERT INTO lessons ({columns}) VALUES ({marks})",
            tuple(values.values()),
        )
    logger.info("Created lesson %s in course %s", cursor.lastrowid, course_id)
    return await records.get_lesson(db, cursor.lastrowid)


async def update_lesson(db, lesson_id: int, changes: Dict[str, Any], user: AuthContext) -> Dict[str, Any]:
    await _lesson_for_staff(db, lesson_id, user)

    # Explicit nulls on NOT NULL columns are ignored
    values = {k: v for k, v in _to_row_values(changes).items()
              if v is not None or k in ("description", "content")}
    values["updated_at"] = utcnow()
    assignments = ", ".join(f"{column} = ?" for column in values)

    async with transaction(db):
        await db.execute(
            f"UPDATE lessons SET {assignments} WHERE id = ?",
            (*values.values(), lesson_id),
        )
    return await records.get_lesson(db, lesson_id)


async def delete_lesson(db, lesson_id: int, user: AuthContext) -> None:
    lesson = await _lesson_for_staff(db, lesson_id, user)
    async with transaction(db):
        await db.execute("DELETE FROM lessons WHERE id = ?", (lesson_id,))
    logger.info("Deleted lesson %s from course %s", lesson_id, lesson["course_id"])


async def update_progress(
    db,
    lesson_id: int,
    user_id: int,
    is_completed: Optional[bool] = None,
    time_spent: int = 0,
) -> Dict[str, Any]:
    """Record progress on a lesson and refresh the course enrollment percentage."""
    lesson = await records.get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")

    async with transaction(db):
        await upsert_lesson_progress(db, user_id, lesson_id, is_completed, time_spent)
        course_progress = await recompute_enrollment_progress(db, user_id, lesson["course_id"])

    cursor = await db.execute(
        "SELECT * FROM lesson_progress WHERE user_id = ? AND lesson_id = ?",
        (user_id, lesson_id),
    )
    progress = records.row_to_dict(await cursor.fetchone(), bool_fields=("is_completed",))
    progress["course_progress"] = course_progress
    return progress


async def get_progress_by_course(db, course_id: int, user_id: int) -> List[Dict[str, Any]]:
    if not await records.get_course(db, course_id):
        raise NotFoundError("Course not found")
    cursor = await db.execute(
        """SELECT lp.* FROM lesson_progress lp
           JOIN lessons l ON l.id = lp.lesson_id
           WHERE l.course_id = ? AND lp.user_id = ?
           ORDER BY l.position, l.id""",
        (course_id, user_id),
    )
    return [records.row_to_dict(row, bool_fields=("is_completed",)) for row in await cursor.fetchall()]
