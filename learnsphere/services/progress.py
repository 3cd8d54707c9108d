"""
progress.py - Lesson progress writes and percentage helpers

Shared by the lesson, quiz and course services. The write helpers do not
commit; callers run them inside transaction(db).
"""

import logging
import math
from typing import Optional

from learnsphere.db.database import utcnow

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def percent(part: int, whole: int) -> int:
    """Integer percentage of part/whole, rounded half up. 0 when whole is 0."""
    if whole <= 0:
        return 0
    # Integer arithmetic keeps 2.5 -> 3 exact
    return (part * 200 + whole) // (2 * whole)


async def upsert_lesson_progress(
    db,
    user_id: int,
    lesson_id: int,
    is_completed: Optional[bool] = None,
    time_spent: int = 0,
) -> None:
    """Insert or update the (user, lesson) progress row.

    time_spent accumulates. first_accessed is only set on insert. Completion
    keeps its stored value unless is_completed is given.
    """
    now = utcnow()
    completed_sql = "excluded.is_completed" if is_completed is not None else "lesson_progress.is_completed"
    await db.execute(
        f"""INSERT INTO lesson_progress
                (user_id, lesson_id, is_completed, time_spent, first_accessed, last_accessed)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, lesson_id) DO UPDATE SET
                is_completed = {completed_sql},
                time_spent = lesson_progress.time_spent + excluded.time_spent,
                last_accessed = excluded.last_accessed""",
        (user_id, lesson_id, int(bool(is_completed)), time_spent, now, now),
    )


async def recompute_enrollment_progress(db, user_id: int, course_id: int) -> Optional[int]:
    """Set enrollments.progress to the share of completed lessons.

    Returns the new percentage, or None when the user is not enrolled.
    completed_at is stamped the first time progress reaches 100.
    """
    cursor = await db.execute(
        "SELECT id, completed_at FROM enrollments WHERE user_id = ? AND course_id = ?",
        (user_id, course_id),
    )
    enrollment = await cursor.fetchone()
    if not enrollment:
        return None

    cursor = await db.execute(
        """SELECT COUNT(*) AS total,
                  COALESCE(SUM(CASE WHEN lp.is_completed = 1 THEN 1 ELSE 0 END), 0) AS completed
           FROM lessons l
           LEFT JOIN lesson_progress lp ON lp.lesson_id = l.id AND lp.user_id = ?
           WHERE l.course_id = ?""",
        (user_id, course_id),
    )
    counts = await cursor.fetchone()
    progress = percent(counts["completed"], counts["total"])

    completed_at = enrollment["completed_at"]
    if progress == 100 and not completed_at:
        completed_at = utcnow()
        logger.info("User %s completed course %s", user_id, course_id)
    elif progress < 100:
        completed_at = None

    await db.execute(
        "UPDATE enrollments SET progress = ?, completed_at = ? WHERE id = ?",
        (progress, completed_at, enrollment["id"]),
    )
    return progress
