"""
reporting.py - Participant progress report

One row per enrollment on the courses the caller manages, with a status
bucket and summary counts. The same rows feed the JSON view and the CSV export.
"""

import csv
import io
import logging
from typing import Any, Dict, Iterable, List, Optional

from learnsphere.errors import InvalidStateError
from learnsphere.services.roles import AuthContext

logger = logging.getLogger(__name__)

YET_TO_START = "yet_to_start"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"

# Column key -> CSV header, in export order
REPORT_COLUMNS = {
    "sr_no": "Sr No.",
    "course_name": "Course Name",
    "participant": "Participant",
    "enrolled_date": "Enrolled Date",
    "start_date": "Start Date",
    "time_spent": "Time Spent",
    "completion": "Completion %",
    "completed_date": "Completed Date",
    "status": "Status",
}


def format_duration(seconds: int) -> str:
    """Seconds as HH:MM."""
    minutes = (seconds or 0) // 60
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def participant_status(progress: int, has_activity: bool) -> str:
    if not has_activity:
        return YET_TO_START
    if progress >= 100:
        return COMPLETED
    return IN_PROGRESS


async def participant_rows(db, user: AuthContext, search: Optional[str] = None) -> List[Dict[str, Any]]:
    sql = """
        SELECT e.user_id, e.course_id, e.progress, e.started_at, e.completed_at,
               c.title AS course_name, u.name AS participant,
               MIN(COALESCE(lp.first_accessed, lp.last_accessed)) AS first_activity,
               COUNT(lp.id) AS activity_count,
               COALESCE(SUM(lp.time_spent), 0) AS time_spent
        FROM enrollments e
        JOIN courses c ON c.id = e.course_id
        JOIN users u ON u.id = e.user_id
        LEFT JOIN lessons l ON l.course_id = e.course_id
        LEFT JOIN lesson_progress lp ON lp.lesson_id = l.id AND lp.user_id = e.user_id
    """
    clauses = []
    params: list = []
    if not user.is_admin:
        clauses.append("c.responsible_admin_id = ?")
        params.append(user.user_id)
    if search:
        clauses.append("(LOWER(c.title) LIKE ? OR LOWER(u.name) LIKE ?)")
        needle = f"%{search.lower()}%"
        params.extend([needle, needle])
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += """
        GROUP BY e.id, e.user_id, e.course_id, e.progress, e.started_at, e.completed_at, c.title, u.name
        ORDER BY e.started_at, e.id
    """
    cursor = await db.execute(sql, tuple(params))

    rows = []
    for i, row in enumerate(await cursor.fetchall(), start=1):
        rows.append({
            "sr_no": i,
            "course_id": row["course_id"],
            "user_id": row["user_id"],
            "course_name": row["course_name"],
            "participant": row["participant"],
            "enrolled_date": row["started_at"],
            "start_date": row["first_activity"],
            "time_spent": format_duration(row["time_spent"]),
            "completion": row["progress"],
            "completed_date": row["completed_at"],
            "status": participant_status(row["progress"], row["activity_count"] > 0),
        })
    return rows


def summarize(rows: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    summary = {"total": 0, YET_TO_START: 0, IN_PROGRESS: 0, COMPLETED: 0}
    for row in rows:
        summary["total"] += 1
        summary[row["status"]] += 1
    return summary


def resolve_columns(columns: Optional[str]) -> List[str]:
    """Parse a comma-separated column selection; None or blank selects all."""
    if not columns or not columns.strip():
        return list(REPORT_COLUMNS)
    selected = [c.strip() for c in columns.split(",") if c.strip()]
    unknown = [c for c in selected if c not in REPORT_COLUMNS]
    if unknown:
        raise InvalidStateError(f"Unknown report columns: {', '.join(unknown)}")
    # Keep export order regardless of the order requested
    return [c for c in REPORT_COLUMNS if c in selected]


def rows_to_csv(rows: Iterable[Dict[str, Any]], columns: List[str]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([REPORT_COLUMNS[c] for c in columns])
    for row in rows:
        writer.writerow(["" if row[c] is None else row[c] for c in columns])
    return buffer.getvalue()
