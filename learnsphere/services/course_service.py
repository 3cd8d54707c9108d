"""
course_service.py - Catalog, enrollment and attendee management

Provides:
- create/list/get/update/delete courses, with owner-or-admin checks
- enroll(db, course_id, user_id, payment) honouring OPEN / INVITE / PAID rules
- attendee views, invitations, contact and bulk actions for course staff
"""

import json
import logging
from typing import Any, Dict, List, Optional

from learnsphere.db import records
from learnsphere.db.database import transaction, utcnow
from learnsphere.errors import (
    AuthRequiredError,
    ConflictError,
    InvalidStateError,
    InvitationRequiredError,
    NotFoundError,
    PaymentRequiredError,
    PermissionDeniedError,
)
from learnsphere.models.course import AccessRule, InvitationStatus, Visibility
from learnsphere.services.progress import round_half_up
from learnsphere.services.roles import AuthContext, Role

logger = logging.getLogger(__name__)

_COURSE_WITH_ADMIN = """
    SELECT c.*,
           u.name AS admin_name, u.email AS admin_email, u.avatar AS admin_avatar,
           (SELECT COUNT(*) FROM enrollments e WHERE e.course_id = c.id) AS enrolled_count
    FROM courses c
    JOIN users u ON u.id = c.responsible_admin_id
"""


def _shape_course(row) -> Dict[str, Any]:
    """Fold the joined admin_* columns into a responsible_admin object."""
    course = records.course_to_dict(row)
    course["responsible_admin"] = {
        "id": course["responsible_admin_id"],
        "name": course.pop("admin_name", None),
        "email": course.pop("admin_email", None),
        "avatar": course.pop("admin_avatar", None),
    }
    return course


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


async def _fetch_course(db, course_id: int) -> Dict[str, Any]:
    cursor = await db.execute(_COURSE_WITH_ADMIN + " WHERE c.id = ?", (course_id,))
    row = await cursor.fetchone()
    if not row:
        raise NotFoundError("Course not found")
    return _shape_course(row)


async def _require_manageable(db, course_id: int, user: AuthContext, action: str) -> Dict[str, Any]:
    course = await records.get_course(db, course_id)
    if not course:
        raise NotFoundError("Course not found")
    if not user.can_manage(course["responsible_admin_id"]):
        raise PermissionDeniedError(f"Not authorized to {action} this course")
    return course


def _check_price(access_rule: str, price: Optional[float]) -> None:
    if access_rule == AccessRule.PAID.value and (price is None or price <= 0):
        raise InvalidStateError("Price is required when access rule is PAID")


# ══════════════════════════════════════════════════════════════════════════════
# COURSE CRUD
# ══════════════════════════════════════════════════════════════════════════════

async def create_course(db, data: Dict[str, Any], user: AuthContext) -> Dict[str, Any]:
    access_rule = data.get("access_rule") or AccessRule.OPEN.value
    price = data.get("price")
    _check_price(access_rule, price)

    now = utcnow()
    async with transaction(db):
        cursor = await db.execute(
            """INSERT INTO courses (title, description, tags, image, published, website,
                                    visibility, access_rule, price, currency,
                                    responsible_admin_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                data["title"],
                data.get("description"),
                json.dumps(data.get("tags") or []),
                data.get("image") or None,
                int(bool(data.get("published"))),
                data.get("website") or None,
                data.get("visibility") or Visibility.EVERYONE.value,
                access_rule,
                price if access_rule == AccessRule.PAID.value else None,
                data.get("currency") or "USD",
                user.user_id,
                now,
                now,
            ),
        )
    course_id = cursor.lastrowid
    logger.info("User %s created course %s", user.user_id, course_id)
    return await _fetch_course(db, course_id)


async def list_courses(db, is_authenticated: bool) -> List[Dict[str, Any]]:
    """Published catalog; anonymous callers only see EVERYONE courses."""
    sql = _COURSE_WITH_ADMIN + " WHERE c.published = 1"
    params: tuple = ()
    if not is_authenticated:
        sql += " AND c.visibility = ?"
        params = (Visibility.EVERYONE.value,)
    sql += " ORDER BY c.created_at DESC, c.id DESC"
    cursor = await db.execute(sql, params)
    return [_shape_course(row) for row in await cursor.fetchall()]


async def get_course(db, course_id: int, user: Optional[AuthContext] = None) -> Dict[str, Any]:
    """Course detail with the caller's enrollment state.

    Unpublished courses look missing to everyone except their owner and admins.
    """
    course = await _fetch_course(db, course_id)

    if not course["published"] and (user is None or not user.can_manage(course["responsible_admin_id"])):
        raise NotFoundError("Course not found")

    if course["visibility"] == Visibility.SIGNED_IN.value and user is None:
        raise AuthRequiredError("Sign in required to view this course")

    if user is None or user.role == Role.LEARNER.value:
        try:
            await db.execute(
                "UPDATE courses SET views_count = views_count + 1 WHERE id = ?",
                (course_id,),
            )
            await db.commit()
            course["views_count"] += 1
        except Exception as e:
            # View counting must never block the page
            logger.warning("View count update failed for course %s: %s", course_id, e)

    can_start = False
    enrollment_status = None
    if user is not None:
        cursor = await db.execute(
            "SELECT id FROM enrollments WHERE course_id = ? AND user_id = ?",
            (course_id, user.user_id),
        )
        if await cursor.fetchone():
            can_start = True
            enrollment_status = "ENROLLED"
        elif course["access_rule"] == AccessRule.OPEN.value:
            can_start = True
        elif course["access_rule"] == AccessRule.INVITE.value:
            cursor = await db.execute(
                "SELECT status FROM course_invitations WHERE course_id = ? AND user_id = ?",
                (course_id, user.user_id),
            )
            invitation = await cursor.fetchone()
            can_start = bool(invitation) and invitation["status"] == InvitationStatus.ACCEPTED.value
            enrollment_status = f"INVITED_{invitation['status']}" if invitation else "NOT_INVITED"
        elif course["access_rule"] == AccessRule.PAID.value:
            enrollment_status = "REQUIRES_PAYMENT"

    course["can_start"] = can_start
    course["enrollment_status"] = enrollment_status
    return course


async def update_course(db, course_id: int, changes: Dict[str, Any], user: AuthContext) -> Dict[str, Any]:
    """Apply a partial update. `changes` holds only the fields the caller sent."""
    existing = await _require_manageable(db, course_id, user, "update")

    access_rule = changes.get("access_rule") or existing["access_rule"]
    price = changes["price"] if "price" in changes else existing["price"]
    if access_rule != AccessRule.PAID.value:
        price = None
    _check_price(access_rule, price)

    updates: Dict[str, Any] = {}
    for field in ("title", "description", "visibility", "currency"):
        if field in changes and changes[field] is not None:
            updates[field] = changes[field]
    if "description" in changes and changes["description"] is None:
        updates["description"] = None
    if "tags" in changes:
        updates["tags"] = json.dumps(changes["tags"] or [])
    for field in ("image", "website"):
        if field in changes:
            updates[field] = changes[field] or None
    if "published" in changes and changes["published"] is not None:
        updates["published"] = int(changes["published"])
    updates["access_rule"] = access_rule
    updates["price"] = price
    updates["updated_at"] = utcnow()

    assignments = ", ".join(f"{col} = ?" for col in updates)
    async with transaction(db):
        await db.execute(
            f"UPDATE courses SET {assignments} WHERE id = ?",
            (*updates.values(), course_id),
        )
    return await _fetch_course(db, course_id)


async def delete_course(db, course_id: int, user: AuthContext) -> None:
    await _require_manageable(db, course_id, user, "delete")
    async with transaction(db):
        await db.execute("DELETE FROM courses WHERE id = ?", (course_id,))
    logger.info("User %s deleted course %s", user.user_id, course_id)


# ══════════════════════════════════════════════════════════════════════════════
# ENROLLMENT
# ══════════════════════════════════════════════════════════════════════════════

async def enroll(db, course_id: int, user_id: int, payment: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    course = await records.get_course(db, course_id)
    if not course or not course["published"]:
        raise NotFoundError("Course not found")

    cursor = await db.execute(
        "SELECT id FROM enrollments WHERE user_id = ? AND course_id = ?",
        (user_id, course_id),
    )
    if await cursor.fetchone():
        raise ConflictError("Already enrolled in this course")

    paid_amount = None
    paid_at = None
    if course["access_rule"] == AccessRule.INVITE.value:
        cursor = await db.execute(
            "SELECT status FROM course_invitations WHERE course_id = ? AND user_id = ?",
            (course_id, user_id),
        )
        invitation = await cursor.fetchone()
        if not invitation or invitation["status"] != InvitationStatus.ACCEPTED.value:
            raise InvitationRequiredError("This course requires an invitation to enroll")
    elif course["access_rule"] == AccessRule.PAID.value:
        if not payment or not payment.get("confirmed"):
            raise PaymentRequiredError(
                "Payment required to enroll in this course",
                price=course["price"],
                currency=course["currency"],
            )
        paid_amount = payment.get("paid_amount") or course["price"]
        paid_at = utcnow()

    async with transaction(db):
        cursor = await db.execute(
            """INSERT INTO enrollments (user_id, course_id, started_at, paid_amount, paid_at)
               VALUES (?, ?, ?, ?, ?)""",
            (user_id, course_id, utcnow(), paid_amount, paid_at),
        )
    logger.info("User %s enrolled in course %s", user_id, course_id)

    cursor = await db.execute("SELECT * FROM enrollments WHERE id = ?", (cursor.lastrowid,))
    return records.row_to_dict(await cursor.fetchone())


async def list_enrolled_courses(db, user_id: int) -> List[Dict[str, Any]]:
    cursor = await db.execute(
        """SELECT c.*, en.progress,
                  u.name AS admin_name, u.email AS admin_email, u.avatar AS admin_avatar,
                  (SELECT COUNT(*) FROM lessons l WHERE l.course_id = c.id) AS lessons_count
           FROM enrollments en
           JOIN courses c ON c.id = en.course_id
           JOIN users u ON u.id = c.responsible_admin_id
           WHERE en.user_id = ?
           ORDER BY en.started_at DESC, en.id DESC""",
        (user_id,),
    )
    return [_shape_course(row) for row in await cursor.fetchall()]


# ══════════════════════════════════════════════════════════════════════════════
# STAFF VIEWS
# ══════════════════════════════════════════════════════════════════════════════

async def list_admin_courses(db, user: AuthContext) -> List[Dict[str, Any]]:
    """Instructors see the courses they own; admins see every course."""
    sql = """
        SELECT c.*,
               u.name AS admin_name, u.email AS admin_email, u.avatar AS admin_avatar,
               (SELECT COUNT(*) FROM enrollments e WHERE e.course_id = c.id) AS enrolled_count,
               (SELECT COUNT(*) FROM course_invitations i WHERE i.course_id = c.id) AS invitation_count,
               (SELECT COUNT(*) FROM lessons l WHERE l.course_id = c.id) AS lessons_count,
               (SELECT COALESCE(SUM(l.duration), 0) FROM lessons l WHERE l.course_id = c.id) AS total_duration
        FROM courses c
        JOIN users u ON u.id = c.responsible_admin_id
    """
    params: tuple = ()
    if not user.is_admin:
        sql += " WHERE c.responsible_admin_id = ?"
        params = (user.user_id,)
    sql += " ORDER BY c.created_at DESC, c.id DESC"
    cursor = await db.execute(sql, params)
    return [_shape_course(row) for row in await cursor.fetchall()]


async def list_admin_enrollments(db, user: AuthContext) -> List[Dict[str, Any]]:
    sql = """
        SELECT e.*, c.title AS course_title,
               u.name AS user_name, u.email AS user_email, u.avatar AS user_avatar
        FROM enrollments e
        JOIN courses c ON c.id = e.course_id
        JOIN users u ON u.id = e.user_id
    """
    params: tuple = ()
    if not user.is_admin:
        sql += " WHERE c.responsible_admin_id = ?"
        params = (user.user_id,)
    sql += " ORDER BY e.started_at DESC, e.id DESC"
    cursor = await db.execute(sql, params)

    enrollments = []
    for row in await cursor.fetchall():
        item = records.row_to_dict(row)
        item["course"] = {"id": item["course_id"], "title": item.pop("course_title")}
        item["user"] = {
            "id": item["user_id"],
            "name": item.pop("user_name"),
            "email": item.pop("user_email"),
            "avatar": item.pop("user_avatar"),
        }
        enrollments.append(item)
    return enrollments


async def get_attendees(db, course_id: int, user: AuthContext) -> Dict[str, Any]:
    """Enrollments with last activity and mean quiz score, plus invitations."""
    await _require_manageable(db, course_id, user, "view attendees of")

    cursor = await db.execute(
        """SELECT e.*, u.name, u.email, u.avatar
           FROM enrollments e
           JOIN users u ON u.id = e.user_id
           WHERE e.course_id = ?
           ORDER BY e.started_at, e.id""",
        (course_id,),
    )
    enrollment_rows = await cursor.fetchall()

    cursor = await db.execute(
        """SELECT lp.user_id, MAX(lp.last_accessed) AS last_accessed
           FROM lesson_progress lp
           JOIN lessons l ON l.id = lp.lesson_id
           WHERE l.course_id = ?
           GROUP BY lp.user_id""",
        (course_id,),
    )
    last_seen = {row["user_id"]: row["last_accessed"] for row in await cursor.fetchall()}

    cursor = await db.execute(
        """SELECT qa.user_id, SUM(qa.score) AS total_score, COUNT(*) AS attempts
           FROM quiz_attempts qa
           JOIN lessons l ON l.id = qa.lesson_id
           WHERE l.course_id = ?
           GROUP BY qa.user_id""",
        (course_id,),
    )
    scores = {
        row["user_id"]: round_half_up(row["total_score"] / row["attempts"])
        for row in await cursor.fetchall()
    }

    enrollments = []
    for row in enrollment_rows:
        item = records.row_to_dict(row)
        item["user"] = {
            "id": item["user_id"],
            "name": item.pop("name"),
            "email": item.pop("email"),
            "avatar": item.pop("avatar"),
        }
        # No lesson activity yet: fall back to the enrollment date
        item["last_accessed"] = last_seen.get(item["user_id"]) or item["started_at"]
        item["performance"] = scores.get(item["user_id"], 0)
        item["completed"] = item["progress"] == 100
        enrollments.append(item)

    cursor = await db.execute(
        """SELECT i.*, u.name, u.email, u.avatar
           FROM course_invitations i
           JOIN users u ON u.id = i.user_id
           WHERE i.course_id = ?
           ORDER BY i.invited_at DESC""",
        (course_id,),
    )
    invitations = []
    for row in await cursor.fetchall():
        item = records.row_to_dict(row)
        item["user"] = {
            "id": item["user_id"],
            "name": item.pop("name"),
            "email": item.pop("email"),
            "avatar": item.pop("avatar"),
        }
        invitations.append(item)

    return {"enrollments": enrollments, "invitations": invitations}


async def invite_attendee(db, course_id: int, email: str, user: AuthContext) -> Dict[str, Any]:
    """Create or re-issue a PENDING invitation for a registered user."""
    await _require_manageable(db, course_id, user, "invite attendees to")

    invitee = await records.get_user_by_email(db, email)
    if not invitee:
        raise NotFoundError("User with this email not found")

    async with transaction(db):
        await db.execute(
            """INSERT INTO course_invitations (course_id, user_id, status, invited_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT (course_id, user_id)
               DO UPDATE SET status = excluded.status, invited_at = excluded.invited_at""",
            (course_id, invitee["id"], InvitationStatus.PENDING.value, utcnow()),
        )

    cursor = await db.execute(
        "SELECT * FROM course_invitations WHERE course_id = ? AND user_id = ?",
        (course_id, invitee["id"]),
    )
    logger.info("Invited user %s to course %s", invitee["id"], course_id)
    return records.row_to_dict(await cursor.fetchone())


async def respond_to_invitation(db, course_id: int, user_id: int, accept: bool) -> Dict[str, Any]:
    cursor = await db.execute(
        "SELECT id FROM course_invitations WHERE course_id = ? AND user_id = ?",
        (course_id, user_id),
    )
    invitation = await cursor.fetchone()
    if not invitation:
        raise NotFoundError("Invitation not found")

    status = InvitationStatus.ACCEPTED if accept else InvitationStatus.REJECTED
    async with transaction(db):
        await db.execute(
            "UPDATE course_invitations SET status = ? WHERE id = ?",
            (status.value, invitation["id"]),
        )
    cursor = await db.execute("SELECT * FROM course_invitations WHERE id = ?", (invitation["id"],))
    return records.row_to_dict(await cursor.fetchone())


async def contact_attendees(db, course_id: int, subject: str, message: str, user: AuthContext) -> int:
    """Record a message to every enrolled learner. Returns the recipient count.

    There is no mail transport; delivery is a log line per recipient.
    """
    await _require_manageable(db, course_id, user, "contact attendees of")
    cursor = await db.execute(
        """SELECT u.id, u.email FROM enrollments e
           JOIN users u ON u.id = e.user_id
           WHERE e.course_id = ?""",
        (course_id,),
    )
    recipients = await cursor.fetchall()
    for row in recipients:
        logger.info("Course %s message to %s: %s", course_id, row["email"], subject)
    return len(recipients)


async def bulk_unenroll(db, course_id: int, user_ids: List[int], user: AuthContext) -> None:
    await _require_manageable(db, course_id, user, "manage attendees of")
    async with transaction(db):
        await db.execute(
            f"DELETE FROM enrollments WHERE course_id = ? AND user_id IN ({_placeholders(user_ids)})",
            (course_id, *user_ids),
        )
    logger.info("Unenrolled %d users from course %s", len(user_ids), course_id)


async def bulk_reset_progress(db, course_id: int, user_ids: List[int], user: AuthContext) -> None:
    """Zero enrollment progress and drop lesson progress and quiz attempts on the course.

    Deleting the attempts also clears the points claim, so a learner can earn
    the quiz reward again after a reset.
    """
    await _require_manageable(db, course_id, user, "manage attendees of")
    in_users = _placeholders(user_ids)
    async with transaction(db):
        await db.execute(
            f"""UPDATE enrollments SET progress = 0, completed_at = NULL
                WHERE course_id = ? AND user_id IN ({in_users})""",
            (course_id, *user_ids),
        )
        for table in ("lesson_progress", "quiz_attempts"):
            await db.execute(
                f"""DELETE FROM {table}
                    WHERE user_id IN ({in_users})
                      AND lesson_id IN (SELECT id FROM lessons WHERE course_id = ?)""",
                (*user_ids, course_id),
            )
    logger.info("Reset progress for %d users on course %s", len(user_ids), course_id)
