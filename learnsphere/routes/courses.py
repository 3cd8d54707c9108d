"""Course catalog, enrollment and course staff endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from learnsphere.db.database import get_db
from learnsphere.models.course import (
    BULK_ACTIONS,
    BulkActionRequest,
    ContactRequest,
    CourseCreate,
    CourseUpdate,
    EnrollRequest,
    InvitationReply,
    InviteRequest,
)
from learnsphere.routes.auth import get_current_user, get_optional_user, require_role
from learnsphere.services import course_service
from learnsphere.services.roles import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/courses", tags=["courses"])

_require_instructor = require_role(Role.INSTRUCTOR)


# ── Catalog ──────────────────────────────────────────────────────────

@router.get("")
async def list_courses(request: Request, db=Depends(get_db)):
    user = await get_optional_user(request, db)
    return await course_service.list_courses(db, is_authenticated=user is not None)


@router.post("", status_code=201)
async def create_course(body: CourseCreate, request: Request, db=Depends(get_db)):
    user = await _require_instructor(request, db)
    return await course_service.create_course(db, body.model_dump(mode="json"), user)


@router.get("/my/enrolled")
async def my_enrolled_courses(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await course_service.list_enrolled_courses(db, user.user_id)


# ── Staff views ──────────────────────────────────────────────────────

@router.get("/admin/list")
async def admin_courses(request: Request, db=Depends(get_db)):
    user = await _require_instructor(request, db)
    return await course_service.list_admin_courses(db, user)


@router.get("/admin/enrollments")
async def admin_enrollments(request: Request, db=Depends(get_db)):
    user = await _require_instructor(request, db)
    return await course_service.list_admin_enrollments(db, user)


# ── Single course ────────────────────────────────────────────────────

@router.get("/{course_id}")
async def get_course(course_id: int, request: Request, db=Depends(get_db)):
    user = await get_optional_user(request, db)
    return await course_service.get_course(db, course_id, user)


@router.put("/{course_id}")
async def update_course(course_id: int, body: CourseUpdate, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    changes = body.model_dump(mode="json", exclude_unset=True)
    return await course_service.update_course(db, course_id, changes, user)


@router.delete("/{course_id}")
async def delete_course(course_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    await course_service.delete_course(db, course_id, user)
    return {"message": "Course deleted"}


@router.post("/{course_id}/enroll", status_code=201)
async def enroll(course_id: int, request: Request, body: EnrollRequest | None = None, db=Depends(get_db)):
    user = await get_current_user(request, db)
    payment = body.model_dump() if body else None
    return await course_service.enroll(db, course_id, user.user_id, payment)


# ── Attendees ────────────────────────────────────────────────────────

@router.get("/{course_id}/attendees")
async def course_attendees(course_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await course_service.get_attendees(db, course_id, user)


@router.post("/{course_id}/invite", status_code=201)
async def invite_attendee(course_id: int, body: InviteRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await course_service.invite_attendee(db, course_id, body.email, user)


@router.post("/{course_id}/invitation")
async def reply_to_invitation(course_id: int, body: InvitationReply, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await course_service.respond_to_invitation(db, course_id, user.user_id, body.accept)


@router.post("/{course_id}/contact")
async def contact_attendees(course_id: int, body: ContactRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    sent = await course_service.contact_attendees(db, course_id, body.subject, body.message, user)
    return {"message": f"Message sent to {sent} attendees", "recipients": sent}


@router.post("/{course_id}/bulk-action")
async def bulk_action(course_id: int, body: BulkActionRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    if body.action not in BULK_ACTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")

    if body.action == "unenroll":
        await course_service.bulk_unenroll(db, course_id, body.user_ids, user)
    else:
        await course_service.bulk_reset_progress(db, course_id, body.user_ids, user)
    return {"message": f"Applied {body.action} to {len(body.user_ids)} users"}
