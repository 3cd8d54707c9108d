import logging
from fastapi import APIRouter, Depends, Request
from learnsphere.db.database import get_db
from learnsphere.models.lesson import LessonCreate, LessonUpdate, ProgressUpdate
from learnsphere.routes.auth import get_current_user
from learnsphere.services import lesson_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["lessons"])


@router.get("/courses/{course_id}/lessons")
async def list_lessons(course_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lesson_service.list_lessons(db, course_id, user)


@router.post("/courses/{course_id}/lessons", status_code=201)
async def create_lesson(course_id: int, body: LessonCreate, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lesson_service.create_lesson(db, course_id, body.model_dump(mode="json"), user)


@router.put("/lessons/{lesson_id}")
async def update_lesson(lesson_id: int, body: LessonUpdate, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    changes = body.model_dump(mode="json", exclude_unset=True)
    return await lesson_service.update_lesson(db, lesson_id, changes, user)


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(lesson_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    await lesson_service.delete_lesson(db, lesson_id, user)
    return {"message": "Lesson deleted"}


# ── Progress ─────────────────────────────────────────────────────────

@router.post("/lessons/{lesson_id}/progress")
async def update_progress(lesson_id: int, body: ProgressUpdate, request: Request, db=Depends(get_db)):
    """Record time on a lesson and, optionally, its completion."""
    user = await get_current_user(request, db)
    return await lesson_service.update_progress(
        db, lesson_id, user.user_id,
        is_completed=body.is_completed,
        time_spent=body.time_spent,
    )


@router.get("/courses/{course_id}/progress")
async def course_progress(course_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await lesson_service.get_progress_by_course(db, course_id, user.user_id)
