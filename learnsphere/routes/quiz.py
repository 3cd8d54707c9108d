"""Quiz endpoints: question authoring and learner submissions."""

import logging
from fastapi import APIRouter, Depends, Request
from learnsphere.db.database import get_db
from learnsphere.models.lesson import QuestionCreate, QuestionUpdate, QuizSubmission
from learnsphere.routes.auth import get_current_user
from learnsphere.services import quiz_scorer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["quiz"])


@router.get("/lessons/{lesson_id}/questions")
async def list_questions(lesson_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await quiz_scorer.get_quiz_questions(db, lesson_id, user)


@router.post("/lessons/{lesson_id}/questions", status_code=201)
async def create_question(lesson_id: int, body: QuestionCreate, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await quiz_scorer.create_question(db, lesson_id, body.model_dump(), user)


@router.put("/questions/{question_id}")
async def update_question(question_id: int, body: QuestionUpdate, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await quiz_scorer.update_question(db, question_id, body.model_dump(exclude_unset=True), user)


@router.delete("/questions/{question_id}")
async def delete_question(question_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    await quiz_scorer.delete_question(db, question_id, user)
    return {"message": "Question deleted"}


@router.post("/lessons/{lesson_id}/submit")
async def submit_quiz(lesson_id: int, body: QuizSubmission, request: Request, db=Depends(get_db)):
    """Score a submission. Points are granted on the first passing attempt only."""
    user = await get_current_user(request, db)
    return await quiz_scorer.submit_quiz(db, lesson_id, user.user_id, body.answers)
