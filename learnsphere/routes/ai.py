"""Learning assistant endpoints."""

import logging
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from learnsphere.db.database import get_db
from learnsphere.routes.auth import get_current_user, require_role
from learnsphere.services import learning_agent, quiz_scorer
from learnsphere.services.roles import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


class ExplainRequest(BaseModel):
    lesson_id: int


class GenerateQuizRequest(BaseModel):
    lesson_id: int  # source lesson
    quiz_id: int    # quiz lesson that receives the questions


@router.post("/explain")
async def explain(body: ExplainRequest, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return {"explanation": await learning_agent.explain_lesson(db, body.lesson_id)}


@router.get("/smart-retake/{lesson_id}")
async def smart_retake(lesson_id: int, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return await learning_agent.smart_retake(db, lesson_id)


@router.get("/instructor-insights")
async def instructor_insights(request: Request, db=Depends(get_db)):
    user = await require_role(Role.INSTRUCTOR)(request, db)
    return await learning_agent.instructor_insights(db, user)


@router.get("/review-summary/{course_id}")
async def review_summary(course_id: int, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return {"summary": await learning_agent.summarize_reviews(db, course_id)}


@router.post("/generate-quiz", status_code=201)
async def generate_quiz(body: GenerateQuizRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    questions = await learning_agent.generate_questions_from_content(db, body.lesson_id)
    saved = []
    for question in questions:
        saved.append(await quiz_scorer.create_question(db, body.quiz_id, question, user))
    logger.info("Generated %d questions for quiz %s from lesson %s", len(saved), body.quiz_id, body.lesson_id)
    return saved
