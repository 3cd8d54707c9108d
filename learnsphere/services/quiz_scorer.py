"""
quiz_scorer.py - Quiz authoring, scoring and points

Provides:
- score_answers(questions, answers) - Pure scoring of an answer list
- submit_quiz(db, lesson_id, user_id, answers) - Score, store the attempt, award points once
- get_quiz_questions / create_question / update_question / delete_question
"""

import json
import logging
from typing import Dict, Any, List, Optional, Tuple

from learnsphere.db import records
from learnsphere.db.database import transaction, utcnow
from learnsphere.errors import InvalidStateError, NotFoundError, PermissionDeniedError
from learnsphere.models.lesson import LessonType
from learnsphere.services.badges import NEXT_BADGE_PROGRESS_HINT
from learnsphere.services.progress import (
    percent,
    recompute_enrollment_progress,
    upsert_lesson_progress,
)
from learnsphere.services.roles import AuthContext

logger = logging.getLogger(__name__)


def score_answers(questions: List[Dict[str, Any]], answers: List[int]) -> Tuple[int, int]:
    """Compare answers to each question's correct_index, by position.

    Answers beyond the question count are ignored; missing answers are wrong.

    Returns:
        (correct_count, score) where score is 0-100, rounded half up
    """
    correct = 0
    for i, question in enumerate(questions):
        if i < len(answers) and answers[i] == question["correct_index"]:
            correct += 1
    return correct, percent(correct, len(questions))


async def _has_passed_before(db, user_id: int, lesson_id: int) -> bool:
    cursor = await db.execute(
        "SELECT 1 FROM quiz_attempts WHERE user_id = ? AND lesson_id = ? AND passed = 1 LIMIT 1",
        (user_id, lesson_id),
    )
    return await cursor.fetchone() is not None


async def _insert_attempt(db, user_id, lesson_id, score, passed, points, now) -> int:
    cursor = await db.execute(
        """INSERT INTO quiz_attempts (user_id, lesson_id, score, passed, points_earned, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (user_id, lesson_id, score, int(passed), points, now),
    )
    return cursor.lastrowid


async def _claim_points(db, user_id, lesson_id, score, points, now) -> Optional[int]:
    """Insert a points-bearing attempt unless one already exists.

    uq_quiz_attempts_points allows a single row with points_earned > 0 per
    (user, lesson); a concurrent winner makes this a no-op.
    Returns the new attempt id, or None when the claim was lost.
    """
    cursor = await db.execute(
        """INSERT INTO quiz_attempts (user_id, lesson_id, score, passed, points_earned, created_at)
           VALUES (?, ?, ?, 1, ?, ?)
           ON CONFLICT (user_id, lesson_id) WHERE points_earned > 0 DO NOTHING""",
        (user_id, lesson_id, score, points, now),
    )
    if cursor.rowcount == 1:
        return cursor.lastrowid
    return None


async def submit_quiz(db, lesson_id: int, user_id: int, answers: List[int]) -> Dict[str, Any]:
    """Score a quiz submission and persist the attempt.

    Raises:
        NotFoundError: lesson missing or not a quiz
        InvalidStateError: quiz has no questions
    """
    lesson = await records.get_lesson(db, lesson_id)
    if not lesson or lesson["type"] != LessonType.QUIZ.value:
        raise NotFoundError("Quiz not found")

    questions = await records.get_lesson_questions(db, lesson_id)
    if not questions:
        raise InvalidStateError("Quiz has no questions")

    correct_count, score = score_answers(questions, answers)
    passed = score >= lesson["pass_score"]
    reward = lesson["points_reward"] or 0
    now = utcnow()

    points_earned = 0
    attempt_id = None
    async with transaction(db):
        first_pass = passed and not await _has_passed_before(db, user_id, lesson_id)

        if first_pass and reward > 0:
            attempt_id = await _claim_points(db, user_id, lesson_id, score, reward, now)
            if attempt_id is not None:
                points_earned = reward
                await db.execute(
                    "UPDATE users SET total_points = total_points + ? WHERE id = ?",
                    (reward, user_id),
                )
                logger.info(
                    "User %s earned %d points on lesson %s",
                    user_id, reward, lesson_id,
                )
            else:
                logger.info("Points for user %s on lesson %s already claimed", user_id, lesson_id)

        if attempt_id is None:
            attempt_id = await _insert_attempt(db, user_id, lesson_id, score, passed, 0, now)

        if first_pass and (points_earned > 0 or reward == 0):
            await upsert_lesson_progress(db, user_id, lesson_id, is_completed=True)
            await recompute_enrollment_progress(db, user_id, lesson["course_id"])

    cursor = await db.execute("SELECT * FROM quiz_attempts WHERE id = ?", (attempt_id,))
    attempt = records.attempt_to_dict(await cursor.fetchone())

    return {
        "attempt": attempt,
        "correct_count": correct_count,
        "total_questions": len(questions),
        "next_badge_progress": NEXT_BADGE_PROGRESS_HINT,
    }


# ══════════════════════════════════════════════════════════════════════════════
# AUTHORING
# ══════════════════════════════════════════════════════════════════════════════

async def _quiz_for_staff(db, lesson_id: int, user: AuthContext) -> Dict[str, Any]:
    lesson = await records.get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")
    if not user.can_manage(lesson["responsible_admin_id"]):
        raise PermissionDeniedError("Not authorized to edit this quiz")
    if lesson["type"] != LessonType.QUIZ.value:
        raise InvalidStateError("Lesson is not a quiz")
    return lesson


async def get_quiz_questions(db, lesson_id: int, user: AuthContext) -> List[Dict[str, Any]]:
    """Questions for a lesson. The answer key is only shown to course staff."""
    lesson = await records.get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")

    questions = await records.get_lesson_questions(db, lesson_id)
    if not user.can_manage(lesson["responsible_admin_id"]):
        for question in questions:
            question.pop("correct_index", None)
    return questions


async def create_question(db, lesson_id: int, data: Dict[str, Any], user: AuthContext) -> Dict[str, Any]:
    await _quiz_for_staff(db, lesson_id, user)

    position = data.get("position")
    async with transaction(db):
        if position is None:
            cursor = await db.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 AS next_pos FROM quiz_questions WHERE lesson_id = ?",
                (lesson_id,),
            )
            position = (await cursor.fetchone())["next_pos"]
        cursor = await db.execute(
            """INSERT INTO quiz_questions (lesson_id, question, options, correct_index, position, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (lesson_id, data["question"], json.dumps(data["options"]),
             data["correct_index"], position, utcnow()),
        )
    return await _get_question(db, cursor.lastrowid)


async def _get_question(db, question_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute("SELECT * FROM quiz_questions WHERE id = ?", (question_id,))
    return records.question_to_dict(await cursor.fetchone())


async def update_question(db, question_id: int, changes: Dict[str, Any], user: AuthContext) -> Dict[str, Any]:
    existing = await _get_question(db, question_id)
    if not existing:
        raise NotFoundError("Question not found")
    await _quiz_for_staff(db, existing["lesson_id"], user)

    merged = {**existing, **{k: v for k, v in changes.items() if v is not None}}
    if merged["correct_index"] >= len(merged["options"]):
        raise InvalidStateError("correct_index must point at one of the options")

    async with transaction(db):
        await db.execute(
            """UPDATE quiz_questions
               SET question = ?, options = ?, correct_index = ?, position = ?
               WHERE id = ?""",
            (merged["question"], json.dumps(merged["options"]),
             merged["correct_index"], merged["position"], question_id),
        )
    return await _get_question(db, question_id)


async def delete_question(db, question_id: int, user: AuthContext) -> None:
    existing = await _get_question(db, question_id)
    if not existing:
        raise NotFoundError("Question not found")
    await _quiz_for_staff(db, existing["lesson_id"], user)
    async with transaction(db):
        await db.execute("DELETE FROM quiz_questions WHERE id = ?", (question_id,))
