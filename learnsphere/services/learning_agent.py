"""
learning_agent.py - Learning assistant behind the /api/ai endpoints

Provides:
- explain_lesson(db, lesson_id) - Plain-language summary of a lesson
- smart_retake(db, lesson_id) - Three practice questions after a failed quiz
- summarize_reviews(db, course_id) - Short summary of learner sentiment
- generate_questions_from_content(db, lesson_id) - Quiz questions from a lesson's text
- instructor_insights(db, user) - Hardest lesson by failed attempts

With AI_PROVIDER=stub every answer is deterministic canned text. With a real
provider the prose answers go through ai_chat and fall back to the canned
text when the call fails.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from learnsphere.config import settings
from learnsphere.db import records
from learnsphere.errors import NotFoundError
from learnsphere.services.ai_client import ai_chat
from learnsphere.services.roles import AuthContext

logger = logging.getLogger(__name__)

NO_INSIGHTS_MESSAGE = "Not enough data yet to provide deep insights."


def _use_provider() -> bool:
    return settings.ai_provider.lower() != "stub"


async def _ask(prompt: str, fallback: str) -> str:
    """Send a single-turn prompt, returning the fallback text on any provider failure."""
    if not _use_provider():
        return fallback
    try:
        answer = await ai_chat(
            [
                {"role": "system", "content": "You are a friendly course tutor. Answer in under 120 words."},
                {"role": "user", "content": prompt},
            ],
            use_case="cheap",
        )
    except Exception as e:
        logger.warning("AI provider call failed, using canned answer: %s", e)
        return fallback
    return answer.strip() if answer and answer.strip() else fallback


async def _require_lesson(db, lesson_id: int) -> Dict[str, Any]:
    lesson = await records.get_lesson(db, lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")
    return lesson


# ══════════════════════════════════════════════════════════════════════════════
# LEARNER HELPERS
# ══════════════════════════════════════════════════════════════════════════════

async def explain_lesson(db, lesson_id: int) -> str:
    lesson = await _require_lesson(db, lesson_id)
    topic = lesson["description"] or "the subject matter"
    canned = (
        f'Here\'s a simple breakdown of "{lesson["title"]}":\n\n'
        f"This lesson covers the core concepts of {topic}. "
        "Essentially, it explains how all the pieces fit together and why it's important "
        "for your overall understanding of the course. "
        "The key takeaway is to focus on the relationships between the different "
        f"components described in the {lesson['type']} content."
    )
    prompt = (
        f'Explain the lesson "{lesson["title"]}" in simple words.\n'
        f"Description: {topic}\n"
        f"Content: {(lesson['content'] or '')[:2000]}"
    )
    return await _ask(prompt, canned)


async def smart_retake(db, lesson_id: int) -> List[Dict[str, Any]]:
    """Practice questions offered after a failed attempt. Always three, never stored."""
    lesson = await _require_lesson(db, lesson_id)
    first_word = (lesson["description"] or "").split(" ")[0] or "the main topic"
    return [
        {
            "question": f"Based on what we learned, what is the primary purpose of {lesson['title']}?",
            "options": ["Option A", "Option B", "Option C", "Option D"],
            "correct_index": 0,
        },
        {
            "question": f"If you encounter a scenario where {first_word} is used, which approach is best?",
            "options": ["Method 1", "Method 2", "Method 3", "Method 4"],
            "correct_index": 2,
        },
        {
            "question": "Which of the following is NOT a feature discussed in this lesson?",
            "options": ["Feature X", "Feature Y", "Feature Z", "None of the above"],
            "correct_index": 1,
        },
    ]


async def summarize_reviews(db, course_id: int) -> str:
    course = await records.get_course(db, course_id)
    if not course:
        raise NotFoundError("Course not found")
    canned = (
        "Overall, students are very satisfied with this course. "
        "The most praised aspect is the hands-on approach and clear explanations. "
        "Some students noted that the pacing of the middle section could be improved."
    )
    return await _ask(
        f'Summarize how learners feel about the course "{course["title"]}" in two sentences.',
        canned,
    )


_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


async def generate_questions_from_content(db, lesson_id: int) -> List[Dict[str, Any]]:
    """Build recall questions from the first sentences of a lesson.

    Each question asks which statement appears in the lesson; the correct
    option is the sentence itself, the distractors are fixed.
    """
    lesson = await _require_lesson(db, lesson_id)
    text = " ".join(filter(None, [lesson["description"], lesson["content"]]))
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text) if len(s.strip()) > 20][:3]

    if not sentences:
        sentences = [f"{lesson['title']} is covered in this course."]

    questions = []
    for i, sentence in enumerate(sentences):
        options = [
            "None of the statements below",
            "The lesson does not cover this topic",
            "This lesson is optional reading",
        ]
        # Rotate the correct answer through the option slots
        correct_index = i % (len(options) + 1)
        options.insert(correct_index, sentence)
        questions.append({
            "question": f'Which statement is made in "{lesson["title"]}"?',
            "options": options,
            "correct_index": correct_index,
        })
    return questions


# ══════════════════════════════════════════════════════════════════════════════
# INSTRUCTOR INSIGHTS
# ══════════════════════════════════════════════════════════════════════════════

def aggregate_failed_attempts(attempts: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Group failed attempts by lesson and pick the one failed most often.

    Ties go to the lesson seen first in `attempts`.

    Returns:
        {lesson_id, count, average_score} or None when attempts is empty
    """
    stats: Dict[int, Dict[str, int]] = {}
    for attempt in attempts:
        entry = stats.setdefault(attempt["lesson_id"], {"count": 0, "total": 0})
        entry["count"] += 1
        entry["total"] += attempt["score"]

    if not stats:
        return None

    # max() keeps the first of equal counts, and dicts keep insertion order
    lesson_id, entry = max(stats.items(), key=lambda item: item[1]["count"])
    return {
        "lesson_id": lesson_id,
        "count": entry["count"],
        "average_score": entry["total"] / entry["count"],
    }


async def instructor_insights(db, user: AuthContext) -> Dict[str, Any]:
    """Hardest lesson across the caller's courses (all courses for admins)."""
    sql = """
        SELECT qa.lesson_id, qa.score
        FROM quiz_attempts qa
        JOIN lessons l ON l.id = qa.lesson_id
        JOIN courses c ON c.id = l.course_id
        WHERE qa.passed = 0
    """
    params: tuple = ()
    if not user.is_admin:
        sql += " AND c.responsible_admin_id = ?"
        params = (user.user_id,)
    sql += " ORDER BY qa.id"
    cursor = await db.execute(sql, params)
    attempts = [{"lesson_id": row["lesson_id"], "score": row["score"]} for row in await cursor.fetchall()]

    hardest = aggregate_failed_attempts(attempts)
    lesson = await records.get_lesson(db, hardest["lesson_id"]) if hardest else None

    if not lesson:
        return {
            "hardest_lesson": "N/A",
            "most_failed_count": 0,
            "average_score_on_most_failed": 0,
            "recommendation": NO_INSIGHTS_MESSAGE,
        }

    return {
        "hardest_lesson": lesson["title"],
        "most_failed_count": hardest["count"],
        "average_score_on_most_failed": hardest["average_score"],
        "recommendation": (
            f'Students are struggling with "{lesson["title"]}". Consider adding more document '
            "resources or an extra video explanation for this topic."
        ),
    }
