#!/usr/bin/env python3
"""Seed a demo admin and a published course.

Usage:
    python scripts/seed_demo.py [--email EMAIL] [--password PASSWORD]

Uses DATABASE_URL / DATABASE_PATH from .env, runs migrations first, and
creates:
1. An ADMIN user (skipped if the email already exists)
2. A published OPEN course owned by that admin
3. A video lesson, a document lesson and a 4-question quiz lesson
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from learnsphere.db import records
from learnsphere.db.database import close_db, get_db, init_db, utcnow
from learnsphere.routes.auth import hash_password
from learnsphere.services import course_service, lesson_service, quiz_scorer
from learnsphere.services.roles import AuthContext, Role

logger = logging.getLogger("seed_demo")

QUIZ = [
    ("Which keyword defines a function?", ["def", "func", "lambda", "fn"], 0),
    ("What does len([1, 2, 3]) return?", ["2", "3", "4", "An error"], 1),
    ("Which type is immutable?", ["list", "dict", "tuple", "set"], 2),
    ("What is printed by print(2 ** 3)?", ["8", "6", "9", "5"], 0),
]


async def _ensure_admin(db, email: str, password: str) -> int:
    existing = await records.get_user_by_email(db, email)
    if existing:
        logger.info("Admin %s already exists (id=%s)", email, existing["id"])
        return existing["id"]
    cursor = await db.execute(
        """INSERT INTO users (name, email, password_hash, role, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        ("Demo Admin", email.lower(), hash_password(password), Role.ADMIN.value, utcnow()),
    )
    await db.commit()
    logger.info("Created admin %s (id=%s)", email, cursor.lastrowid)
    return cursor.lastrowid


async def seed(email: str, password: str) -> None:
    await init_db()
    try:
        async for db in get_db():
            admin_id = await _ensure_admin(db, email, password)
            admin = AuthContext(user_id=admin_id, email=email, role=Role.ADMIN.value, name="Demo Admin")

            course = await course_service.create_course(db, {
                "title": "Python for Beginners",
                "description": "Variables, functions and collections, one small step at a time.",
                "tags": ["python", "programming"],
                "published": True,
            }, admin)

            await lesson_service.create_lesson(db, course["id"], {
                "title": "Getting started", "type": "video", "position": 0, "duration": 12,
                "content": "https://example.com/videos/getting-started.mp4",
            }, admin)
            await lesson_service.create_lesson(db, course["id"], {
                "title": "Cheat sheet", "type": "document", "position": 1,
                "content": "Python uses indentation to group statements. Lists are mutable sequences.",
            }, admin)
            quiz = await lesson_service.create_lesson(db, course["id"], {
                "title": "Checkpoint quiz", "type": "quiz", "position": 2,
                "pass_score": 80, "points_reward": 40,
            }, admin)
            for position, (question, options, correct_index) in enumerate(QUIZ):
                await quiz_scorer.create_question(db, quiz["id"], {
                    "question": question,
                    "options": options,
                    "correct_index": correct_index,
                    "position": position,
                }, admin)

            logger.info("Seeded course %s with 3 lessons", course["id"])
    finally:
        await close_db()


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s [%(name)s] %(message)s")
    parser = argparse.ArgumentParser(description="Seed LearnSphere demo data")
    parser.add_argument("--email", default="admin@learnsphere.local")
    parser.add_argument("--password", default="admin123")
    args = parser.parse_args()
    asyncio.run(seed(args.email, args.password))


if __name__ == "__main__":
    main()
