"""Shared fixtures.

Settings are read at import time, so the environment is set here before any
learnsphere module is imported.
"""

import asyncio
import os
from types import SimpleNamespace

os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["DATABASE_URL"] = ""
os.environ["AI_PROVIDER"] = "stub"

import pytest

from learnsphere.db.database import apply_schema, connect_sqlite, get_db, utcnow


@pytest.fixture
def db_file(tmp_path):
    """Path of a SQLite file with the full schema applied."""
    path = str(tmp_path / "learnsphere_test.db")

    async def _create():
        db = await connect_sqlite(path)
        try:
            await apply_schema(db)
        finally:
            await db.close()

    asyncio.run(_create())
    return path


@pytest.fixture
def run_db(db_file):
    """Run `await fn(db)` on a fresh connection to the test database.

    Each call gets its own event loop, so a connection never outlives one call.
    """
    def _run(fn):
        async def _main():
            db = await connect_sqlite(db_file)
            try:
                return await fn(db)
            finally:
                await db.close()
        return asyncio.run(_main())
    return _run


# ── Row factories ────────────────────────────────────────────────────

async def create_user(db, name="Learner", role="LEARNER", email=None, points=0):
    from learnsphere.routes.auth import hash_password

    email = email or f"{name.lower().replace(' ', '.')}@example.com"
    cursor = await db.execute(
        """INSERT INTO users (name, email, password_hash, role, total_points, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (name, email, hash_password("secret123"), role, points, utcnow()),
    )
    await db.commit()
    return cursor.lastrowid


async def create_course(db, admin_id, title="Python Basics", access_rule="OPEN",
                        price=None, published=True, visibility="EVERYONE"):
    now = utcnow()
    cursor = await db.execute(
        """INSERT INTO courses (title, description, tags, published, visibility, access_rule,
                                price, currency, responsible_admin_id, created_at, updated_at)
           VALUES (?, ?, '[]', ?, ?, ?, ?, 'USD', ?, ?, ?)""",
        (title, f"All about {title}", int(published), visibility, access_rule,
         price, admin_id, now, now),
    )
    await db.commit()
    return cursor.lastrowid


async def create_lesson(db, course_id, title="Intro", type="video",
                        pass_score=80, points_reward=10, position=0):
    now = utcnow()
    cursor = await db.execute(
        """INSERT INTO lessons (course_id, title, description, content, type, position,
                                pass_score, points_reward, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (course_id, title, f"{title} overview", f"{title} content. It has several parts.",
         type, position, pass_score, points_reward, now, now),
    )
    await db.commit()
    return cursor.lastrowid


async def create_question(db, lesson_id, correct_index, position=0, options=None):
    import json

    options = options or ["A", "B", "C", "D"]
    cursor = await db.execute(
        """INSERT INTO quiz_questions (lesson_id, question, options, correct_index, position, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (lesson_id, f"Question {position + 1}", json.dumps(options), correct_index, position, utcnow()),
    )
    await db.commit()
    return cursor.lastrowid


async def enroll(db, user_id, course_id):
    await db.execute(
        "INSERT INTO enrollments (user_id, course_id, started_at) VALUES (?, ?, ?)",
        (user_id, course_id, utcnow()),
    )
    await db.commit()


@pytest.fixture
def factory():
    return SimpleNamespace(
        user=create_user,
        course=create_course,
        lesson=create_lesson,
        question=create_question,
        enroll=enroll,
    )


# ── HTTP ─────────────────────────────────────────────────────────────

@pytest.fixture
def client(db_file):
    """TestClient bound to the test database. Lifespan (migrations) is not run."""
    from fastapi.testclient import TestClient
    from learnsphere.server import app

    async def _test_db():
        db = await connect_sqlite(db_file)
        try:
            yield db
        finally:
            await db.close()

    app.dependency_overrides[get_db] = _test_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(user_id, email, role="LEARNER"):
    from learnsphere.routes.auth import create_token

    return {"Authorization": f"Bearer {create_token(user_id, email, role)}"}


@pytest.fixture
def make_auth():
    return auth_header
