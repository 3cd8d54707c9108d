"""Participant report rows, status buckets and CSV output."""

import pytest

from learnsphere.errors import InvalidStateError
from learnsphere.services import lesson_service, reporting
from learnsphere.services.roles import AuthContext


class TestHelpers:

    def test_format_duration(self):
        assert reporting.format_duration(0) == "00:00"
        assert reporting.format_duration(59) == "00:00"
        assert reporting.format_duration(5400) == "01:30"

    def test_status(self):
        assert reporting.participant_status(0, has_activity=False) == "yet_to_start"
        assert reporting.participant_status(40, has_activity=True) == "in_progress"
        assert reporting.participant_status(100, has_activity=True) == "completed"

    def test_resolve_columns_keeps_export_order(self):
        assert reporting.resolve_columns(None) == list(reporting.REPORT_COLUMNS)
        assert reporting.resolve_columns("status, sr_no") == ["sr_no", "status"]

    def test_resolve_columns_rejects_unknown(self):
        with pytest.raises(InvalidStateError):
            reporting.resolve_columns("sr_no,shoe_size")

    def test_csv(self):
        rows = [{"sr_no": 1, "participant": "Lee, Jr.", "completed_date": None}]
        text = reporting.rows_to_csv(rows, ["sr_no", "participant", "completed_date"])
        assert text.splitlines() == ["Sr No.,Participant,Completed Date", '1,"Lee, Jr.",']


class TestParticipantRows:

    def test_rows_and_summary(self, run_db, factory):
        async def _go(db):
            owner = await factory.user(db, "Ivy Instructor", role="INSTRUCTOR")
            course = await factory.course(db, owner, "Data Science")
            lesson = await factory.lesson(db, course, "Pandas")
            starter = await factory.user(db, "Sam Starter")
            idle = await factory.user(db, "Ina Idle")
            await factory.enroll(db, starter, course)
            await factory.enroll(db, idle, course)
            await db.execute(
                """INSERT INTO lesson_progress (user_id, lesson_id, is_completed, time_spent, last_accessed)
                   VALUES (?, ?, 0, 600, '2026-01-02T10:00:00+00:00')""",
                (starter, lesson),
            )
            await db.commit()
            user = AuthContext(user_id=owner, email="ivy@example.com", role="INSTRUCTOR")
            return (
                await reporting.participant_rows(db, user),
                await reporting.participant_rows(db, user, search="sam"),
            )

        rows, searched = run_db(_go)
        by_name = {r["participant"]: r for r in rows}
        assert by_name["Sam Starter"]["status"] == "in_progress"
        assert by_name["Sam Starter"]["time_spent"] == "00:10"
        assert by_name["Sam Starter"]["start_date"] == "2026-01-02T10:00:00+00:00"
        assert by_name["Ina Idle"]["status"] == "yet_to_start"
        assert [r["sr_no"] for r in rows] == [1, 2]
        assert reporting.summarize(rows) == {
            "total": 2, "yet_to_start": 1, "in_progress": 1, "completed": 0,
        }
        assert [r["participant"] for r in searched] == ["Sam Starter"]

    def test_start_date_survives_later_visits(self, run_db, factory):
        async def _go(db):
            owner = await factory.user(db, "Ivy Instructor", role="INSTRUCTOR")
            course = await factory.course(db, owner, "Data Science")
            lesson = await factory.lesson(db, course, "Pandas")
            learner = await factory.user(db, "Sam Starter")
            await factory.enroll(db, learner, course)
            await db.execute(
                """INSERT INTO lesson_progress
                       (user_id, lesson_id, is_completed, time_spent, first_accessed, last_accessed)
                   VALUES (?, ?, 0, 60, '2026-01-02T10:00:00+00:00', '2026-01-02T10:00:00+00:00')""",
                (learner, lesson),
            )
            await db.commit()
            await lesson_service.update_progress(db, lesson, learner, time_spent=120)
            cursor = await db.execute(
                "SELECT last_accessed FROM lesson_progress WHERE user_id = ?", (learner,)
            )
            last_accessed = (await cursor.fetchone())[0]
            user = AuthContext(user_id=owner, email="ivy@example.com", role="INSTRUCTOR")
            return last_accessed, await reporting.participant_rows(db, user)

        last_accessed, rows = run_db(_go)
        assert last_accessed != "2026-01-02T10:00:00+00:00"
        assert rows[0]["start_date"] == "2026-01-02T10:00:00+00:00"
        assert rows[0]["time_spent"] == "00:03"
