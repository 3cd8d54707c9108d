"""HTTP tests: auth, catalog, enrollment rules, quizzes, staff actions and reports.

Run with: pytest tests/test_courses_api.py -v
"""

import pytest


def _register(client, name, email, role="LEARNER"):
    resp = client.post("/api/auth/register", json={
        "name": name, "email": email, "password": "secret123", "role": role,
    })
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture
def people(client):
    instructor_id, instructor = _register(client, "Ivy Instructor", "ivy@example.com", "INSTRUCTOR")
    learner_id, learner = _register(client, "Lee Learner", "lee@example.com")
    return {
        "instructor_id": instructor_id,
        "instructor": instructor,
        "learner_id": learner_id,
        "learner": learner,
    }


def _create_course(client, headers, **overrides):
    payload = {"title": "Python Basics", "published": True, **overrides}
    resp = client.post("/api/courses", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestAuth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert "timestamp" in resp.json()

    def test_duplicate_registration(self, client, people):
        resp = client.post("/api/auth/register", json={
            "name": "Lee Again", "email": "LEE@example.com", "password": "secret123",
        })
        assert resp.status_code == 409
        assert resp.json()["detail"] == "User already exists"

    def test_short_password_rejected(self, client):
        resp = client.post("/api/auth/register", json={
            "name": "Shorty", "email": "short@example.com", "password": "123",
        })
        assert resp.status_code == 422

    def test_login(self, client, people):
        ok = client.post("/api/auth/login", json={"email": "lee@example.com", "password": "secret123"})
        assert ok.status_code == 200
        assert ok.json()["user"]["role"] == "LEARNER"

        bad = client.post("/api/auth/login", json={"email": "lee@example.com", "password": "nope123"})
        assert bad.status_code == 401
        assert bad.json()["detail"] == "Invalid credentials"

    def test_me_includes_badge(self, client, people):
        resp = client.get("/api/auth/me", headers=people["learner"])
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["total_points"] == 0
        assert user["badge"]["name"] == "Newbie"
        assert "password_hash" not in user

    def test_missing_token_blocked(self, client):
        resp = client.get("/api/courses/my/enrolled")
        assert resp.status_code == 401

    def test_bad_token_rejected(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_lowercase_bearer_scheme_accepted(self, client, people):
        token = people["learner"]["Authorization"].split(" ", 1)[1]
        resp = client.get("/api/auth/me", headers={"Authorization": f"bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "lee@example.com"


class TestCourses:

    def test_learner_cannot_create(self, client, people):
        resp = client.post("/api/courses", json={"title": "Nope"}, headers=people["learner"])
        assert resp.status_code == 403

    def test_paid_requires_price(self, client, people):
        resp = client.post("/api/courses", json={"title": "Paid", "access_rule": "PAID"},
                           headers=people["instructor"])
        assert resp.status_code == 400

    def test_invalid_website_rejected(self, client, people):
        resp = client.post("/api/courses", json={"title": "Bad URL", "website": "not a url"},
                           headers=people["instructor"])
        assert resp.status_code == 422

    def test_catalog_visibility(self, client, people):
        _create_course(client, people["instructor"], title="Public")
        _create_course(client, people["instructor"], title="Members", visibility="SIGNED_IN")
        _create_course(client, people["instructor"], title="Draft", published=False)

        anonymous = [c["title"] for c in client.get("/api/courses").json()]
        signed_in = [c["title"] for c in client.get("/api/courses", headers=people["learner"]).json()]
        assert anonymous == ["Public"]
        assert sorted(signed_in) == ["Members", "Public"]

    def test_detail_counts_learner_views(self, client, people):
        course = _create_course(client, people["instructor"])
        client.get(f"/api/courses/{course['id']}", headers=people["learner"])
        resp = client.get(f"/api/courses/{course['id']}")
        assert resp.status_code == 200
        assert resp.json()["views_count"] == 2
        assert resp.json()["responsible_admin"]["name"] == "Ivy Instructor"

    def test_signed_in_course_needs_login(self, client, people):
        course = _create_course(client, people["instructor"], visibility="SIGNED_IN")
        assert client.get(f"/api/courses/{course['id']}").status_code == 401

    def test_unpublished_hidden_from_learner(self, client, people):
        course = _create_course(client, people["instructor"], published=False)
        assert client.get(f"/api/courses/{course['id']}", headers=people["learner"]).status_code == 404
        assert client.get(f"/api/courses/{course['id']}", headers=people["instructor"]).status_code == 200

    def test_update_by_other_instructor_forbidden(self, client, people):
        course = _create_course(client, people["instructor"])
        _, other = _register(client, "Otto Other", "otto@example.com", "INSTRUCTOR")
        resp = client.put(f"/api/courses/{course['id']}", json={"title": "Mine now"}, headers=other)
        assert resp.status_code == 403

    def test_update_switching_to_open_clears_price(self, client, people):
        course = _create_course(client, people["instructor"], access_rule="PAID", price=49.0)
        resp = client.put(f"/api/courses/{course['id']}", json={"access_rule": "OPEN"},
                          headers=people["instructor"])
        assert resp.status_code == 200
        assert resp.json()["price"] is None


class TestEnrollment:

    def test_open_enroll_once(self, client, people):
        course = _create_course(client, people["instructor"])
        url = f"/api/courses/{course['id']}/enroll"
        assert client.post(url, headers=people["learner"]).status_code == 201
        assert client.post(url, headers=people["learner"]).status_code == 409

        enrolled = client.get("/api/courses/my/enrolled", headers=people["learner"]).json()
        assert [c["id"] for c in enrolled] == [course["id"]]
        assert enrolled[0]["progress"] == 0

    def test_invite_flow(self, client, people):
        course = _create_course(client, people["instructor"], access_rule="INVITE")
        url = f"/api/courses/{course['id']}/enroll"

        blocked = client.post(url, headers=people["learner"])
        assert blocked.status_code == 403
        assert blocked.json()["requires_invitation"] is True

        invite = client.post(f"/api/courses/{course['id']}/invite",
                             json={"email": "lee@example.com"}, headers=people["instructor"])
        assert invite.status_code == 201
        assert invite.json()["status"] == "PENDING"

        detail = client.get(f"/api/courses/{course['id']}", headers=people["learner"]).json()
        assert detail["enrollment_status"] == "INVITED_PENDING"
        assert detail["can_start"] is False

        reply = client.post(f"/api/courses/{course['id']}/invitation",
                            json={"accept": True}, headers=people["learner"])
        assert reply.json()["status"] == "ACCEPTED"
        assert client.post(url, headers=people["learner"]).status_code == 201

    def test_invite_unknown_email(self, client, people):
        course = _create_course(client, people["instructor"], access_rule="INVITE")
        resp = client.post(f"/api/courses/{course['id']}/invite",
                           json={"email": "ghost@example.com"}, headers=people["instructor"])
        assert resp.status_code == 404

    def test_paid_flow(self, client, people):
        course = _create_course(client, people["instructor"], access_rule="PAID", price=25.0)
        url = f"/api/courses/{course['id']}/enroll"

        unpaid = client.post(url, headers=people["learner"])
        assert unpaid.status_code == 402
        assert unpaid.json()["price"] == 25.0
        assert unpaid.json()["currency"] == "USD"

        paid = client.post(url, json={"confirmed": True}, headers=people["learner"])
        assert paid.status_code == 201
        assert paid.json()["paid_amount"] == 25.0

    def test_unknown_course(self, client, people):
        assert client.post("/api/courses/9999/enroll", headers=people["learner"]).status_code == 404


class TestLessonsAndQuiz:

    def _quiz(self, client, people):
        course = _create_course(client, people["instructor"])
        lesson = client.post(f"/api/courses/{course['id']}/lessons", json={
            "title": "Checkpoint", "type": "quiz", "pass_score": 80, "points_reward": 40,
        }, headers=people["instructor"]).json()
        for key in [0, 1, 2, 0]:
            resp = client.post(f"/api/lessons/{lesson['id']}/questions", json={
                "question": "Pick one", "options": ["a", "b", "c", "d"], "correct_index": key,
            }, headers=people["instructor"])
            assert resp.status_code == 201
        client.post(f"/api/courses/{course['id']}/enroll", headers=people["learner"])
        return course, lesson

    def test_question_validation(self, client, people):
        course, lesson = self._quiz(client, people)
        resp = client.post(f"/api/lessons/{lesson['id']}/questions", json={
            "question": "Out of range", "options": ["a", "b"], "correct_index": 2,
        }, headers=people["instructor"])
        assert resp.status_code == 422

    def test_answer_key_hidden_from_learners(self, client, people):
        course, lesson = self._quiz(client, people)
        as_learner = client.get(f"/api/lessons/{lesson['id']}/questions", headers=people["learner"]).json()
        as_owner = client.get(f"/api/lessons/{lesson['id']}/questions", headers=people["instructor"]).json()
        assert len(as_learner) == 4
        assert all("correct_index" not in q for q in as_learner)
        assert [q["correct_index"] for q in as_owner] == [0, 1, 2, 0]

    def test_submit_awards_points_once(self, client, people):
        course, lesson = self._quiz(client, people)
        url = f"/api/lessons/{lesson['id']}/submit"

        first = client.post(url, json={"answers": [0, 1, 2, 0]}, headers=people["learner"]).json()
        second = client.post(url, json={"answers": [0, 1, 2, 0]}, headers=people["learner"]).json()
        assert first["attempt"]["points_earned"] == 40
        assert second["attempt"]["points_earned"] == 0

        me = client.get("/api/auth/me", headers=people["learner"]).json()["user"]
        assert me["total_points"] == 40
        assert me["badge"]["name"] == "Explorer"

    def test_progress_updates_enrollment(self, client, people):
        course = _create_course(client, people["instructor"])
        lessons = [
            client.post(f"/api/courses/{course['id']}/lessons", json={"title": t, "position": i},
                        headers=people["instructor"]).json()
            for i, t in enumerate(["One", "Two"])
        ]
        client.post(f"/api/courses/{course['id']}/enroll", headers=people["learner"])

        resp = client.post(f"/api/lessons/{lessons[0]['id']}/progress",
                           json={"is_completed": True, "time_spent": 120}, headers=people["learner"])
        assert resp.status_code == 200
        assert resp.json()["course_progress"] == 50

        # Time accumulates, completion sticks when omitted
        resp = client.post(f"/api/lessons/{lessons[0]['id']}/progress",
                           json={"time_spent": 30}, headers=people["learner"])
        assert resp.json()["time_spent"] == 150
        assert resp.json()["is_completed"] is True

        listed = client.get(f"/api/courses/{course['id']}/lessons", headers=people["learner"]).json()
        assert [l["is_completed"] for l in listed] == [True, False]


class TestStaffActions:

    def test_bulk_reset_and_unknown_action(self, client, people):
        course = _create_course(client, people["instructor"])
        lesson = client.post(f"/api/courses/{course['id']}/lessons", json={"title": "Only"},
                             headers=people["instructor"]).json()
        client.post(f"/api/courses/{course['id']}/enroll", headers=people["learner"])
        client.post(f"/api/lessons/{lesson['id']}/progress", json={"is_completed": True},
                    headers=people["learner"])

        url = f"/api/courses/{course['id']}/bulk-action"
        bad = client.post(url, json={"action": "promote", "user_ids": [people["learner_id"]]},
                          headers=people["instructor"])
        assert bad.status_code == 400

        empty = client.post(url, json={"action": "unenroll", "user_ids": []}, headers=people["instructor"])
        assert empty.status_code == 422

        reset = client.post(url, json={"action": "reset_progress", "user_ids": [people["learner_id"]]},
                            headers=people["instructor"])
        assert reset.status_code == 200

        attendees = client.get(f"/api/courses/{course['id']}/attendees", headers=people["instructor"]).json()
        assert attendees["enrollments"][0]["progress"] == 0
        assert attendees["enrollments"][0]["completed"] is False

        client.post(url, json={"action": "unenroll", "user_ids": [people["learner_id"]]},
                    headers=people["instructor"])
        attendees = client.get(f"/api/courses/{course['id']}/attendees", headers=people["instructor"]).json()
        assert attendees["enrollments"] == []

    def test_learner_cannot_view_attendees(self, client, people):
        course = _create_course(client, people["instructor"])
        resp = client.get(f"/api/courses/{course['id']}/attendees", headers=people["learner"])
        assert resp.status_code == 403

    def test_contact_counts_recipients(self, client, people):
        course = _create_course(client, people["instructor"])
        client.post(f"/api/courses/{course['id']}/enroll", headers=people["learner"])
        resp = client.post(f"/api/courses/{course['id']}/contact",
                           json={"subject": "Welcome", "message": "Hi all"}, headers=people["instructor"])
        assert resp.json()["recipients"] == 1

    def test_insights_require_instructor(self, client, people):
        assert client.get("/api/ai/instructor-insights", headers=people["learner"]).status_code == 403
        resp = client.get("/api/ai/instructor-insights", headers=people["instructor"])
        assert resp.status_code == 200
        assert resp.json()["hardest_lesson"] == "N/A"

    def test_explain_unknown_lesson(self, client, people):
        resp = client.post("/api/ai/explain", json={"lesson_id": 9999}, headers=people["learner"])
        assert resp.status_code == 404

    def test_generate_quiz_saves_questions(self, client, people):
        course = _create_course(client, people["instructor"])
        source = client.post(f"/api/courses/{course['id']}/lessons", json={
            "title": "Loops", "content": "A for loop walks a sequence. A while loop repeats until a test fails.",
        }, headers=people["instructor"]).json()
        quiz = client.post(f"/api/courses/{course['id']}/lessons", json={"title": "Quiz", "type": "quiz"},
                           headers=people["instructor"]).json()

        resp = client.post("/api/ai/generate-quiz", json={"lesson_id": source["id"], "quiz_id": quiz["id"]},
                           headers=people["instructor"])
        assert resp.status_code == 201
        saved = resp.json()
        assert len(saved) == 2
        for question in saved:
            assert 0 <= question["correct_index"] < len(question["options"])


class TestReports:

    def test_csv_export(self, client, people):
        course = _create_course(client, people["instructor"], title="Data Science")
        client.post(f"/api/courses/{course['id']}/enroll", headers=people["learner"])

        resp = client.get("/api/reports/participants.csv", headers=people["instructor"])
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.splitlines()
        assert lines[0] == (
            "Sr No.,Course Name,Participant,Enrolled Date,Start Date,"
            "Time Spent,Completion %,Completed Date,Status"
        )
        assert lines[1].startswith("1,Data Science,Lee Learner,")
        assert lines[1].endswith(",yet_to_start")

    def test_json_report_and_column_selection(self, client, people):
        course = _create_course(client, people["instructor"])
        client.post(f"/api/courses/{course['id']}/enroll", headers=people["learner"])

        report = client.get("/api/reports/participants", headers=people["instructor"]).json()
        assert report["summary"]["total"] == 1

        resp = client.get("/api/reports/participants.csv?columns=participant,status",
                          headers=people["instructor"])
        assert resp.text.splitlines() == ["Participant,Status", "Lee Learner,yet_to_start"]

    def test_learners_cannot_report(self, client, people):
        assert client.get("/api/reports/participants", headers=people["learner"]).status_code == 403
