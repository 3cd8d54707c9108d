"""Tests for the role hierarchy and the badge ladder."""

from learnsphere.services.badges import badge_for_points, badge_progress, badge_summary, next_badge
from learnsphere.services.roles import AuthContext, Role, RoleHierarchy


class TestRoleHierarchy:

    def test_levels(self):
        h = RoleHierarchy()
        assert h.level("LEARNER") == 1
        assert h.level("INSTRUCTOR") == 2
        assert h.level("ADMIN") == 3

    def test_unknown_role_ranks_lowest(self):
        h = RoleHierarchy()
        assert h.level("GUEST") == 0
        assert h.level(None) == 0
        assert h.has_minimum_role("GUEST", "LEARNER") is False

    def test_minimum_role(self):
        h = RoleHierarchy()
        assert h.has_minimum_role("ADMIN", "INSTRUCTOR") is True
        assert h.has_minimum_role("INSTRUCTOR", "INSTRUCTOR") is True
        assert h.has_minimum_role("LEARNER", "INSTRUCTOR") is False

    def test_custom_levels_flow_through_context(self):
        flat = RoleHierarchy(levels={"LEARNER": 1, "INSTRUCTOR": 1, "ADMIN": 1})
        ctx = AuthContext(user_id=1, email="a@example.com", role="LEARNER", hierarchy=flat)
        assert ctx.has_minimum_role(Role.ADMIN) is True


class TestAuthContext:

    def test_can_manage(self):
        owner = AuthContext(user_id=5, email="o@example.com", role="INSTRUCTOR")
        admin = AuthContext(user_id=9, email="a@example.com", role="ADMIN")
        assert owner.can_manage(5) is True
        assert owner.can_manage(6) is False
        assert admin.can_manage(6) is True
        assert admin.is_admin and not owner.is_admin


class TestBadges:

    def test_badge_for_points(self):
        assert badge_for_points(0)["name"] == "Newbie"
        assert badge_for_points(39)["name"] == "Newbie"
        assert badge_for_points(40)["name"] == "Explorer"
        assert badge_for_points(119)["name"] == "Expert"
        assert badge_for_points(500)["name"] == "Master"

    def test_next_badge(self):
        assert next_badge(0)["name"] == "Newbie"
        assert next_badge(20)["name"] == "Explorer"
        assert next_badge(120) is None

    def test_progress(self):
        assert badge_progress(0) == 0
        assert badge_progress(10) == 50
        assert badge_progress(30) == 50
        assert badge_progress(50) == 50
        assert badge_progress(120) == 100

    def test_summary_shape(self):
        summary = badge_summary(45)
        assert summary["badge"]["name"] == "Explorer"
        assert summary["next_badge"]["name"] == "Achiever"
        assert summary["badge_progress"] == 25
