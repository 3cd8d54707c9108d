"""Role hierarchy and the per-request auth context.

LEARNER < INSTRUCTOR < ADMIN. The hierarchy is built once at startup and
attached to app.state, so handlers receive it through AuthContext rather than
importing a module-level table.
"""

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    LEARNER = "LEARNER"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"


DEFAULT_LEVELS = {
    Role.LEARNER.value: 1,
    Role.INSTRUCTOR.value: 2,
    Role.ADMIN.value: 3,
}


@dataclass(frozen=True)
class RoleHierarchy:
    levels: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_LEVELS))

    def level(self, role: str | None) -> int:
        # Unknown roles rank below every real role
        return self.levels.get(role or "", 0)

    def has_minimum_role(self, role: str | None, required: str) -> bool:
        return self.level(role) >= self.level(required)


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    email: str
    role: str
    name: str = ""
    hierarchy: RoleHierarchy = field(default_factory=RoleHierarchy)

    def has_minimum_role(self, required: str | Role) -> bool:
        required = required.value if isinstance(required, Role) else required
        return self.hierarchy.has_minimum_role(self.role, required)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def can_manage(self, responsible_admin_id: int | None) -> bool:
        """Course owners and admins may manage a course and its content."""
        return self.is_admin or responsible_admin_id == self.user_id
