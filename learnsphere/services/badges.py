"""Badge ladder derived from a learner's total points."""

BADGES = [
    {"name": "Newbie", "points": 20, "icon": "🌱"},
    {"name": "Explorer", "points": 40, "icon": "🧭"},
    {"name": "Achiever", "points": 60, "icon": "🏆"},
    {"name": "Specialist", "points": 80, "icon": "⭐"},
    {"name": "Expert", "points": 100, "icon": "💎"},
    {"name": "Master", "points": 120, "icon": "👑"},
]

# Fixed hint shown on the quiz result screen
NEXT_BADGE_PROGRESS_HINT = 75


def badge_for_points(points: int) -> dict:
    """Highest badge whose threshold is reached; Newbie below the first threshold."""
    for badge in sorted(BADGES, key=lambda b: b["points"], reverse=True):
        if points >= badge["points"]:
            return badge
    return BADGES[0]


def next_badge(points: int) -> dict | None:
    for badge in sorted(BADGES, key=lambda b: b["points"]):
        if points < badge["points"]:
            return badge
    return None


def badge_progress(points: int) -> int:
    """Percentage of the way from the current badge to the next one."""
    upcoming = next_badge(points)
    if upcoming is None:
        return 100
    current = badge_for_points(points)
    span = upcoming["points"] - current["points"]
    if span <= 0:
        # Below the first threshold both resolve to the first badge
        span = upcoming["points"]
        base = 0
    else:
        base = current["points"]
    pct = (points - base) / span * 100
    return int(max(0, min(100, pct)) + 0.5)


def badge_summary(points: int) -> dict:
    return {
        "badge": badge_for_points(points),
        "next_badge": next_badge(points),
        "badge_progress": badge_progress(points),
    }
