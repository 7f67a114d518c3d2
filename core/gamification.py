"""XP tiers, streaks, badges and leaderboard ranking."""

from datetime import date, timedelta

from .config import LEAGUES, RANK_TITLES, XP_CAP

PERFECT_ROUND_MIN_ANSWERS = 10

BADGES = [
    {'key': 'first_win', 'name': 'First Victory', 'description': 'Complete your first session'},
    {'key': 'streak_3', 'name': 'On Fire', 'description': '3 Day Streak'},
    {'key': 'xp_1000', 'name': 'Kilo Speller', 'description': 'Earn 1000 XP'},
    {'key': 'perfect_round', 'name': 'Perfectionist', 'description': '100% Correct in a session'},
    {'key': 'champion', 'name': 'Champion', 'description': 'Reach #1 in Leaderboard'},
    {'key': 'master', 'name': 'The Master', 'description': 'Reach Master Level'},
]


def _tier(thresholds: list, xp: int) -> str:
    name = thresholds[0][1]
    for minimum, label in thresholds:
        if xp >= minimum:
            name = label
    return name


def league_for_xp(xp: int) -> str:
    return _tier(LEAGUES, xp or 0)


def rank_title(xp: int) -> str:
    return _tier(RANK_TITLES, xp or 0)


def next_level_xp(xp: int) -> int:
    """XP needed for the next rank title (capped at XP_CAP)."""
    for minimum, _ in RANK_TITLES:
        if (xp or 0) < minimum:
            return minimum
    return XP_CAP


def level_progress(xp: int) -> dict:
    xp = xp or 0
    target = next_level_xp(xp)
    return {
        'title': rank_title(xp),
        'league': league_for_xp(xp),
        'xp': xp,
        'next_level_xp': target,
        'xp_to_next': max(0, target - xp),
        'progress_percent': min(xp / target * 100, 100)
    }


def _as_date(value) -> date | None:
    if value is None or value == '':
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def next_streak(current_streak: int, last_practice_date, today: date) -> int:
    """Daily streak after practicing on ``today``."""
    last = _as_date(last_practice_date)
    if last == today:
        return max(current_streak or 0, 1)
    if last == today - timedelta(days=1):
        return (current_streak or 0) + 1
    return 1


def rank_students(students: list, grade: int = None) -> list[dict]:
    """Leaderboard rows sorted by XP, ranked within the (optionally) filtered list."""
    filtered = [s for s in students if grade is None or s.grade == grade]
    ordered = sorted(filtered, key=lambda s: (-(s.total_xp or 0), s.last_name, s.first_name))
    rows = []
    for index, student in enumerate(ordered):
        row = student.to_dict(include_password=False)
        row['rank'] = index + 1
        row['league'] = league_for_xp(student.total_xp)
        rows.append(row)
    return rows


def student_rank(students: list, student_id: str, grade: int = None) -> int | None:
    for row in rank_students(students, grade):
        if row['id'] == student_id:
            return row['rank']
    return None


def evaluate_badges(student, earned: set, leaderboard: list = None,
                    answered: int = 0, correct: int = 0) -> list[str]:
    """Badge keys the student qualifies for and does not have yet."""
    xp = student.total_xp or 0
    qualifies = {
        'first_win': xp > 0,
        'streak_3': (student.current_streak or 0) >= 3,
        'xp_1000': xp >= 1000,
        'perfect_round': answered >= PERFECT_ROUND_MIN_ANSWERS and correct == answered,
        'champion': bool(leaderboard) and student_rank(leaderboard, student.id, student.grade) == 1,
        'master': rank_title(xp) == RANK_TITLES[-1][1],
    }
    return [b['key'] for b in BADGES if qualifies[b['key']] and b['key'] not in earned]
