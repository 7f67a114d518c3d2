"""Read-only summaries for dashboards, history and rosters."""

from .config import GRADES


def session_summary(session) -> dict:
    return {
        'id': session.id,
        'date': session.date,
        'grade': session.grade,
        'moderator': session.moderator,
        'stage': session.stage,
        'contest_type': session.contest_type,
        'duration_seconds': session.duration_seconds,
        'attempt_count': len(session.attempts),
        'correct_count': session.correct_count,
        'accuracy': session.accuracy
    }


def sort_sessions(sessions: list) -> list:
    """Newest first."""
    return sorted(sessions, key=lambda s: s.date, reverse=True)


def session_history(sessions: list) -> list[dict]:
    return [session_summary(s) for s in sort_sessions(sessions)]


def student_breakdown(session) -> list[dict]:
    """Per-student totals for one session, in order of first appearance."""
    rows = {}
    for attempt in session.attempts:
        row = rows.setdefault(attempt.student_id, {
            'student_id': attempt.student_id,
            'student_name': attempt.student_name,
            'attempts': 0,
            'correct': 0,
            'incorrect': 0,
            'skipped': 0
        })
        row['attempts'] += 1
        row[attempt.result] += 1
    return list(rows.values())


def word_counts_by_grade(words: list) -> list[dict]:
    """Words per grade for the dashboard chart (grades 1-11)."""
    return [
        {'grade': grade, 'count': sum(1 for w in words if w.grade == grade)}
        for grade in GRADES if grade <= 11
    ]


def dashboard_summary(words: list) -> dict:
    return {
        'total_words': len(words),
        'hard_words': sum(1 for w in words if w.difficulty == 'Hard'),
        'by_grade': word_counts_by_grade(words)
    }


def filter_students(students: list, grade: int = None, school: str = None) -> list:
    """Roster filtered by grade/school, sorted by grade then last name."""
    result = [
        s for s in students
        if (grade is None or s.grade == grade) and (school is None or s.school == school)
    ]
    return sorted(result, key=lambda s: (s.grade, s.last_name.lower()))


def distinct_schools(students: list) -> list[str]:
    return sorted({s.school for s in students if s.school})
