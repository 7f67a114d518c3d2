"""Unit tests for XP tiers, streaks, badges, reports and logins."""

import unittest
from datetime import date

from core.audio import pronounce
from core.auth import hash_password, load_teacher_credentials, validate_teacher_credentials, verify_password
from core.gamification import (
    evaluate_badges, league_for_xp, level_progress, next_streak, rank_students, rank_title, student_rank
)
from core.models import Attempt, Session, StudentProfile, WordEntry
from core.reports import (
    dashboard_summary, distinct_schools, filter_students, session_history, student_breakdown
)
from core.utils import grade_label

from mocks import MockAudioPlayer


def student(id: str, xp: int, grade: int = 1, last: str = 'Smith', school: str = 'Central'):
    return StudentProfile(id, id.upper(), last, school, grade, total_xp=xp, password='secret')


def attempt(student_id: str, result: str) -> Attempt:
    return Attempt(0, student_id, student_id.upper(), 'w1', 'Puppy', 'puppy', True, True, 1, result, 1)


class TestTiers(unittest.TestCase):

    def test_leagues(self):
        self.assertEqual(league_for_xp(0), 'Paper')
        self.assertEqual(league_for_xp(99), 'Paper')
        self.assertEqual(league_for_xp(100), 'Iron')
        self.assertEqual(league_for_xp(1500), 'Gold')
        self.assertEqual(league_for_xp(50_000), 'Diamond')

    def test_rank_titles(self):
        self.assertEqual(rank_title(1000), 'Novice Speller')
        self.assertEqual(rank_title(1001), 'Word Explorer')
        self.assertEqual(rank_title(7001), 'Master of Letters')

    def test_level_progress(self):
        progress = level_progress(500)
        self.assertEqual(progress['next_level_xp'], 1001)
        self.assertEqual(progress['xp_to_next'], 501)
        self.assertEqual(progress['league'], 'Bronze')

    def test_level_progress_capped(self):
        progress = level_progress(12_000)
        self.assertEqual(progress['next_level_xp'], 10_000)
        self.assertEqual(progress['progress_percent'], 100)
        self.assertEqual(progress['xp_to_next'], 0)


class TestStreak(unittest.TestCase):
    today = date(2025, 3, 10)

    def test_consecutive_day_extends(self):
        self.assertEqual(next_streak(4, '2025-03-09', self.today), 5)

    def test_same_day_keeps(self):
        self.assertEqual(next_streak(4, '2025-03-10', self.today), 4)
        self.assertEqual(next_streak(0, date(2025, 3, 10), self.today), 1)

    def test_gap_resets(self):
        self.assertEqual(next_streak(4, '2025-03-07', self.today), 1)

    def test_first_practice(self):
        self.assertEqual(next_streak(0, None, self.today), 1)


class TestLeaderboard(unittest.TestCase):

    def setUp(self):
        self.students = [
            student('a', 50), student('b', 300), student('c', 300, last='Adams'), student('d', 900, grade=2)
        ]

    def test_sorted_by_xp_then_name(self):
        rows = rank_students(self.students)
        self.assertEqual([r['id'] for r in rows], ['d', 'c', 'b', 'a'])
        self.assertEqual([r['rank'] for r in rows], [1, 2, 3, 4])
        self.assertEqual(rows[0]['league'], 'Bronze')

    def test_rows_hide_password(self):
        self.assertNotIn('password', rank_students(self.students)[0])

    def test_ranked_within_grade(self):
        rows = rank_students(self.students, grade=1)
        self.assertEqual([r['id'] for r in rows], ['c', 'b', 'a'])
        self.assertEqual(student_rank(self.students, 'c', grade=1), 1)
        self.assertIsNone(student_rank(self.students, 'd', grade=1))


class TestBadges(unittest.TestCase):

    def test_first_win_and_champion(self):
        s = student('a', 10)
        self.assertEqual(evaluate_badges(s, set(), leaderboard=[s]), ['first_win', 'champion'])

    def test_already_earned_skipped(self):
        s = student('a', 10)
        self.assertEqual(evaluate_badges(s, {'first_win'}), [])

    def test_perfect_round_needs_ten_answers(self):
        s = student('a', 10)
        self.assertNotIn('perfect_round', evaluate_badges(s, set(), answered=9, correct=9))
        self.assertIn('perfect_round', evaluate_badges(s, set(), answered=10, correct=10))
        self.assertNotIn('perfect_round', evaluate_badges(s, set(), answered=10, correct=9))

    def test_master(self):
        s = student('a', 8000)
        s.current_streak = 3
        self.assertEqual(evaluate_badges(s, set()), ['first_win', 'streak_3', 'xp_1000', 'master'])


class TestReports(unittest.TestCase):

    def test_session_history_newest_first(self):
        old = Session('s1', '2025-01-01T10:00', 1, 'Rose')
        new = Session('s2', '2025-02-01T10:00', 2, 'Rose', [attempt('a', 'correct'), attempt('a', 'incorrect')])
        rows = session_history([old, new])
        self.assertEqual([r['id'] for r in rows], ['s2', 's1'])
        self.assertEqual(rows[0]['accuracy'], 50)
        self.assertEqual(rows[1]['accuracy'], 0)

    def test_student_breakdown(self):
        session = Session('s1', '2025-01-01', 1, 'Rose', [
            attempt('a', 'correct'), attempt('b', 'skipped'), attempt('a', 'incorrect')
        ])
        rows = student_breakdown(session)
        self.assertEqual([r['student_id'] for r in rows], ['a', 'b'])
        self.assertEqual((rows[0]['correct'], rows[0]['incorrect'], rows[0]['attempts']), (1, 1, 2))
        self.assertEqual(rows[1]['skipped'], 1)

    def test_dashboard_summary(self):
        words = [WordEntry('1', 'a', '', '', 1, 'Hard'), WordEntry('2', 'b', '', '', 1, 'Easy'),
                 WordEntry('3', 'c', '', '', 12, 'Hard')]
        summary = dashboard_summary(words)
        self.assertEqual(summary['total_words'], 3)
        self.assertEqual(summary['hard_words'], 2)
        self.assertEqual(len(summary['by_grade']), 11)
        self.assertEqual(summary['by_grade'][0], {'grade': 1, 'count': 2})

    def test_filter_students(self):
        students = [student('a', 0, grade=2, last='zed'), student('b', 0, last='Young', school='North'),
                    student('c', 0, last='adams')]
        self.assertEqual([s.id for s in filter_students(students)], ['c', 'b', 'a'])
        self.assertEqual([s.id for s in filter_students(students, school='North')], ['b'])
        self.assertEqual(distinct_schools(students), ['Central', 'North'])

    def test_grade_label(self):
        self.assertEqual(grade_label(3), 'Grade 3')
        self.assertEqual(grade_label(12), 'Group 3')


class TestAuth(unittest.TestCase):

    def test_default_teacher_accounts(self):
        self.assertTrue(validate_teacher_credentials('teacher', 'bee2025', load_teacher_credentials('')))
        self.assertFalse(validate_teacher_credentials('teacher', 'wrong', load_teacher_credentials('')))

    def test_credentials_from_string(self):
        credentials = load_teacher_credentials(' alice:pw1 , bob:pw2,broken')
        self.assertEqual(credentials, [('alice', 'pw1'), ('bob', 'pw2')])
        self.assertTrue(validate_teacher_credentials('bob', 'pw2', credentials))
        self.assertFalse(validate_teacher_credentials('teacher', 'bee2025', credentials))

    def test_verify_password(self):
        stored = hash_password('s3cret')
        self.assertNotEqual(stored, 's3cret')
        self.assertTrue(verify_password(stored, 's3cret'))
        self.assertFalse(verify_password(stored, 'other'))
        self.assertFalse(verify_password(None, 's3cret'))


class TestPronounce(unittest.TestCase):

    def test_plays_recording_when_available(self):
        player = MockAudioPlayer()
        self.assertTrue(pronounce(WordEntry('1', 'Puppy', '', '', 1, audio_url='http://a/p.mp3'), player))
        self.assertEqual(player.played, ['http://a/p.mp3'])
        self.assertEqual(player.spoken, [])

    def test_speaks_without_recording(self):
        player = MockAudioPlayer()
        pronounce(WordEntry('1', 'Puppy', '', '', 1), player)
        self.assertEqual(player.spoken, ['Puppy'])

    def test_failure_is_logged_not_raised(self):
        with self.assertLogs('core.audio', level='WARNING'):
            self.assertFalse(pronounce(WordEntry('1', 'Puppy', '', '', 1), MockAudioPlayer(fail=True)))


if __name__ == '__main__':
    unittest.main()
