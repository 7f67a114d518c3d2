"""In-memory collaborators shared by the test modules."""

import copy
from datetime import datetime, timezone

from core.errors import StorageError
from core.gamification import next_streak
from core.interfaces import AIProvider, AudioPlayer, Storage
from core.models import Achievement


class MockAIProvider(AIProvider):
    """Mock AI provider for testing."""

    def __init__(self):
        self.enrich_calls = []

    def enrich_word(self, word: str, grade: int) -> dict:
        self.enrich_calls.append((word, grade))
        return {'definition': f'Meaning of {word}', 'example': f'Use {word} here.', 'difficulty': 'Hard'}


class MockAudioPlayer(AudioPlayer):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.played = []
        self.spoken = []

    def play_url(self, url: str) -> None:
        if self.fail:
            raise RuntimeError("device busy")
        self.played.append(url)

    def speak(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("device busy")
        self.spoken.append(text)


class MockStorage(Storage):
    """Mock storage for testing.

    Put a method name in ``failing`` to make it raise StorageError.
    """

    def __init__(self, words: list = None, students: list = None):
        self.config = {'gemini_api_key': 'test-api-key'}
        self.words = list(words or [])
        self.students = list(students or [])
        self.sessions = []
        self.stats = []
        self.achievements = []
        self.schools = []
        self.payments = []
        self.resources = []
        self.sponsors = []
        self.vendors = []
        self.failing = set()
        self.reward_calls = []

    def _check(self, method: str):
        if method in self.failing:
            raise StorageError(f"{method} failed")

    def load_config(self) -> dict:
        return self.config

    def fetch_words(self, grade: int = None) -> list:
        self._check('fetch_words')
        return [w for w in self.words if grade is None or w.grade == grade]

    def get_word(self, word_id: str):
        return next((w for w in self.words if w.id == word_id), None)

    def add_word(self, word):
        self.words.append(word)
        return word

    def update_word(self, word):
        for i, existing in enumerate(self.words):
            if existing.id == word.id:
                self.words[i] = word
                return word
        return None

    def delete_word(self, word_id: str) -> bool:
        before = len(self.words)
        self.words = [w for w in self.words if w.id != word_id]
        return len(self.words) < before

    def fetch_students(self, grade: int = None, school_id: str = None) -> list:
        self._check('fetch_students')
        return [copy.copy(s) for s in self.students
                if (grade is None or s.grade == grade) and (school_id is None or s.school_id == school_id)]

    def get_student(self, student_id: str):
        return next((copy.copy(s) for s in self.students if s.id == student_id), None)

    def find_student_by_username(self, username: str):
        return next((s for s in self.students if s.username == username), None)

    def add_student(self, student):
        self.students.append(student)
        return student

    def update_student(self, student):
        for i, existing in enumerate(self.students):
            if existing.id == student.id:
                self.students[i] = student
                return student
        return None

    def delete_student(self, student_id: str) -> bool:
        before = len(self.students)
        self.students = [s for s in self.students if s.id != student_id]
        return len(self.students) < before

    def apply_student_rewards(self, student_id: str, xp_delta: int, coins_delta: int, practice_date):
        self._check('apply_student_rewards')
        self.reward_calls.append((student_id, xp_delta, coins_delta, practice_date))
        for student in self.students:
            if student.id == student_id:
                student.total_xp += xp_delta
                student.coins += coins_delta
                student.current_streak = next_streak(student.current_streak,
                                                     student.last_practice_date, practice_date)
                student.last_practice_date = practice_date.isoformat()
                return copy.copy(student)
        raise StorageError(f"Student not found: {student_id}")

    def fetch_sessions(self) -> list:
        return list(self.sessions)

    def get_session(self, session_id: str):
        return next((s for s in self.sessions if s.id == session_id), None)

    def add_session(self, session):
        self._check('add_session')
        self.sessions.insert(0, session)
        return session

    def delete_session(self, session_id: str) -> bool:
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.id != session_id]
        return len(self.sessions) < before

    def record_student_stat(self, stat) -> None:
        self._check('record_student_stat')
        self.stats.insert(0, stat)

    def fetch_student_word_stats(self, student_id: str, limit: int = 500) -> list:
        self._check('fetch_student_word_stats')
        return [s for s in self.stats if s.student_id == student_id][:limit]

    def fetch_student_achievements(self, student_id: str) -> list:
        self._check('fetch_student_achievements')
        return [a for a in self.achievements if a.student_id == student_id]

    def unlock_achievement(self, student_id: str, badge_key: str):
        achievement = Achievement(f'a{len(self.achievements) + 1}', student_id, badge_key,
                                  datetime.now(timezone.utc).isoformat())
        self.achievements.append(achievement)
        return achievement

    def fetch_schools(self) -> list:
        return list(self.schools)

    def get_school(self, school_id: str):
        return next((s for s in self.schools if s.id == school_id), None)

    def find_school_by_username(self, username: str):
        return next((s for s in self.schools if s.username == username), None)

    def add_school(self, school):
        self.schools.append(school)
        return school

    def update_school(self, school):
        return school

    def delete_school(self, school_id: str) -> bool:
        return False

    def fetch_payments(self, school_id: str = None) -> list:
        return [p for p in self.payments if school_id is None or p.school_id == school_id]

    def add_payment(self, payment):
        self.payments.append(payment)
        return payment

    def update_payment_status(self, payment_id: str, status: str):
        return None

    def fetch_resources(self, grade: int = None) -> list:
        return [r for r in self.resources if grade is None or r.grade == grade]

    def add_resource(self, resource):
        self.resources.append(resource)
        return resource

    def delete_resource(self, resource_id: str) -> bool:
        return False

    def fetch_sponsors(self) -> list:
        return list(self.sponsors)

    def add_sponsor(self, sponsor):
        self.sponsors.append(sponsor)
        return sponsor

    def delete_sponsor(self, sponsor_id: str) -> bool:
        return False

    def fetch_vendors(self) -> list:
        return list(self.vendors)

    def add_vendor(self, vendor):
        self.vendors.append(vendor)
        return vendor

    def delete_vendor(self, vendor_id: str) -> bool:
        return False
