"""File-based storage implementation, used when no database is configured."""

import json
import logging
import os
import threading
from datetime import datetime, timezone

from core.auth import hash_password
from core.errors import StorageError
from core.gamification import next_streak
from core.interfaces import Storage
from core.models import (
    WordEntry, StudentProfile, Session, StudentStat, Achievement, School,
    Payment, SchoolResource, Sponsor, Vendor
)
from core.utils import new_id

logger = logging.getLogger(__name__)


class FileStorage(Storage):
    """Stores each collection as a JSON list in its own file."""

    def __init__(self, config_file: str = None, data_dir: str = None):
        self.config_file = config_file or os.path.expanduser('~/.config/spellbee/config.json')
        # Project root is one level up from server/
        project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        self.data_dir = data_dir or os.environ.get('SPELLBEE_DATA_DIR') or os.path.join(project_root, 'data')
        self._lock = threading.RLock()

    def _get_file(self, collection: str) -> str:
        return os.path.join(self.data_dir, f'spellbee_{collection}.json')

    def _load(self, collection: str) -> list[dict]:
        path = self._get_file(collection)
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading {collection}: {e}")
            raise StorageError(f"Could not read {collection}") from e

    def _save(self, collection: str, rows: list[dict]) -> None:
        path = self._get_file(collection)
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            tmp_path = path + '.tmp'
            with open(tmp_path, 'w') as f:
                json.dump(rows, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Error saving {collection}: {e}")
            raise StorageError(f"Could not write {collection}") from e

    def _find(self, collection: str, record_id: str) -> dict | None:
        for row in self._load(collection):
            if row['id'] == record_id:
                return row
        return None

    def _insert(self, collection: str, row: dict, prepend: bool = False) -> dict:
        with self._lock:
            rows = self._load(collection)
            if any(r['id'] == row['id'] for r in rows):
                raise StorageError(f"Duplicate id in {collection}: {row['id']}")
            if prepend:
                rows.insert(0, row)
            else:
                rows.append(row)
            self._save(collection, rows)
        return row

    def _replace(self, collection: str, row: dict) -> dict | None:
        with self._lock:
            rows = self._load(collection)
            for i, existing in enumerate(rows):
                if existing['id'] == row['id']:
                    rows[i] = row
                    self._save(collection, rows)
                    return row
        return None

    def _delete(self, collection: str, record_id: str) -> bool:
        with self._lock:
            rows = self._load(collection)
            remaining = [r for r in rows if r['id'] != record_id]
            if len(remaining) == len(rows):
                return False
            self._save(collection, remaining)
            return True

    def load_config(self) -> dict:
        if not os.path.exists(self.config_file):
            raise FileNotFoundError(
                f"Config file not found at {self.config_file}\n"
                f'Please create it with: {{"gemini_api_key": "YOUR_API_KEY_HERE"}}'
            )
        with open(self.config_file, 'r') as f:
            return json.load(f)

    # Words

    def fetch_words(self, grade: int = None) -> list:
        words = [WordEntry.from_dict(r) for r in self._load('words')]
        if grade is not None:
            words = [w for w in words if w.grade == grade]
        return words

    def get_word(self, word_id: str):
        row = self._find('words', word_id)
        return WordEntry.from_dict(row) if row else None

    def add_word(self, word):
        return WordEntry.from_dict(self._insert('words', word.to_dict()))

    def update_word(self, word):
        row = self._replace('words', word.to_dict())
        return WordEntry.from_dict(row) if row else None

    def delete_word(self, word_id: str) -> bool:
        return self._delete('words', word_id)

    # Students

    def fetch_students(self, grade: int = None, school_id: str = None) -> list:
        students = [StudentProfile.from_dict(r) for r in self._load('students')]
        if grade is not None:
            students = [s for s in students if s.grade == grade]
        if school_id is not None:
            students = [s for s in students if s.school_id == school_id]
        return students

    def get_student(self, student_id: str):
        row = self._find('students', student_id)
        return StudentProfile.from_dict(row) if row else None

    def find_student_by_username(self, username: str):
        for row in self._load('students'):
            if username and row.get('username') == username:
                return StudentProfile.from_dict(row)
        return None

    def _check_username(self, student):
        taken = student.username and self.find_student_by_username(student.username)
        if taken and taken.id != student.id:
            raise StorageError(f"Duplicate username in students: {student.username}")

    def add_student(self, student):
        row = student.to_dict()
        if student.password:
            row['password'] = hash_password(student.password)
        with self._lock:
            self._check_username(student)
            return StudentProfile.from_dict(self._insert('students', row))

    def update_student(self, student):
        with self._lock:
            existing = self._find('students', student.id)
            if existing is None:
                return None
            self._check_username(student)
            row = student.to_dict()
            for counter in ('total_xp', 'coins', 'current_streak', 'last_practice_date'):
                row[counter] = existing.get(counter)
            row['password'] = hash_password(student.password) if student.password else existing.get('password')
            return StudentProfile.from_dict(self._replace('students', row))

    def delete_student(self, student_id: str) -> bool:
        return self._delete('students', student_id)

    def apply_student_rewards(self, student_id: str, xp_delta: int, coins_delta: int, practice_date):
        with self._lock:
            row = self._find('students', student_id)
            if row is None:
                raise StorageError(f"Student not found: {student_id}")
            row['total_xp'] = (row.get('total_xp') or 0) + xp_delta
            row['coins'] = (row.get('coins') or 0) + coins_delta
            row['current_streak'] = next_streak(row.get('current_streak'), row.get('last_practice_date'),
                                                practice_date)
            row['last_practice_date'] = practice_date.isoformat()
            self._replace('students', row)
        return StudentProfile.from_dict(row)

    # Sessions

    def fetch_sessions(self) -> list:
        return [Session.from_dict(r) for r in self._load('sessions')]

    def get_session(self, session_id: str):
        row = self._find('sessions', session_id)
        return Session.from_dict(row) if row else None

    def add_session(self, session):
        return Session.from_dict(self._insert('sessions', session.to_dict(), prepend=True))

    def delete_session(self, session_id: str) -> bool:
        return self._delete('sessions', session_id)

    # Drill stats and achievements

    def record_student_stat(self, stat) -> None:
        self._insert('student_stats', stat.to_dict())

    def fetch_student_word_stats(self, student_id: str, limit: int = 500) -> list:
        rows = [r for r in self._load('student_stats') if r['student_id'] == student_id]
        rows.sort(key=lambda r: r['created_at'], reverse=True)
        return [StudentStat.from_dict(r) for r in rows[:limit]]

    def fetch_student_achievements(self, student_id: str) -> list:
        return [Achievement.from_dict(r) for r in self._load('achievements')
                if r['student_id'] == student_id]

    def unlock_achievement(self, student_id: str, badge_key: str):
        achievement = Achievement(new_id(), student_id, badge_key,
                                  datetime.now(timezone.utc).isoformat())
        return Achievement.from_dict(self._insert('achievements', achievement.to_dict()))

    # Invited schools

    def fetch_schools(self) -> list:
        return [School.from_dict(r) for r in self._load('schools')]

    def get_school(self, school_id: str):
        row = self._find('schools', school_id)
        return School.from_dict(row) if row else None

    def find_school_by_username(self, username: str):
        for row in self._load('schools'):
            if username and row.get('username') == username:
                return School.from_dict(row)
        return None

    def add_school(self, school):
        row = school.to_dict()
        if school.password:
            row['password'] = hash_password(school.password)
        return School.from_dict(self._insert('schools', row))

    def update_school(self, school):
        with self._lock:
            existing = self._find('schools', school.id)
            if existing is None:
                return None
            row = school.to_dict()
            row['password'] = hash_password(school.password) if school.password else existing.get('password')
            return School.from_dict(self._replace('schools', row))

    def delete_school(self, school_id: str) -> bool:
        return self._delete('schools', school_id)

    def fetch_payments(self, school_id: str = None) -> list:
        payments = [Payment.from_dict(r) for r in self._load('payments')]
        if school_id is not None:
            payments = [p for p in payments if p.school_id == school_id]
        return payments

    def add_payment(self, payment):
        return Payment.from_dict(self._insert('payments', payment.to_dict()))

    def update_payment_status(self, payment_id: str, status: str):
        with self._lock:
            row = self._find('payments', payment_id)
            if row is None:
                return None
            row['status'] = status
            return Payment.from_dict(self._replace('payments', row))

    def fetch_resources(self, grade: int = None) -> list:
        resources = [SchoolResource.from_dict(r) for r in self._load('resources')]
        if grade is not None:
            resources = [r for r in resources if r.grade == grade]
        return resources

    def add_resource(self, resource):
        return SchoolResource.from_dict(self._insert('resources', resource.to_dict()))

    def delete_resource(self, resource_id: str) -> bool:
        return self._delete('resources', resource_id)

    # Sponsors and vendors

    def fetch_sponsors(self) -> list:
        return [Sponsor.from_dict(r) for r in self._load('sponsors')]

    def add_sponsor(self, sponsor):
        return Sponsor.from_dict(self._insert('sponsors', sponsor.to_dict()))

    def delete_sponsor(self, sponsor_id: str) -> bool:
        return self._delete('sponsors', sponsor_id)

    def fetch_vendors(self) -> list:
        return [Vendor.from_dict(r) for r in self._load('vendors')]

    def add_vendor(self, vendor):
        return Vendor.from_dict(self._insert('vendors', vendor.to_dict()))

    def delete_vendor(self, vendor_id: str) -> bool:
        return self._delete('vendors', vendor_id)
