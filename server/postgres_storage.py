"""PostgreSQL storage implementation."""

import json
import logging
import os
from contextlib import contextmanager
from datetime import timedelta

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json, RealDictCursor

from core.auth import hash_password
from core.errors import StorageError
from core.interfaces import Storage
from core.models import (
    WordEntry, StudentProfile, Session, StudentStat, Achievement, School,
    Payment, SchoolResource, Sponsor, Vendor
)
from core.utils import new_id

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS words (
        id VARCHAR(64) PRIMARY KEY,
        word VARCHAR(255) NOT NULL,
        definition TEXT NOT NULL DEFAULT '',
        example TEXT NOT NULL DEFAULT '',
        grade INTEGER NOT NULL,
        difficulty VARCHAR(16),
        image_url TEXT,
        audio_url TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_words_grade ON words(grade)",
    """
    CREATE TABLE IF NOT EXISTS schools (
        id VARCHAR(64) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        username VARCHAR(255) UNIQUE NOT NULL,
        password VARCHAR(64),
        logo_url TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id VARCHAR(64) PRIMARY KEY,
        first_name VARCHAR(255) NOT NULL,
        last_name VARCHAR(255) NOT NULL,
        school VARCHAR(255) NOT NULL DEFAULT '',
        school_id VARCHAR(64) REFERENCES schools(id) ON DELETE SET NULL,
        grade INTEGER NOT NULL,
        photo_url TEXT,
        username VARCHAR(255) UNIQUE,
        password VARCHAR(64),
        total_xp INTEGER NOT NULL DEFAULT 0,
        coins INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        last_practice_date DATE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_students_grade ON students(grade)",
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id VARCHAR(64) PRIMARY KEY,
        date VARCHAR(32) NOT NULL,
        grade INTEGER NOT NULL,
        moderator VARCHAR(255) NOT NULL,
        stage VARCHAR(32),
        contest_type VARCHAR(32),
        attempts JSONB NOT NULL DEFAULT '[]',
        duration_seconds INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS student_stats (
        id VARCHAR(64) PRIMARY KEY,
        student_id VARCHAR(64) NOT NULL REFERENCES students(id) ON DELETE CASCADE,
        word_id VARCHAR(64) NOT NULL,
        is_correct BOOLEAN NOT NULL,
        time_taken REAL NOT NULL DEFAULT 0,
        points_earned INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_stats_student ON student_stats(student_id, created_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS achievements (
        id VARCHAR(64) PRIMARY KEY,
        student_id VARCHAR(64) NOT NULL REFERENCES students(id) ON DELETE CASCADE,
        badge_key VARCHAR(64) NOT NULL,
        unlocked_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (student_id, badge_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        id VARCHAR(64) PRIMARY KEY,
        school_id VARCHAR(64) NOT NULL REFERENCES schools(id) ON DELETE CASCADE,
        amount NUMERIC(10, 2) NOT NULL,
        method VARCHAR(64) NOT NULL,
        date VARCHAR(32) NOT NULL,
        observations TEXT,
        status VARCHAR(16) NOT NULL DEFAULT 'pending',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS resources (
        id VARCHAR(64) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        url TEXT NOT NULL,
        grade INTEGER NOT NULL,
        created_at VARCHAR(40)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sponsors (
        id VARCHAR(64) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        logo_url TEXT NOT NULL,
        website_url TEXT,
        tier VARCHAR(16) NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS vendors (
        id VARCHAR(64) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        logo_url TEXT NOT NULL,
        location VARCHAR(255),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def _word_row(word) -> dict:
    return {
        'id': word.id, 'word': word.word, 'definition': word.definition,
        'example': word.example, 'grade': word.grade, 'difficulty': word.difficulty,
        'image_url': word.image, 'audio_url': word.audio_url
    }


def _student_row(student) -> dict:
    return {
        'id': student.id, 'first_name': student.first_name, 'last_name': student.last_name,
        'school': student.school, 'school_id': student.school_id, 'grade': student.grade,
        'photo_url': student.photo, 'username': student.username
    }


def _stringify_dates(row: dict, *keys) -> dict:
    for key in keys:
        if row.get(key) is not None and hasattr(row[key], 'isoformat'):
            row[key] = row[key].isoformat()
    return row


class PostgresStorage(Storage):
    """PostgreSQL-based storage implementation."""

    def __init__(self, config_file: str = None, db_url: str = None):
        self.config_file = config_file or os.path.expanduser('~/.config/spellbee/config.json')
        self.db_url = db_url or os.environ.get(
            'DATABASE_URL',
            'postgresql://localhost:5432/spellbee'
        )
        self._conn = None
        self._initialized = False

    @property
    def conn(self):
        """Lazy connection initialization."""
        if self._conn is None or self._conn.closed:
            self._conn = psycopg2.connect(self.db_url)
            if not self._initialized:
                self._init_db()
                self._initialized = True
        return self._conn

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._conn.cursor() as cur:
            for statement in SCHEMA:
                cur.execute(statement)
        self._conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()

    @contextmanager
    def _cursor(self, action: str):
        """Cursor inside a transaction. Database errors become StorageError."""
        try:
            conn = self.conn
        except psycopg2.Error as e:
            logger.error(f"Error connecting to database: {e}")
            raise StorageError("Database unavailable") from e
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            logger.error(f"Error {action}: {e}")
            conn.rollback()
            raise StorageError(f"Error {action}") from e

    def _select(self, table: str, action: str, where: dict = None, order: str = 'created_at',
                limit: int = None) -> list[dict]:
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table))
        params = []
        if where:
            clauses = [sql.SQL("{} = %s").format(sql.Identifier(k)) for k in where]
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses)
            params.extend(where.values())
        query += sql.SQL(" ORDER BY {}").format(sql.SQL(order))
        if limit is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(limit)
        with self._cursor(action) as cur:
            cur.execute(query, params)
            return [dict(r) for r in cur.fetchall()]

    def _select_one(self, table: str, action: str, **where) -> dict | None:
        rows = self._select(table, action, where=where)
        return rows[0] if rows else None

    def _insert(self, table: str, row: dict, action: str) -> dict:
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(', ').join(sql.Identifier(k) for k in row),
            sql.SQL(', ').join(sql.Placeholder() for _ in row)
        )
        with self._cursor(action) as cur:
            cur.execute(query, list(row.values()))
            return dict(cur.fetchone())

    def _update(self, table: str, record_id: str, fields: dict, action: str) -> dict | None:
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(', ').join(sql.SQL("{} = %s").format(sql.Identifier(k)) for k in fields)
        )
        with self._cursor(action) as cur:
            cur.execute(query, list(fields.values()) + [record_id])
            row = cur.fetchone()
            return dict(row) if row else None

    def _delete(self, table: str, record_id: str, action: str) -> bool:
        query = sql.SQL("DELETE FROM {} WHERE id = %s").format(sql.Identifier(table))
        with self._cursor(action) as cur:
            cur.execute(query, (record_id,))
            return cur.rowcount > 0

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
        where = {'grade': grade} if grade is not None else None
        return [WordEntry.from_dict(r) for r in self._select('words', 'fetching words', where)]

    def get_word(self, word_id: str):
        row = self._select_one('words', 'fetching word', id=word_id)
        return WordEntry.from_dict(row) if row else None

    def add_word(self, word):
        return WordEntry.from_dict(self._insert('words', _word_row(word), 'adding word'))

    def update_word(self, word):
        fields = _word_row(word)
        del fields['id']
        row = self._update('words', word.id, fields, 'updating word')
        return WordEntry.from_dict(row) if row else None

    def delete_word(self, word_id: str) -> bool:
        return self._delete('words', word_id, 'deleting word')

    # Students

    def _student(self, row: dict | None):
        if row is None:
            return None
        return StudentProfile.from_dict(_stringify_dates(row, 'last_practice_date'))

    def fetch_students(self, grade: int = None, school_id: str = None) -> list:
        where = {}
        if grade is not None:
            where['grade'] = grade
        if school_id is not None:
            where['school_id'] = school_id
        return [self._student(r) for r in self._select('students', 'fetching students', where)]

    def get_student(self, student_id: str):
        return self._student(self._select_one('students', 'fetching student', id=student_id))

    def find_student_by_username(self, username: str):
        return self._student(self._select_one('students', 'fetching student', username=username))

    def add_student(self, student):
        row = _student_row(student)
        if student.password:
            row['password'] = hash_password(student.password)
        return self._student(self._insert('students', row, 'adding student'))

    def update_student(self, student):
        fields = _student_row(student)
        del fields['id']
        if student.password:
            fields['password'] = hash_password(student.password)
        return self._student(self._update('students', student.id, fields, 'updating student'))

    def delete_student(self, student_id: str) -> bool:
        return self._delete('students', student_id, 'deleting student')

    def apply_student_rewards(self, student_id: str, xp_delta: int, coins_delta: int, practice_date):
        yesterday = practice_date - timedelta(days=1)
        with self._cursor('applying rewards') as cur:
            cur.execute("""
                UPDATE students SET
                    total_xp = total_xp + %s,
                    coins = coins + %s,
                    current_streak = CASE
                        WHEN last_practice_date = %s THEN GREATEST(current_streak, 1)
                        WHEN last_practice_date = %s THEN current_streak + 1
                        ELSE 1
                    END,
                    last_practice_date = %s
                WHERE id = %s
                RETURNING *
            """, (xp_delta, coins_delta, practice_date, yesterday, practice_date, student_id))
            row = cur.fetchone()
        if row is None:
            raise StorageError(f"Student not found: {student_id}")
        return self._student(dict(row))

    # Sessions

    def fetch_sessions(self) -> list:
        rows = self._select('sessions', 'fetching sessions', order='created_at DESC')
        return [Session.from_dict(r) for r in rows]

    def get_session(self, session_id: str):
        row = self._select_one('sessions', 'fetching session', id=session_id)
        return Session.from_dict(row) if row else None

    def add_session(self, session):
        data = session.to_dict()
        data['attempts'] = Json(data['attempts'])
        return Session.from_dict(self._insert('sessions', data, 'adding session'))

    def delete_session(self, session_id: str) -> bool:
        return self._delete('sessions', session_id, 'deleting session')

    # Drill stats and achievements

    def record_student_stat(self, stat) -> None:
        self._insert('student_stats', stat.to_dict(), 'recording stat')

    def fetch_student_word_stats(self, student_id: str, limit: int = 500) -> list:
        rows = self._select('student_stats', 'fetching stats', {'student_id': student_id},
                            order='created_at DESC', limit=limit)
        return [StudentStat.from_dict(_stringify_dates(r, 'created_at')) for r in rows]

    def fetch_student_achievements(self, student_id: str) -> list:
        rows = self._select('achievements', 'fetching achievements', {'student_id': student_id},
                            order='unlocked_at')
        return [Achievement.from_dict(_stringify_dates(r, 'unlocked_at')) for r in rows]

    def unlock_achievement(self, student_id: str, badge_key: str):
        row = self._insert('achievements', {
            'id': new_id(), 'student_id': student_id, 'badge_key': badge_key
        }, 'unlocking achievement')
        return Achievement.from_dict(_stringify_dates(row, 'unlocked_at'))

    # Invited schools

    def _school(self, row: dict | None):
        return School.from_dict(row) if row else None

    def fetch_schools(self) -> list:
        return [self._school(r) for r in self._select('schools', 'fetching schools')]

    def get_school(self, school_id: str):
        return self._school(self._select_one('schools', 'fetching school', id=school_id))

    def find_school_by_username(self, username: str):
        return self._school(self._select_one('schools', 'fetching school', username=username))

    def add_school(self, school):
        row = {'id': school.id, 'name': school.name, 'username': school.username,
               'logo_url': school.logo}
        if school.password:
            row['password'] = hash_password(school.password)
        return self._school(self._insert('schools', row, 'adding school'))

    def update_school(self, school):
        fields = {'name': school.name, 'username': school.username, 'logo_url': school.logo}
        if school.password:
            fields['password'] = hash_password(school.password)
        return self._school(self._update('schools', school.id, fields, 'updating school'))

    def delete_school(self, school_id: str) -> bool:
        return self._delete('schools', school_id, 'deleting school')

    def fetch_payments(self, school_id: str = None) -> list:
        where = {'school_id': school_id} if school_id is not None else None
        return [Payment.from_dict(r) for r in self._select('payments', 'fetching payments', where)]

    def add_payment(self, payment):
        return Payment.from_dict(self._insert('payments', payment.to_dict(), 'adding payment'))

    def update_payment_status(self, payment_id: str, status: str):
        row = self._update('payments', payment_id, {'status': status}, 'updating payment')
        return Payment.from_dict(row) if row else None

    def fetch_resources(self, grade: int = None) -> list:
        where = {'grade': grade} if grade is not None else None
        rows = self._select('resources', 'fetching resources', where)
        return [SchoolResource.from_dict(r) for r in rows]

    def add_resource(self, resource):
        return SchoolResource.from_dict(self._insert('resources', resource.to_dict(), 'adding resource'))

    def delete_resource(self, resource_id: str) -> bool:
        return self._delete('resources', resource_id, 'deleting resource')

    # Sponsors and vendors

    def fetch_sponsors(self) -> list:
        return [Sponsor.from_dict(r) for r in self._select('sponsors', 'fetching sponsors')]

    def add_sponsor(self, sponsor):
        return Sponsor.from_dict(self._insert('sponsors', sponsor.to_dict(), 'adding sponsor'))

    def delete_sponsor(self, sponsor_id: str) -> bool:
        return self._delete('sponsors', sponsor_id, 'deleting sponsor')

    def fetch_vendors(self) -> list:
        return [Vendor.from_dict(r) for r in self._select('vendors', 'fetching vendors')]

    def add_vendor(self, vendor):
        return Vendor.from_dict(self._insert('vendors', vendor.to_dict(), 'adding vendor'))

    def delete_vendor(self, vendor_id: str) -> bool:
        return self._delete('vendors', vendor_id, 'deleting vendor')
