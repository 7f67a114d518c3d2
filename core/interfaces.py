"""Abstract base classes for dependency injection."""

from abc import ABC, abstractmethod
from datetime import date


class AIProvider(ABC):
    """Abstract base class for AI/LLM provider."""

    @abstractmethod
    def enrich_word(self, word: str, grade: int) -> dict:
        """Describe a word for a grade. Returns {definition, example, difficulty}."""
        pass


class AudioPlayer(ABC):
    """Abstract base class for word pronunciation."""

    @abstractmethod
    def play_url(self, url: str) -> None:
        """Play a recorded audio file."""
        pass

    @abstractmethod
    def speak(self, text: str) -> None:
        """Speak text with synthesized speech."""
        pass


class Storage(ABC):
    """Abstract base class for the persistence backend.

    Fetch methods return model objects. Add/update methods return the stored
    record. Backends raise core.errors.StorageError when a call fails.
    Passwords passed in plain text are stored hashed.
    """

    @abstractmethod
    def load_config(self) -> dict:
        """Load configuration. Returns config dict."""
        pass

    # Words

    @abstractmethod
    def fetch_words(self, grade: int = None) -> list:
        """Words in creation order, optionally for one grade."""
        pass

    @abstractmethod
    def get_word(self, word_id: str):
        """Word by id, or None."""
        pass

    @abstractmethod
    def add_word(self, word):
        pass

    @abstractmethod
    def update_word(self, word):
        """Replace a word. Returns None if it does not exist."""
        pass

    @abstractmethod
    def delete_word(self, word_id: str) -> bool:
        pass

    # Students

    @abstractmethod
    def fetch_students(self, grade: int = None, school_id: str = None) -> list:
        """Students in registration order, optionally filtered."""
        pass

    @abstractmethod
    def get_student(self, student_id: str):
        pass

    @abstractmethod
    def find_student_by_username(self, username: str):
        pass

    @abstractmethod
    def add_student(self, student):
        pass

    @abstractmethod
    def update_student(self, student):
        """Update profile fields. Gamification counters are left untouched;
        a None password keeps the current one."""
        pass

    @abstractmethod
    def delete_student(self, student_id: str) -> bool:
        pass

    @abstractmethod
    def apply_student_rewards(self, student_id: str, xp_delta: int, coins_delta: int,
                              practice_date: date):
        """Add XP and coins and update the daily streak in one step.
        Returns the updated student."""
        pass

    # Sessions

    @abstractmethod
    def fetch_sessions(self) -> list:
        pass

    @abstractmethod
    def get_session(self, session_id: str):
        pass

    @abstractmethod
    def add_session(self, session):
        pass

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        pass

    # Drill stats and achievements

    @abstractmethod
    def record_student_stat(self, stat) -> None:
        pass

    @abstractmethod
    def fetch_student_word_stats(self, student_id: str, limit: int = 500) -> list:
        """Most recent drill answers for a student, newest first."""
        pass

    @abstractmethod
    def fetch_student_achievements(self, student_id: str) -> list:
        pass

    @abstractmethod
    def unlock_achievement(self, student_id: str, badge_key: str):
        pass

    # Invited schools

    @abstractmethod
    def fetch_schools(self) -> list:
        pass

    @abstractmethod
    def get_school(self, school_id: str):
        pass

    @abstractmethod
    def find_school_by_username(self, username: str):
        pass

    @abstractmethod
    def add_school(self, school):
        pass

    @abstractmethod
    def update_school(self, school):
        pass

    @abstractmethod
    def delete_school(self, school_id: str) -> bool:
        pass

    @abstractmethod
    def fetch_payments(self, school_id: str = None) -> list:
        pass

    @abstractmethod
    def add_payment(self, payment):
        pass

    @abstractmethod
    def update_payment_status(self, payment_id: str, status: str):
        """Returns the updated payment, or None if it does not exist."""
        pass

    @abstractmethod
    def fetch_resources(self, grade: int = None) -> list:
        pass

    @abstractmethod
    def add_resource(self, resource):
        pass

    @abstractmethod
    def delete_resource(self, resource_id: str) -> bool:
        pass

    # Sponsors and vendors

    @abstractmethod
    def fetch_sponsors(self) -> list:
        pass

    @abstractmethod
    def add_sponsor(self, sponsor):
        pass

    @abstractmethod
    def delete_sponsor(self, sponsor_id: str) -> bool:
        pass

    @abstractmethod
    def fetch_vendors(self) -> list:
        pass

    @abstractmethod
    def add_vendor(self, vendor):
        pass

    @abstractmethod
    def delete_vendor(self, vendor_id: str) -> bool:
        pass
