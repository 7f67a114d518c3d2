"""Student practice: weighted drill word selection and the flashcard generator."""

import bisect
import itertools
import logging
import random
from datetime import date, datetime, timezone

from .config import (
    NEW_WORD_WEIGHT, MISSED_WORD_WEIGHT, REVIEW_WORD_WEIGHT, MASTERED_WORD_WEIGHT,
    MASTERY_STREAK, STAT_LOOKBACK, POINTS_PER_CORRECT, COINS_PER_CORRECT
)
from .errors import StorageError, ValidationError
from .gamification import evaluate_badges
from .models import StudentStat, WordEntry
from .utils import new_id, normalize_spelling

logger = logging.getLogger(__name__)


def _group_by_word(history: list) -> dict:
    """Map word_id -> that word's records, keeping newest-first order."""
    grouped = {}
    for stat in history:
        grouped.setdefault(stat.word_id, []).append(stat)
    return grouped


def _weight_for_records(records: list) -> int:
    if not records:
        return NEW_WORD_WEIGHT
    if not records[0].is_correct:
        return MISSED_WORD_WEIGHT
    streak = 0
    for stat in records:
        if not stat.is_correct:
            break
        streak += 1
    if streak > MASTERY_STREAK:
        return MASTERED_WORD_WEIGHT
    return REVIEW_WORD_WEIGHT


def word_weight(word_id: str, history: list) -> int:
    """Priority of one word given a student's stats (newest first)."""
    return _weight_for_records([s for s in history if s.word_id == word_id])


def compute_weights(words: list, history: list) -> list[int]:
    grouped = _group_by_word(history)
    return [_weight_for_records(grouped.get(w.id, [])) for w in words]


def weighted_choice(items: list, weights: list, rng: random.Random = None):
    """Pick the first item whose cumulative weight exceeds a uniform draw in [0, total)."""
    rng = rng or random
    cumulative = list(itertools.accumulate(weights))
    total = cumulative[-1]
    draw = rng.random() * total
    index = bisect.bisect_right(cumulative, draw)
    return items[min(index, len(items) - 1)]


def choose_drill_word(words: list, history: list, rng: random.Random = None) -> WordEntry | None:
    """Next drill word. Uniform when the student has no history at all."""
    rng = rng or random
    if not words:
        return None
    if not history:
        return rng.choice(words)
    return weighted_choice(words, compute_weights(words, history), rng)


def pick_flashcard(words: list, previous_id: str = None, rng: random.Random = None) -> WordEntry | None:
    """Random word for the flashcard generator, avoiding an immediate repeat."""
    rng = rng or random
    if not words:
        return None
    if len(words) == 1:
        return words[0]
    candidates = [w for w in words if w.id != previous_id] or words
    return rng.choice(candidates)


class DrillSession:
    """One student's drill run over a grade's word list."""

    def __init__(self, storage, student, grade: int, rng: random.Random = None, today=None):
        self.storage = storage
        self.student = student
        self.grade = grade
        self.rng = rng or random.Random()
        self.today = today or date.today
        self.words = storage.fetch_words(grade=grade)
        self.history = self._load_history()
        self.current_word = None
        self.score = 0
        self.answered = 0
        self.correct = 0

    def _load_history(self) -> list:
        try:
            return self.storage.fetch_student_word_stats(self.student.id, limit=STAT_LOOKBACK)
        except StorageError as e:
            logger.warning(f"Could not load drill history for {self.student.id}: {e}")
            return []

    def next_word(self) -> WordEntry | None:
        self.current_word = choose_drill_word(self.words, self.history, self.rng)
        return self.current_word

    def answer(self, text: str, elapsed_seconds: float = 0.0) -> dict:
        """Check an answer, then record the stat and rewards (best effort)."""
        word = self.current_word
        if word is None:
            raise ValidationError("No word in play. Request the next word first.")
        if not normalize_spelling(text):
            raise ValidationError("Please type a spelling.")

        is_correct = normalize_spelling(text) == word.word.lower()
        points = POINTS_PER_CORRECT if is_correct else 0
        self.score += points
        self.answered += 1
        if is_correct:
            self.correct += 1
        self.current_word = None

        stat = StudentStat(
            id=new_id(),
            student_id=self.student.id,
            word_id=word.id,
            is_correct=is_correct,
            time_taken=round(elapsed_seconds, 2),
            points_earned=points,
            created_at=datetime.now(timezone.utc).isoformat()
        )
        try:
            self.storage.record_student_stat(stat)
        except StorageError as e:
            logger.error(f"Failed to record stat for {self.student.id}: {e}")

        new_badges = []
        if is_correct:
            new_badges = self._grant_rewards(points)

        self.history = self._load_history()

        return {
            'correct': is_correct,
            'word': word.to_dict(),
            'points': points,
            'score': self.score,
            'total_xp': self.student.total_xp,
            'coins': self.student.coins,
            'current_streak': self.student.current_streak,
            'new_badges': new_badges
        }

    def _grant_rewards(self, points: int) -> list[str]:
        try:
            self.student = self.storage.apply_student_rewards(
                self.student.id, xp_delta=points, coins_delta=COINS_PER_CORRECT,
                practice_date=self.today()
            )
        except StorageError as e:
            logger.warning(f"Failed to grant rewards to {self.student.id}: {e}")
            return []
        return self._unlock_badges()

    def _unlock_badges(self) -> list[str]:
        try:
            earned = {a.badge_key for a in self.storage.fetch_student_achievements(self.student.id)}
            leaderboard = self.storage.fetch_students(grade=self.student.grade)
            new_keys = evaluate_badges(self.student, earned, leaderboard=leaderboard,
                                       answered=self.answered, correct=self.correct)
            for key in new_keys:
                self.storage.unlock_achievement(self.student.id, key)
            return new_keys
        except StorageError as e:
            logger.warning(f"Failed to update achievements for {self.student.id}: {e}")
            return []
