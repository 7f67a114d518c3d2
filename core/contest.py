"""Live contest moderation as an explicit state machine.

A contest moves through three phases: ``setup`` -> ``active`` -> ``summary``.
Every transition is a plain function taking a ``ContestState`` and returning
a new one; the input state is never modified. A rejected transition raises
``ContestValidationError`` so the caller keeps the state it already had.

``ContestController`` owns the current state of one contest, loads words and
students from storage when a transition needs them and hands the finished
session to storage.
"""

import copy
import logging
import random
from datetime import datetime

from .config import (
    DEFAULT_STAGE, DEFAULT_CONTEST_TYPE, DEFAULT_MIN_ROUNDS, SKIPPED_WORD_TEXT,
    STAGES, CONTEST_TYPES, GRADES
)
from .errors import ContestValidationError, StorageError
from .models import Attempt, Session, SessionStudent, WordEntry
from .utils import new_id, normalize_spelling, now_ms

logger = logging.getLogger(__name__)

SETUP = 'setup'
ACTIVE = 'active'
SUMMARY = 'summary'


class _Value:
    """Base for state records that are copied, never edited in place."""

    def replace(self, **changes):
        clone = copy.copy(self)
        for key, value in changes.items():
            if not hasattr(clone, key):
                raise AttributeError(f"{type(self).__name__} has no field {key!r}")
            setattr(clone, key, value)
        return clone


class Turn(_Value):
    """What the moderator is working on for the current student."""

    def __init__(self, word: WordEntry = None, revealed: bool = False, typed_spelling: str = '',
                 protocol_opened: bool = False, protocol_closed: bool = False,
                 is_extra: bool = False):
        self.word = word
        self.revealed = revealed
        self.typed_spelling = typed_spelling
        self.protocol_opened = protocol_opened
        self.protocol_closed = protocol_closed
        self.is_extra = is_extra

    @property
    def is_match(self) -> bool:
        """Whether the typed spelling matches the word, ignoring protocol."""
        return self.word is not None and is_correct_spelling(self.typed_spelling, self.word.word)

    def to_dict(self) -> dict:
        return {
            'word': self.word.to_dict() if self.word else None,
            'revealed': self.revealed,
            'typed_spelling': self.typed_spelling,
            'protocol_opened': self.protocol_opened,
            'protocol_closed': self.protocol_closed,
            'is_extra': self.is_extra,
            'is_match': self.is_match
        }


class ContestState(_Value):
    """Complete state of one contest. Collections are tuples/frozensets."""

    def __init__(self, date: str = None):
        self.phase = SETUP
        # Setup
        self.date = date or datetime.now().isoformat(timespec='minutes')
        self.grade = 1
        self.stage = DEFAULT_STAGE
        self.contest_type = DEFAULT_CONTEST_TYPE
        self.moderator = ''
        self.selected_ids = frozenset()
        # Word generator
        self.generator_grade = 1
        self.range_min = None
        self.range_max = None
        self.avoid_repetition = True
        # Active
        self.students = ()
        self.current_index = 0
        self.attempts = ()
        self.min_rounds = DEFAULT_MIN_ROUNDS
        self.started_at_ms = 0
        self.turn = Turn()
        # Summary
        self.session = None

    @property
    def current_student(self) -> SessionStudent | None:
        if not self.students:
            return None
        return self.students[self.current_index]


# ============================================================================
# Scoring rules
# ============================================================================

def is_correct_spelling(typed: str, word: str) -> bool:
    return normalize_spelling(typed) == (word or '').lower()


def judge_attempt(typed: str, word: str, protocol_opened: bool, protocol_closed: bool) -> str:
    """A turn is correct only when the spelling matches and both protocol steps were done."""
    if is_correct_spelling(typed, word) and protocol_opened and protocol_closed:
        return 'correct'
    return 'incorrect'


def next_attempt_number(attempts, student_id: str) -> int:
    """1-based number of the next attempt for one student."""
    return sum(1 for a in attempts if a.student_id == student_id) + 1


def slice_word_range(pool: list, range_min: int = None, range_max: int = None) -> list:
    """Restrict a word list to a 1-based inclusive index range.

    Bounds are clamped to the list, and swapped if max is below min.
    """
    total = len(pool)
    if total == 0:
        return []
    start, end = 0, total - 1
    if range_min and range_min > 0:
        start = min(range_min - 1, total - 1)
    if range_max and range_max > 0:
        end = min(range_max - 1, total - 1)
    if end < start:
        start, end = end, start
    return pool[start:end + 1]


# ============================================================================
# Transitions
# ============================================================================

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_phase(state: ContestState, phase: str) -> None:
    if state.phase != phase:
        raise ContestValidationError(f"Action not allowed during {state.phase} phase")


def new_contest(date: str = None) -> ContestState:
    return ContestState(date)


def select_grade(state: ContestState, grade: int, registered: list) -> ContestState:
    """Pick the contest grade and pre-select every student of that grade."""
    _require_phase(state, SETUP)
    if grade not in GRADES:
        raise ContestValidationError(f"Invalid grade: {grade}")
    selected = frozenset(p.id for p in registered if p.grade == grade)
    return state.replace(grade=grade, generator_grade=grade, selected_ids=selected)


def toggle_student(state: ContestState, student_id: str) -> ContestState:
    _require_phase(state, SETUP)
    if student_id in state.selected_ids:
        return state.replace(selected_ids=state.selected_ids - {student_id})
    return state.replace(selected_ids=state.selected_ids | {student_id})


def configure(state: ContestState, **settings) -> ContestState:
    """Update setup fields (date, stage, contest type, moderator, generator options).

    Stage and the generator options can still be changed while the contest runs.
    """
    allowed = {'date', 'stage', 'contest_type', 'moderator', 'generator_grade',
               'range_min', 'range_max', 'avoid_repetition'}
    in_contest = {'stage', 'generator_grade', 'range_min', 'range_max', 'avoid_repetition'}
    unknown = set(settings) - allowed
    if unknown:
        raise ContestValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
    if state.phase == SUMMARY or (state.phase == ACTIVE and set(settings) - in_contest):
        raise ContestValidationError(f"Settings cannot be changed during {state.phase} phase")
    for key in ('date', 'stage', 'contest_type', 'moderator'):
        if key in settings and not isinstance(settings[key], str):
            raise ContestValidationError(f"{key} must be text")
    for key in ('range_min', 'range_max'):
        value = settings.get(key)
        if value is not None and not (_is_int(value) and value > 0):
            raise ContestValidationError(f"{key} must be a positive whole number")
    if 'avoid_repetition' in settings and not isinstance(settings['avoid_repetition'], bool):
        raise ContestValidationError("avoid_repetition must be true or false")
    if 'generator_grade' in settings and not _is_int(settings['generator_grade']):
        raise ContestValidationError(f"Invalid grade: {settings['generator_grade']}")
    if 'stage' in settings and settings['stage'] not in STAGES:
        raise ContestValidationError(f"Invalid stage: {settings['stage']}")
    if 'contest_type' in settings and settings['contest_type'] not in CONTEST_TYPES:
        raise ContestValidationError(f"Invalid contest type: {settings['contest_type']}")
    if 'generator_grade' in settings and settings['generator_grade'] not in GRADES:
        raise ContestValidationError(f"Invalid grade: {settings['generator_grade']}")
    return state.replace(**settings)


def start_contest(state: ContestState, registered: list, started_at_ms: int = None) -> ContestState:
    _require_phase(state, SETUP)
    if not state.selected_ids:
        raise ContestValidationError("Please select at least one student.")
    if not state.moderator.strip():
        raise ContestValidationError("Please enter the Moderator's name.")

    roster = tuple(
        SessionStudent.from_profile(p) for p in registered
        if p.grade == state.grade and p.id in state.selected_ids
    )
    if not roster:
        raise ContestValidationError("Please select at least one student.")

    return state.replace(
        phase=ACTIVE,
        students=roster,
        current_index=0,
        attempts=(),
        min_rounds=DEFAULT_MIN_ROUNDS,
        started_at_ms=started_at_ms if started_at_ms is not None else now_ms(),
        turn=Turn()
    )


def next_student(state: ContestState) -> ContestState:
    _require_phase(state, ACTIVE)
    if not state.students:
        return state
    index = (state.current_index + 1) % len(state.students)
    return state.replace(current_index=index, turn=Turn())


def prev_student(state: ContestState) -> ContestState:
    _require_phase(state, ACTIVE)
    if not state.students:
        return state
    index = (state.current_index - 1) % len(state.students)
    return state.replace(current_index=index, turn=Turn())


def next_active_student(state: ContestState) -> ContestState:
    """Move to the next student still in the contest. Stays put if there is none."""
    _require_phase(state, ACTIVE)
    count = len(state.students)
    for step in range(1, count + 1):
        index = (state.current_index + step) % count
        if state.students[index].is_active:
            return state.replace(current_index=index, turn=Turn())
    return state


def generate_word(state: ContestState, words: list, rng: random.Random = None) -> ContestState:
    """Draw a word for the current turn from the configured pool."""
    _require_phase(state, ACTIVE)
    rng = rng or random
    grade_words = [w for w in words if w.grade == state.generator_grade]
    base_pool = slice_word_range(grade_words, state.range_min, state.range_max)
    if not base_pool:
        raise ContestValidationError("No words available for the selected list / range.")

    pool = base_pool
    if state.avoid_repetition:
        used = {a.word_id for a in state.attempts}
        pool = [w for w in base_pool if w.id not in used] or base_pool

    return state.replace(turn=Turn(word=rng.choice(pool)))


def set_custom_word(state: ContestState, text: str, created_at_ms: int = None) -> ContestState:
    _require_phase(state, ACTIVE)
    text = (text or '').strip()
    if not text:
        return state
    word = WordEntry(
        id=f"custom-{created_at_ms if created_at_ms is not None else now_ms()}",
        word=text,
        definition='Custom word added during session.',
        example='No example provided.',
        grade=state.grade
    )
    return state.replace(turn=Turn(word=word))


def set_typed_spelling(state: ContestState, text: str) -> ContestState:
    _require_phase(state, ACTIVE)
    return state.replace(turn=state.turn.replace(typed_spelling=text or ''))


def set_protocol(state: ContestState, opened: bool = None, closed: bool = None) -> ContestState:
    _require_phase(state, ACTIVE)
    turn = state.turn
    if opened is not None:
        turn = turn.replace(protocol_opened=bool(opened))
    if closed is not None:
        turn = turn.replace(protocol_closed=bool(closed))
    return state.replace(turn=turn)


def reveal_word(state: ContestState, revealed: bool = True) -> ContestState:
    _require_phase(state, ACTIVE)
    return state.replace(turn=state.turn.replace(revealed=bool(revealed)))


def mark_extra(state: ContestState, is_extra: bool = True) -> ContestState:
    _require_phase(state, ACTIVE)
    return state.replace(turn=state.turn.replace(is_extra=bool(is_extra)))


def submit_turn(state: ContestState, timestamp_ms: int = None) -> ContestState:
    """Record the current turn for the current student. The cursor does not move."""
    _require_phase(state, ACTIVE)
    student = state.current_student
    turn = state.turn
    if turn.word is None or student is None:
        return state

    number = next_attempt_number(state.attempts, student.id)
    attempt = Attempt(
        timestamp=timestamp_ms if timestamp_ms is not None else now_ms(),
        student_id=student.id,
        student_name=student.name,
        word_id=turn.word.id,
        word_text=turn.word.word,
        typed_spelling=turn.typed_spelling,
        protocol_opened=turn.protocol_opened,
        protocol_closed=turn.protocol_closed,
        word_number=number,
        result=judge_attempt(turn.typed_spelling, turn.word.word,
                             turn.protocol_opened, turn.protocol_closed),
        round=number,
        is_extra=turn.is_extra
    )
    return state.replace(attempts=state.attempts + (attempt,), turn=Turn())


def skip_turn(state: ContestState, timestamp_ms: int = None) -> ContestState:
    """Record a skipped attempt so the student's round count stays aligned."""
    _require_phase(state, ACTIVE)
    student = state.current_student
    if student is None:
        return state

    number = next_attempt_number(state.attempts, student.id)
    attempt = Attempt(
        timestamp=timestamp_ms if timestamp_ms is not None else now_ms(),
        student_id=student.id,
        student_name=student.name,
        word_id='skipped',
        word_text=SKIPPED_WORD_TEXT,
        typed_spelling='-',
        protocol_opened=False,
        protocol_closed=False,
        word_number=number,
        result='skipped',
        round=number,
        is_extra=False
    )
    return state.replace(attempts=state.attempts + (attempt,), turn=Turn())


def toggle_student_status(state: ContestState, student_id: str) -> ContestState:
    _require_phase(state, ACTIVE)
    if not any(s.id == student_id for s in state.students):
        raise ContestValidationError(f"Student {student_id} is not in this contest")
    students = tuple(
        s.with_status('eliminated' if s.is_active else 'active') if s.id == student_id else s
        for s in state.students
    )
    return state.replace(students=students)


def add_round(state: ContestState) -> ContestState:
    _require_phase(state, ACTIVE)
    return state.replace(min_rounds=state.min_rounds + 1)


def end_contest(state: ContestState, session_id: str = None, ended_at_ms: int = None) -> ContestState:
    """Package the attempt log into a Session and move to the summary."""
    _require_phase(state, ACTIVE)
    ended_at_ms = ended_at_ms if ended_at_ms is not None else now_ms()
    session = Session(
        id=session_id or new_id(),
        date=state.date,
        grade=state.grade,
        moderator=state.moderator,
        stage=state.stage,
        contest_type=state.contest_type,
        attempts=list(state.attempts),
        duration_seconds=max(0, (ended_at_ms - state.started_at_ms) // 1000)
    )
    return state.replace(phase=SUMMARY, session=session, turn=Turn())


def restart(state: ContestState = None) -> ContestState:
    """Discard everything and return to a fresh setup."""
    return new_contest()


# ============================================================================
# Projections
# ============================================================================

def scoreboard_columns(state: ContestState) -> int:
    counts = [sum(1 for a in state.attempts if a.student_id == s.id) for s in state.students]
    return max([state.min_rounds] + counts)


def scoreboard(state: ContestState) -> dict:
    """One row per student with the result of each round (None when not played)."""
    columns = scoreboard_columns(state)
    rows = []
    for student in state.students:
        results = [a.result for a in state.attempts if a.student_id == student.id]
        rows.append({
            'student': student.to_dict(),
            'results': results + [None] * (columns - len(results)),
            'correct': results.count('correct')
        })
    return {'columns': columns, 'rows': rows}


def state_to_dict(state: ContestState) -> dict:
    data = {
        'phase': state.phase,
        'date': state.date,
        'grade': state.grade,
        'stage': state.stage,
        'contest_type': state.contest_type,
        'moderator': state.moderator,
        'selected_ids': sorted(state.selected_ids),
        'generator_grade': state.generator_grade,
        'range_min': state.range_min,
        'range_max': state.range_max,
        'avoid_repetition': state.avoid_repetition,
        'students': [s.to_dict() for s in state.students],
        'current_index': state.current_index,
        'current_student': state.current_student.to_dict() if state.current_student else None,
        'attempts': [a.to_dict() for a in state.attempts],
        'turn': state.turn.to_dict(),
        'scoreboard': scoreboard(state),
        'session': state.session.to_dict() if state.session else None
    }
    return data


# ============================================================================
# Event dispatch
# ============================================================================

# Events that need the registered students or the word list
STUDENT_EVENTS = {'select_grade', 'start'}
WORD_EVENTS = {'generate_word'}


_MISSING = object()


def _text_field(event: dict, key: str, default=_MISSING) -> str:
    value = event.get(key, default)
    if value is _MISSING:
        raise ContestValidationError(f"Missing field: {key}")
    if value is None and default is not _MISSING:
        value = default
    if not isinstance(value, str):
        raise ContestValidationError(f"{key} must be text")
    return value


def _flag_field(event: dict, key: str, default=None):
    value = event.get(key, default)
    if value is not None and not isinstance(value, bool):
        raise ContestValidationError(f"{key} must be true or false")
    return value


def _grade_field(event: dict) -> int:
    if 'grade' not in event:
        raise ContestValidationError("Missing field: grade")
    try:
        return int(event['grade'])
    except (TypeError, ValueError):
        raise ContestValidationError(f"Invalid grade: {event['grade']}") from None


def apply_event(state: ContestState, event: dict, registered: list = None, words: list = None,
                rng: random.Random = None, timestamp_ms: int = None) -> ContestState:
    """Apply one event dict, e.g. ``{'type': 'set_protocol', 'opened': True}``."""
    kind = event.get('type')
    registered = registered or []
    words = words or []

    if kind == 'select_grade':
        return select_grade(state, _grade_field(event), registered)
    if kind == 'toggle_student':
        return toggle_student(state, _text_field(event, 'student_id'))
    if kind == 'configure':
        settings = {k: v for k, v in event.items() if k != 'type'}
        return configure(state, **settings)
    if kind == 'start':
        return start_contest(state, registered, timestamp_ms)
    if kind == 'next_student':
        return next_student(state)
    if kind == 'prev_student':
        return prev_student(state)
    if kind == 'next_active_student':
        return next_active_student(state)
    if kind == 'generate_word':
        return generate_word(state, words, rng)
    if kind == 'custom_word':
        return set_custom_word(state, _text_field(event, 'text', ''), timestamp_ms)
    if kind == 'type_spelling':
        return set_typed_spelling(state, _text_field(event, 'text', ''))
    if kind == 'set_protocol':
        return set_protocol(state, _flag_field(event, 'opened'), _flag_field(event, 'closed'))
    if kind == 'reveal':
        return reveal_word(state, _flag_field(event, 'revealed', True))
    if kind == 'mark_extra':
        return mark_extra(state, _flag_field(event, 'is_extra', True))
    if kind == 'submit':
        return submit_turn(state, timestamp_ms)
    if kind == 'skip':
        return skip_turn(state, timestamp_ms)
    if kind == 'toggle_status':
        return toggle_student_status(state, _text_field(event, 'student_id'))
    if kind == 'add_round':
        return add_round(state)
    if kind == 'end':
        return end_contest(state, event.get('session_id'), timestamp_ms)
    if kind == 'restart':
        return restart(state)
    raise ContestValidationError(f"Unknown contest event: {kind}")


class ContestController:
    """Holds one contest's state and connects it to storage."""

    def __init__(self, storage, contest_id: str = None, rng: random.Random = None, clock=None):
        self.id = contest_id or new_id()
        self.storage = storage
        self.rng = rng or random.Random()
        self.clock = clock or now_ms
        self.save_error = None
        self.pending_session = None
        self.state = new_contest()

    def dispatch(self, event: dict) -> ContestState:
        """Apply an event. On ContestValidationError the state is left as it was."""
        kind = event.get('type')
        registered = self.storage.fetch_students() if kind in STUDENT_EVENTS else None
        words = self.storage.fetch_words() if kind in WORD_EVENTS else None

        state = apply_event(self.state, event, registered=registered, words=words,
                            rng=self.rng, timestamp_ms=self.clock())
        self.state = state

        if kind == 'start':
            logger.info(f"Contest {self.id} started: grade {state.grade}, "
                        f"{len(state.students)} students, moderator {state.moderator!r}")
        elif kind == 'end':
            logger.info(f"Contest {self.id} ended with {len(state.session.attempts)} attempts")
            self._save_session(state.session)
        elif kind == 'restart':
            self.save_error = None
            self.pending_session = None
        return state

    def retry_save(self) -> bool:
        """Try again to store a session whose first save failed."""
        if self.pending_session is None:
            return True
        return self._save_session(self.pending_session)

    def _save_session(self, session: Session) -> bool:
        try:
            self.storage.add_session(session)
        except StorageError as e:
            logger.error(f"Failed to save session {session.id}: {e}")
            self.save_error = str(e)
            self.pending_session = session
            return False
        self.save_error = None
        self.pending_session = None
        return True

    def to_dict(self) -> dict:
        return {
            'contest_id': self.id,
            'state': state_to_dict(self.state),
            'save_error': self.save_error,
            'pending_save': self.pending_session is not None
        }
