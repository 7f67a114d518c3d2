from .models import (
    WordEntry, StudentProfile, SessionStudent, Attempt, Session, StudentStat,
    Achievement, School, Payment, SchoolResource, Sponsor, Vendor
)
from .interfaces import AIProvider, AudioPlayer, Storage
from .errors import ValidationError, ContestValidationError, StorageError
from .contest import ContestState, ContestController, apply_event
from .drill import DrillSession, choose_drill_word, word_weight
from .utils import normalize_spelling
from .config import (
    GRADES, NEW_WORD_WEIGHT, MISSED_WORD_WEIGHT, REVIEW_WORD_WEIGHT,
    MASTERED_WORD_WEIGHT, STAT_LOOKBACK
)

__all__ = [
    'WordEntry', 'StudentProfile', 'SessionStudent', 'Attempt', 'Session', 'StudentStat',
    'Achievement', 'School', 'Payment', 'SchoolResource', 'Sponsor', 'Vendor',
    'AIProvider', 'AudioPlayer', 'Storage',
    'ValidationError', 'ContestValidationError', 'StorageError',
    'ContestState', 'ContestController', 'apply_event',
    'DrillSession', 'choose_drill_word', 'word_weight',
    'normalize_spelling',
    'GRADES', 'NEW_WORD_WEIGHT', 'MISSED_WORD_WEIGHT', 'REVIEW_WORD_WEIGHT',
    'MASTERED_WORD_WEIGHT', 'STAT_LOOKBACK'
]
