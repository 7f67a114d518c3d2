"""Utility functions for spellbee application."""

import time
import uuid

from .config import GROUP_3_GRADE


def normalize_spelling(text: str) -> str:
    """Normalize a spelling for comparison (trimmed, lowercase)."""
    return (text or '').strip().lower()


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


def grade_label(grade: int) -> str:
    if grade == GROUP_3_GRADE:
        return 'Group 3'
    return f'Grade {grade}'
