"""Login checks for teachers, invited schools and students."""

import hashlib
import hmac
import os

from .config import DEFAULT_TEACHER_CREDENTIALS


def hash_password(password: str) -> str:
    """Hash a password using SHA256."""
    return hashlib.sha256(password.encode()).hexdigest()


def load_teacher_credentials(raw: str = None) -> list[tuple[str, str]]:
    """Parse "user1:pass1,user2:pass2". Falls back to the built-in accounts."""
    if raw is None:
        raw = os.environ.get('SPELLBEE_TEACHER_CREDENTIALS', '')
    if not raw.strip():
        return list(DEFAULT_TEACHER_CREDENTIALS)
    credentials = []
    for pair in raw.split(','):
        username, _, password = pair.strip().partition(':')
        username, password = username.strip(), password.strip()
        if username and password:
            credentials.append((username, password))
    return credentials


def validate_teacher_credentials(username: str, password: str, credentials: list = None) -> bool:
    credentials = credentials if credentials is not None else load_teacher_credentials()
    return any(u == username and hmac.compare_digest(p, password) for u, p in credentials)


def verify_password(stored_hash: str | None, password: str) -> bool:
    if not stored_hash or not password:
        return False
    return hmac.compare_digest(stored_hash, hash_password(password))
