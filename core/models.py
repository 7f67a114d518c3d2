"""Domain models for spellbee application."""

from .config import DEFAULT_PAYMENT_METHOD


def _pick(data: dict, key: str, alias: str = None, default=None):
    """Read a key from a row, accepting the camelCase alias used by older rows."""
    if key in data and data[key] is not None:
        return data[key]
    if alias and alias in data and data[alias] is not None:
        return data[alias]
    return default


class WordEntry:
    """A word on a grade's list."""

    def __init__(self, id: str, word: str, definition: str, example: str, grade: int,
                 difficulty: str = None, image: str = None, audio_url: str = None):
        self.id = id
        self.word = word
        self.definition = definition
        self.example = example
        self.grade = grade
        self.difficulty = difficulty
        self.image = image
        self.audio_url = audio_url

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'word': self.word,
            'definition': self.definition,
            'example': self.example,
            'grade': self.grade,
            'difficulty': self.difficulty,
            'image': self.image,
            'audio_url': self.audio_url
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'WordEntry':
        return cls(
            id=data['id'],
            word=data['word'],
            definition=data.get('definition') or '',
            example=data.get('example') or '',
            grade=int(data['grade']),
            difficulty=data.get('difficulty'),
            image=_pick(data, 'image', 'image_url'),
            audio_url=_pick(data, 'audio_url', 'audioUrl')
        )

    def __repr__(self):
        return f"WordEntry({self.word!r}, grade={self.grade})"


class StudentProfile:
    """A registered student, including gamification counters."""

    def __init__(self, id: str, first_name: str, last_name: str, school: str, grade: int,
                 school_id: str = None, photo: str = None, username: str = None,
                 password: str = None, total_xp: int = 0, coins: int = 0,
                 current_streak: int = 0, last_practice_date: str = None):
        self.id = id
        self.first_name = first_name
        self.last_name = last_name
        self.school = school
        self.grade = grade
        self.school_id = school_id
        self.photo = photo
        self.username = username
        self.password = password
        self.total_xp = total_xp
        self.coins = coins
        self.current_streak = current_streak
        self.last_practice_date = last_practice_date

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self, include_password: bool = True) -> dict:
        data = {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'school': self.school,
            'grade': self.grade,
            'school_id': self.school_id,
            'photo': self.photo,
            'username': self.username,
            'total_xp': self.total_xp,
            'coins': self.coins,
            'current_streak': self.current_streak,
            'last_practice_date': self.last_practice_date
        }
        if include_password:
            data['password'] = self.password
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'StudentProfile':
        return cls(
            id=data['id'],
            first_name=_pick(data, 'first_name', 'firstName', ''),
            last_name=_pick(data, 'last_name', 'lastName', ''),
            school=data.get('school') or '',
            grade=int(data['grade']),
            school_id=_pick(data, 'school_id', 'schoolId'),
            photo=_pick(data, 'photo', 'photo_url'),
            username=data.get('username'),
            password=data.get('password'),
            total_xp=int(_pick(data, 'total_xp', 'totalXp', 0)),
            coins=int(data.get('coins') or 0),
            current_streak=int(_pick(data, 'current_streak', 'currentStreak', 0)),
            last_practice_date=_pick(data, 'last_practice_date', 'lastPracticeDate')
        )


class SessionStudent:
    """A student taking part in one contest."""

    def __init__(self, id: str, name: str, school: str, status: str = 'active', photo: str = None):
        self.id = id
        self.name = name
        self.school = school
        self.status = status
        self.photo = photo

    @property
    def is_active(self) -> bool:
        return self.status == 'active'

    @classmethod
    def from_profile(cls, profile: StudentProfile) -> 'SessionStudent':
        return cls(profile.id, profile.full_name, profile.school, 'active', profile.photo)

    def with_status(self, status: str) -> 'SessionStudent':
        return SessionStudent(self.id, self.name, self.school, status, self.photo)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'school': self.school,
            'status': self.status,
            'photo': self.photo
        }


class Attempt:
    """One turn in a contest. Never modified after creation."""

    def __init__(self, timestamp: int, student_id: str, student_name: str, word_id: str,
                 word_text: str, typed_spelling: str, protocol_opened: bool,
                 protocol_closed: bool, word_number: int, result: str, round: int,
                 is_extra: bool = False):
        self.timestamp = timestamp
        self.student_id = student_id
        self.student_name = student_name
        self.word_id = word_id
        self.word_text = word_text
        self.typed_spelling = typed_spelling
        self.protocol_opened = protocol_opened
        self.protocol_closed = protocol_closed
        self.word_number = word_number
        self.result = result
        self.round = round
        self.is_extra = is_extra

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'student_id': self.student_id,
            'student_name': self.student_name,
            'word_id': self.word_id,
            'word_text': self.word_text,
            'typed_spelling': self.typed_spelling,
            'protocol_opened': self.protocol_opened,
            'protocol_closed': self.protocol_closed,
            'word_number': self.word_number,
            'result': self.result,
            'round': self.round,
            'is_extra': self.is_extra
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Attempt':
        return cls(
            timestamp=int(data.get('timestamp') or 0),
            student_id=_pick(data, 'student_id', 'studentId'),
            student_name=_pick(data, 'student_name', 'studentName', ''),
            word_id=_pick(data, 'word_id', 'wordId'),
            word_text=_pick(data, 'word_text', 'wordText', ''),
            typed_spelling=_pick(data, 'typed_spelling', 'typedSpelling', ''),
            protocol_opened=bool(_pick(data, 'protocol_opened', 'protocolOpened', False)),
            protocol_closed=bool(_pick(data, 'protocol_closed', 'protocolClosed', False)),
            word_number=int(_pick(data, 'word_number', 'wordNumber', 0)),
            result=data['result'],
            round=int(data.get('round') or 0),
            is_extra=bool(_pick(data, 'is_extra', 'isExtra', False))
        )


class Session:
    """A finished contest with its full attempt log."""

    def __init__(self, id: str, date: str, grade: int, moderator: str, attempts: list = None,
                 duration_seconds: int = 0, stage: str = None, contest_type: str = None):
        self.id = id
        self.date = date
        self.grade = grade
        self.moderator = moderator
        self.attempts = list(attempts or [])
        self.duration_seconds = duration_seconds
        self.stage = stage
        self.contest_type = contest_type

    @property
    def correct_count(self) -> int:
        return sum(1 for a in self.attempts if a.result == 'correct')

    @property
    def accuracy(self) -> int:
        """Percentage of correct attempts, rounded. 0 for an empty session."""
        if not self.attempts:
            return 0
        return round(self.correct_count / len(self.attempts) * 100)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'date': self.date,
            'grade': self.grade,
            'moderator': self.moderator,
            'stage': self.stage,
            'contest_type': self.contest_type,
            'attempts': [a.to_dict() for a in self.attempts],
            'duration_seconds': self.duration_seconds
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Session':
        return cls(
            id=data['id'],
            date=data['date'],
            grade=int(data['grade']),
            moderator=data.get('moderator') or '',
            attempts=[Attempt.from_dict(a) for a in data.get('attempts') or []],
            duration_seconds=int(_pick(data, 'duration_seconds', 'durationSeconds', 0)),
            stage=data.get('stage'),
            contest_type=_pick(data, 'contest_type', 'contestType')
        )


class StudentStat:
    """One drill answer."""

    def __init__(self, id: str, student_id: str, word_id: str, is_correct: bool,
                 time_taken: float, points_earned: int, created_at: str):
        self.id = id
        self.student_id = student_id
        self.word_id = word_id
        self.is_correct = is_correct
        self.time_taken = time_taken
        self.points_earned = points_earned
        self.created_at = created_at

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'student_id': self.student_id,
            'word_id': self.word_id,
            'is_correct': self.is_correct,
            'time_taken': self.time_taken,
            'points_earned': self.points_earned,
            'created_at': self.created_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'StudentStat':
        return cls(
            id=data['id'],
            student_id=_pick(data, 'student_id', 'studentId'),
            word_id=_pick(data, 'word_id', 'wordId'),
            is_correct=bool(_pick(data, 'is_correct', 'isCorrect', False)),
            time_taken=float(_pick(data, 'time_taken', 'timeTaken', 0)),
            points_earned=int(_pick(data, 'points_earned', 'pointsEarned', 0)),
            created_at=str(_pick(data, 'created_at', 'createdAt', ''))
        )


class Achievement:
    def __init__(self, id: str, student_id: str, badge_key: str, unlocked_at: str):
        self.id = id
        self.student_id = student_id
        self.badge_key = badge_key
        self.unlocked_at = unlocked_at

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'student_id': self.student_id,
            'badge_key': self.badge_key,
            'unlocked_at': self.unlocked_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Achievement':
        return cls(
            id=data['id'],
            student_id=_pick(data, 'student_id', 'studentId'),
            badge_key=_pick(data, 'badge_key', 'badgeKey'),
            unlocked_at=str(_pick(data, 'unlocked_at', 'unlockedAt', ''))
        )


class School:
    """An invited school with its own portal login."""

    def __init__(self, id: str, name: str, username: str, password: str = None, logo: str = None):
        self.id = id
        self.name = name
        self.username = username
        self.password = password
        self.logo = logo

    def to_dict(self, include_password: bool = True) -> dict:
        data = {
            'id': self.id,
            'name': self.name,
            'username': self.username,
            'logo': self.logo
        }
        if include_password:
            data['password'] = self.password
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'School':
        return cls(data['id'], data['name'], data['username'], data.get('password'),
                   _pick(data, 'logo', 'logo_url'))


class Payment:
    def __init__(self, id: str, school_id: str, amount: float, date: str,
                 method: str = DEFAULT_PAYMENT_METHOD, observations: str = None,
                 status: str = 'pending'):
        self.id = id
        self.school_id = school_id
        self.amount = amount
        self.date = date
        self.method = method
        self.observations = observations
        self.status = status

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'school_id': self.school_id,
            'amount': self.amount,
            'date': self.date,
            'method': self.method,
            'observations': self.observations,
            'status': self.status
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Payment':
        return cls(
            id=data['id'],
            school_id=_pick(data, 'school_id', 'schoolId'),
            amount=float(data['amount']),
            date=data['date'],
            method=data.get('method') or DEFAULT_PAYMENT_METHOD,
            observations=data.get('observations'),
            status=data.get('status') or 'pending'
        )


class SchoolResource:
    """A document shared with invited schools for one grade."""

    def __init__(self, id: str, name: str, url: str, grade: int, created_at: str = None):
        self.id = id
        self.name = name
        self.url = url
        self.grade = grade
        self.created_at = created_at

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'url': self.url,
            'grade': self.grade,
            'created_at': self.created_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SchoolResource':
        return cls(data['id'], data['name'], data['url'], int(data['grade']),
                   _pick(data, 'created_at', 'createdAt'))


class Sponsor:
    def __init__(self, id: str, name: str, logo_url: str, tier: str = 'Silver',
                 website_url: str = None):
        self.id = id
        self.name = name
        self.logo_url = logo_url
        self.tier = tier
        self.website_url = website_url

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'logo_url': self.logo_url,
            'website_url': self.website_url,
            'tier': self.tier
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Sponsor':
        return cls(data['id'], data['name'], _pick(data, 'logo_url', 'logoUrl', ''),
                   data.get('tier') or 'Silver', _pick(data, 'website_url', 'websiteUrl'))


class Vendor:
    def __init__(self, id: str, name: str, description: str, logo_url: str, location: str = None):
        self.id = id
        self.name = name
        self.description = description
        self.logo_url = logo_url
        self.location = location

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'logo_url': self.logo_url,
            'location': self.location
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Vendor':
        return cls(data['id'], data['name'], data.get('description') or '',
                   _pick(data, 'logo_url', 'logoUrl', ''), data.get('location'))
