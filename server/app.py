"""FastAPI server for spellbee application."""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from core.auth import validate_teacher_credentials, verify_password
from core.config import (
    DIFFICULTIES, GRADES, PAYMENT_STATUSES, SPONSOR_TIERS, DEFAULT_PAYMENT_METHOD, MAX_OPEN_CONTESTS
)
from core.contest import SUMMARY, ContestController
from core.drill import DrillSession, pick_flashcard
from core.errors import StorageError, ValidationError
from core.gamification import BADGES, level_progress, rank_students, student_rank
from core.interfaces import AIProvider, Storage
from core.models import (
    WordEntry, StudentProfile, School, Payment, SchoolResource, Sponsor, Vendor
)
from core.reports import (
    dashboard_summary, distinct_schools, filter_students, session_history,
    session_summary, student_breakdown
)
from core.utils import new_id
from scripts.seed_words import seed_words_if_empty

logger = logging.getLogger(__name__)


# Pydantic models for API
class LoginRequest(BaseModel):
    username: str
    password: str


class WordRequest(BaseModel):
    word: str
    grade: int
    definition: Optional[str] = None
    example: Optional[str] = None
    difficulty: Optional[str] = None
    image: Optional[str] = None
    audio_url: Optional[str] = None
    enrich: bool = False


class EnrichRequest(BaseModel):
    word: str
    grade: int


class StudentRequest(BaseModel):
    first_name: str
    last_name: str
    school: str = ''
    grade: int
    school_id: Optional[str] = None
    photo: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class SchoolRequest(BaseModel):
    name: str
    username: str
    password: Optional[str] = None
    logo: Optional[str] = None


class PaymentRequest(BaseModel):
    school_id: str
    amount: float
    date: str
    method: str = DEFAULT_PAYMENT_METHOD
    observations: Optional[str] = None


class PaymentStatusRequest(BaseModel):
    status: str


class ResourceRequest(BaseModel):
    name: str
    url: str
    grade: int


class SponsorRequest(BaseModel):
    name: str
    logo_url: str
    website_url: Optional[str] = None
    tier: str = 'Silver'


class VendorRequest(BaseModel):
    name: str
    logo_url: str
    description: str = ''
    location: Optional[str] = None


class CreateContestRequest(BaseModel):
    grade: int = 1


class ContestEvent(BaseModel):
    """A contest event; fields besides ``type`` depend on the event."""
    model_config = ConfigDict(extra='allow')

    type: str


class StartDrillRequest(BaseModel):
    grade: int


class DrillAnswerRequest(BaseModel):
    answer: str
    elapsed_seconds: float = 0.0


PREDEFINED_SPONSORS = [
    Sponsor('sponsor-1', 'TechCorp', 'https://placehold.co/200x100?text=TechCorp', 'Gold',
            'https://example.com'),
    Sponsor('sponsor-2', 'EduBooks', 'https://placehold.co/200x100?text=EduBooks', 'Silver',
            'https://example.com'),
]


# Global state (in production, use proper DI)
storage: Storage = None
ai_provider: AIProvider = None
contests: dict[str, ContestController] = {}
drills: dict[str, DrillSession] = {}


app = FastAPI(title="Spellbee API", description="Spelling bee contest and practice API")


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def create_storage() -> Storage:
    """PostgreSQL when configured, otherwise local JSON files."""
    from server.file_storage import FileStorage

    storage_type = os.environ.get('SPELLBEE_STORAGE')
    if storage_type == 'file' or (storage_type is None and not os.environ.get('DATABASE_URL')):
        logger.info("Using file storage")
        return FileStorage()

    from server.postgres_storage import PostgresStorage
    logger.info("Using PostgreSQL storage")
    return PostgresStorage()


def create_ai_provider(storage: Storage) -> AIProvider | None:
    # Get API key from environment variable first, then fall back to config file
    api_key = os.environ.get('GEMINI_API_KEY')
    if not api_key:
        try:
            api_key = storage.load_config().get('gemini_api_key')
        except FileNotFoundError:
            pass
    if not api_key:
        logger.warning("GEMINI_API_KEY not set; word enrichment is disabled")
        return None

    from server.gemini_provider import GeminiProvider
    return GeminiProvider(api_key)


@app.on_event("startup")
async def startup():
    """Initialize storage and AI provider on startup."""
    global storage, ai_provider
    storage = create_storage()
    ai_provider = create_ai_provider(storage)
    try:
        seed_words_if_empty(storage)
    except StorageError as e:
        logger.error(f"Could not seed starter words: {e}")


def _require(value, what: str):
    if value is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return value


def _require_text(**fields) -> None:
    for name, value in fields.items():
        if not value or not value.strip():
            raise ValidationError(f"{name.replace('_', ' ').capitalize()} is required")


def _check_grade(grade: int) -> None:
    if grade not in GRADES:
        raise ValidationError(f"Invalid grade: {grade}")


def _public_student(student: StudentProfile) -> dict:
    return student.to_dict(include_password=False)


@app.get("/")
async def root():
    return {"service": "spellbee", "status": "ok"}


# Authentication

@app.post("/api/auth/teacher")
async def login_teacher(request: LoginRequest):
    if not validate_teacher_credentials(request.username, request.password):
        return {"success": False, "error": "Invalid username or password"}
    return {"success": True, "role": "teacher", "username": request.username}


@app.post("/api/auth/school")
async def login_school(request: LoginRequest):
    school = storage.find_school_by_username(request.username)
    if not school or not verify_password(school.password, request.password):
        return {"success": False, "error": "Invalid username or password"}
    return {"success": True, "role": "school", "school": school.to_dict(include_password=False)}


@app.post("/api/auth/student")
async def login_student(request: LoginRequest):
    student = storage.find_student_by_username(request.username)
    if not student or not verify_password(student.password, request.password):
        return {"success": False, "error": "Invalid username or password"}
    return {"success": True, "role": "student", "student": _public_student(student)}


# Words

@app.get("/api/dashboard")
async def get_dashboard():
    return dashboard_summary(storage.fetch_words())


@app.get("/api/words")
async def list_words(grade: int = None):
    return {"words": [w.to_dict() for w in storage.fetch_words(grade=grade)]}


@app.post("/api/words/enrich")
async def enrich_word(request: EnrichRequest):
    """Preview AI-generated definition, example and difficulty for a word."""
    _require_text(word=request.word)
    if ai_provider is None:
        raise HTTPException(status_code=503, detail="Gemini API key is missing")
    return ai_provider.enrich_word(request.word.strip(), request.grade)


@app.post("/api/words")
async def add_word(request: WordRequest):
    _require_text(word=request.word)
    _check_grade(request.grade)
    if request.difficulty and request.difficulty not in DIFFICULTIES:
        raise ValidationError(f"Invalid difficulty: {request.difficulty}")

    text = request.word.strip()
    details = {
        'definition': request.definition or 'No definition provided.',
        'example': request.example or 'No example provided.',
        'difficulty': request.difficulty or 'Medium'
    }
    if request.enrich:
        if ai_provider is None:
            raise HTTPException(status_code=503, detail="Gemini API key is missing")
        details.update(ai_provider.enrich_word(text, request.grade))

    word = WordEntry(new_id(), text, details['definition'], details['example'], request.grade,
                     details['difficulty'], request.image, request.audio_url)
    stored = storage.add_word(word)
    logger.info(f"Added word {stored.word!r} to grade {stored.grade}")
    return stored.to_dict()


@app.put("/api/words/{word_id}")
async def update_word(word_id: str, request: WordRequest):
    _require_text(word=request.word)
    _check_grade(request.grade)
    existing = _require(storage.get_word(word_id), "Word")
    word = WordEntry(
        word_id, request.word.strip(),
        request.definition if request.definition is not None else existing.definition,
        request.example if request.example is not None else existing.example,
        request.grade,
        request.difficulty or existing.difficulty,
        request.image if request.image is not None else existing.image,
        request.audio_url if request.audio_url is not None else existing.audio_url
    )
    return _require(storage.update_word(word), "Word").to_dict()


@app.delete("/api/words/{word_id}")
async def delete_word(word_id: str):
    _require(storage.delete_word(word_id) or None, "Word")
    return {"success": True}


@app.get("/api/flashcard")
async def get_flashcard(grade: int, previous_id: str = None):
    word = pick_flashcard(storage.fetch_words(grade=grade), previous_id)
    return {"word": word.to_dict() if word else None}


# Students

def _student_from_request(student_id: str, request: StudentRequest,
                          existing: StudentProfile = None) -> StudentProfile:
    _require_text(first_name=request.first_name, last_name=request.last_name, school=request.school)
    _check_grade(request.grade)
    username = (request.username or '').strip() or None
    if username:
        taken = storage.find_student_by_username(username)
        if taken and taken.id != student_id:
            raise ValidationError("Username already taken")
    school_id, photo = request.school_id, request.photo
    if existing:
        school_id = school_id if school_id is not None else existing.school_id
        photo = photo if photo is not None else existing.photo
    return StudentProfile(
        student_id, request.first_name.strip(), request.last_name.strip(), request.school.strip(),
        request.grade, school_id=school_id, photo=photo,
        username=username, password=request.password or None
    )


@app.get("/api/students")
async def list_students(grade: int = None, school: str = None):
    students = storage.fetch_students()
    return {
        "students": [_public_student(s) for s in filter_students(students, grade, school)],
        "schools": distinct_schools(students)
    }


@app.post("/api/students")
async def add_student(request: StudentRequest):
    student = storage.add_student(_student_from_request(new_id(), request))
    logger.info(f"Registered student {student.full_name} (grade {student.grade})")
    return _public_student(student)


@app.put("/api/students/{student_id}")
async def update_student(student_id: str, request: StudentRequest):
    existing = _require(storage.get_student(student_id), "Student")
    updated = storage.update_student(_student_from_request(student_id, request, existing))
    return _public_student(_require(updated, "Student"))


@app.delete("/api/students/{student_id}")
async def delete_student(student_id: str):
    _require(storage.delete_student(student_id) or None, "Student")
    drills.pop(student_id, None)
    return {"success": True}


@app.get("/api/students/{student_id}/dashboard")
async def get_student_dashboard(student_id: str):
    student = _require(storage.get_student(student_id), "Student")

    earned = {}
    try:
        earned = {a.badge_key: a.unlocked_at for a in storage.fetch_student_achievements(student_id)}
    except StorageError as e:
        logger.warning(f"Could not load achievements for {student_id}: {e}")

    return {
        "student": _public_student(student),
        "level": level_progress(student.total_xp),
        "rank": student_rank(storage.fetch_students(grade=student.grade), student_id, student.grade),
        "badges": [
            {**badge, "earned": badge['key'] in earned, "unlocked_at": earned.get(badge['key'])}
            for badge in BADGES
        ]
    }


@app.get("/api/leaderboard")
async def get_leaderboard(grade: int = None):
    return {"students": rank_students(storage.fetch_students(), grade)}


# Sessions (contest history)

@app.get("/api/sessions")
async def list_sessions():
    return {"sessions": session_history(storage.fetch_sessions())}


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str):
    session = _require(storage.get_session(session_id), "Session")
    return {
        "session": session.to_dict(),
        "summary": session_summary(session),
        "students": student_breakdown(session)
    }


@app.delete("/api/sessions/{session_id}")
async def delete_session(session_id: str):
    _require(storage.delete_session(session_id) or None, "Session")
    logger.info(f"Deleted session {session_id}")
    return {"success": True}


# Live contests

def _get_contest(contest_id: str) -> ContestController:
    return _require(contests.get(contest_id), "Contest")


def _prune_contests():
    """Make room for a new contest once the cap is reached.

    Finished contests whose session is saved go first, oldest first, then
    the oldest of the rest.
    """
    if len(contests) < MAX_OPEN_CONTESTS:
        return
    saved = [cid for cid, c in contests.items()
             if c.state.phase == SUMMARY and c.pending_session is None]
    for contest_id in saved + [cid for cid in contests if cid not in saved]:
        if len(contests) < MAX_OPEN_CONTESTS:
            break
        controller = contests.pop(contest_id)
        if controller.state.phase != SUMMARY:
            logger.warning(f"Discarded unfinished contest {contest_id}: too many open contests")


@app.post("/api/contests")
async def create_contest(request: CreateContestRequest):
    controller = ContestController(storage)
    controller.dispatch({'type': 'select_grade', 'grade': request.grade})
    _prune_contests()
    contests[controller.id] = controller
    return controller.to_dict()


@app.get("/api/contests/{contest_id}")
async def get_contest(contest_id: str):
    return _get_contest(contest_id).to_dict()


@app.post("/api/contests/{contest_id}/events")
async def post_contest_event(contest_id: str, event: ContestEvent):
    controller = _get_contest(contest_id)
    controller.dispatch(event.model_dump())
    return controller.to_dict()


@app.post("/api/contests/{contest_id}/retry-save")
async def retry_contest_save(contest_id: str):
    controller = _get_contest(contest_id)
    controller.retry_save()
    return controller.to_dict()


@app.delete("/api/contests/{contest_id}")
async def discard_contest(contest_id: str):
    _require(contests.pop(contest_id, None), "Contest")
    return {"success": True}


# Student drill

def _get_drill(student_id: str) -> DrillSession:
    return _require(drills.get(student_id), "Drill")


@app.post("/api/drill/{student_id}/start")
async def start_drill(student_id: str, request: StartDrillRequest):
    _check_grade(request.grade)
    student = _require(storage.get_student(student_id), "Student")
    drill = DrillSession(storage, student, request.grade)
    drills[student_id] = drill
    logger.info(f"Drill started for {student.full_name}: grade {request.grade}, {len(drill.words)} words")
    return {"grade": request.grade, "word_count": len(drill.words), "score": 0}


@app.get("/api/drill/{student_id}/next")
async def next_drill_word(student_id: str):
    drill = _get_drill(student_id)
    word = drill.next_word()
    if word is None:
        raise ValidationError("No words available for this grade.")
    # The spelling stays hidden until answered
    return {
        "word_id": word.id,
        "definition": word.definition,
        "audio_url": word.audio_url,
        "score": drill.score
    }


@app.post("/api/drill/{student_id}/answer")
async def answer_drill_word(student_id: str, request: DrillAnswerRequest):
    return _get_drill(student_id).answer(request.answer, request.elapsed_seconds)


@app.get("/api/drill/{student_id}/speak")
async def speak_drill_word(student_id: str):
    """Text for speech synthesis of the word in play."""
    word = _get_drill(student_id).current_word
    if word is None:
        raise ValidationError("No word in play. Request the next word first.")
    return {"text": word.word, "audio_url": word.audio_url}


# Invited schools

def _school_from_request(school_id: str, request: SchoolRequest) -> School:
    _require_text(name=request.name, username=request.username)
    return School(school_id, request.name.strip(), request.username.strip(),
                  request.password or None, request.logo)


@app.get("/api/schools")
async def list_schools():
    return {"schools": [s.to_dict(include_password=False) for s in storage.fetch_schools()]}


@app.post("/api/schools")
async def add_school(request: SchoolRequest):
    if not request.password:
        raise ValidationError("Password is required")
    if storage.find_school_by_username(request.username.strip()):
        raise ValidationError("Username already taken")
    school = storage.add_school(_school_from_request(new_id(), request))
    return school.to_dict(include_password=False)


@app.put("/api/schools/{school_id}")
async def update_school(school_id: str, request: SchoolRequest):
    updated = storage.update_school(_school_from_request(school_id, request))
    return _require(updated, "School").to_dict(include_password=False)


@app.delete("/api/schools/{school_id}")
async def delete_school(school_id: str):
    _require(storage.delete_school(school_id) or None, "School")
    return {"success": True}


@app.get("/api/schools/{school_id}/students")
async def list_school_students(school_id: str):
    _require(storage.get_school(school_id), "School")
    return {"students": [_public_student(s) for s in storage.fetch_students(school_id=school_id)]}


@app.post("/api/schools/{school_id}/students")
async def register_school_student(school_id: str, request: StudentRequest):
    """Delegation registration from the invited-school portal."""
    school = _require(storage.get_school(school_id), "School")
    request.school = school.name
    request.school_id = school.id
    student = storage.add_student(_student_from_request(new_id(), request))
    return _public_student(student)


@app.get("/api/payments")
async def list_payments(school_id: str = None):
    return {"payments": [p.to_dict() for p in storage.fetch_payments(school_id)]}


@app.post("/api/payments")
async def add_payment(request: PaymentRequest):
    if request.amount <= 0 or not request.date:
        raise ValidationError("Please fill amount and date")
    _require(storage.get_school(request.school_id), "School")
    payment = Payment(new_id(), request.school_id, request.amount, request.date,
                      request.method or DEFAULT_PAYMENT_METHOD, request.observations, 'pending')
    return storage.add_payment(payment).to_dict()


@app.post("/api/payments/{payment_id}/status")
async def set_payment_status(payment_id: str, request: PaymentStatusRequest):
    if request.status not in PAYMENT_STATUSES:
        raise ValidationError(f"Invalid status: {request.status}")
    payment = _require(storage.update_payment_status(payment_id, request.status), "Payment")
    logger.info(f"Payment {payment_id} marked {request.status}")
    return payment.to_dict()


@app.get("/api/resources")
async def list_resources(grade: int = None):
    return {"resources": [r.to_dict() for r in storage.fetch_resources(grade)]}


@app.post("/api/resources")
async def add_resource(request: ResourceRequest):
    _require_text(name=request.name, url=request.url)
    _check_grade(request.grade)
    resource = SchoolResource(new_id(), request.name.strip(), request.url, request.grade,
                              datetime.now(timezone.utc).isoformat())
    return storage.add_resource(resource).to_dict()


@app.delete("/api/resources/{resource_id}")
async def delete_resource(resource_id: str):
    _require(storage.delete_resource(resource_id) or None, "Resource")
    return {"success": True}


# Sponsors and vendors

@app.get("/api/sponsors")
async def list_sponsors():
    sponsors = storage.fetch_sponsors() or PREDEFINED_SPONSORS
    return {"sponsors": [s.to_dict() for s in sponsors]}


@app.post("/api/sponsors")
async def add_sponsor(request: SponsorRequest):
    if not request.name.strip() or not request.logo_url:
        raise ValidationError("Name and Logo are required")
    if request.tier not in SPONSOR_TIERS:
        raise ValidationError(f"Invalid tier: {request.tier}")
    sponsor = Sponsor(new_id(), request.name.strip(), request.logo_url, request.tier,
                      request.website_url or None)
    return storage.add_sponsor(sponsor).to_dict()


@app.delete("/api/sponsors/{sponsor_id}")
async def delete_sponsor(sponsor_id: str):
    _require(storage.delete_sponsor(sponsor_id) or None, "Sponsor")
    return {"success": True}


@app.get("/api/vendors")
async def list_vendors():
    return {"vendors": [v.to_dict() for v in storage.fetch_vendors()]}


@app.post("/api/vendors")
async def add_vendor(request: VendorRequest):
    if not request.name.strip() or not request.logo_url:
        raise ValidationError("Name and Logo/Image are required")
    vendor = Vendor(new_id(), request.name.strip(), request.description, request.logo_url,
                    request.location or None)
    return storage.add_vendor(vendor).to_dict()


@app.delete("/api/vendors/{vendor_id}")
async def delete_vendor(vendor_id: str):
    _require(storage.delete_vendor(vendor_id) or None, "Vendor")
    return {"success": True}


def create_app():
    """Factory function for creating the app (useful for testing)."""
    return app
