"""
Pydantic models for the Interview Assistant.

Defines candidates, their question sets and answer logs, plus the partial
contact record produced by resume extraction. The question schedule
(difficulty order and time-limit policy) lives here so every component reads
the same constants.

Last Grunted: 10/17/2026
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Difficulty(str, Enum):
    """Question difficulty band."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class InterviewStatus(str, Enum):
    """Candidate interview status. Only moves forward."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Number of questions in every interview battery
QUESTION_COUNT = 6

# Positional difficulty schedule: 2 easy, 2 medium, 2 hard
DIFFICULTY_SCHEDULE: tuple[Difficulty, ...] = (
    Difficulty.EASY,
    Difficulty.EASY,
    Difficulty.MEDIUM,
    Difficulty.MEDIUM,
    Difficulty.HARD,
    Difficulty.HARD,
)

# Seconds allowed per question, by difficulty
TIME_LIMITS: dict[Difficulty, int] = {
    Difficulty.EASY: 50,
    Difficulty.MEDIUM: 90,
    Difficulty.HARD: 150,
}

_STATUS_ORDER: dict[InterviewStatus, int] = {
    InterviewStatus.NOT_STARTED: 0,
    InterviewStatus.IN_PROGRESS: 1,
    InterviewStatus.COMPLETED: 2,
}


def format_utc_timestamp() -> str:
    """Return current UTC timestamp as ISO 8601 string with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_utc_timestamp(value: str) -> datetime:
    """Parse a timestamp written by ``format_utc_timestamp`` (with or without fractional seconds)."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def scheduled_difficulty(index: int) -> Difficulty:
    """Difficulty for a 0-based position, clamped to the last band."""
    if index < 0:
        index = 0
    return DIFFICULTY_SCHEDULE[min(index, len(DIFFICULTY_SCHEDULE) - 1)]


def is_status_regression(current: InterviewStatus, new: InterviewStatus) -> bool:
    """True if moving from ``current`` to ``new`` would go backwards."""
    return _STATUS_ORDER[new] < _STATUS_ORDER[current]


class Question(BaseModel):
    """
    A single timed interview question.

    Example:
        >>> q = Question(
        ...     id="q1",
        ...     text="What is JSX?",
        ...     difficulty=Difficulty.EASY,
        ...     time_limit=50,
        ...     category="React Fundamentals",
        ... )
    """

    id: str = Field(..., min_length=1, description="Identifier, unique within a question set")
    text: str = Field(..., min_length=1, description="Question text shown to the candidate")
    difficulty: Difficulty = Field(..., description="Difficulty band")
    time_limit: int = Field(..., gt=0, description="Seconds allowed to answer")
    category: str = Field(default="General", description="Topic category")


class Answer(BaseModel):
    """
    A recorded answer to one question.

    ``score`` stays ``None`` until finalization assigns it.
    """

    question_id: str = Field(..., description="ID of the question this answers")
    text: str = Field(default="", description="Answer text (empty when produced by timeout)")
    time_spent: int = Field(..., ge=0, description="Seconds spent before submission")
    score: Optional[int] = Field(default=None, ge=0, le=100, description="Score 0-100")
    submitted_at: str = Field(
        default_factory=format_utc_timestamp,
        description="ISO 8601 UTC timestamp of submission",
    )


class ContactInfo(BaseModel):
    """Partial candidate contact record. Every field is independently optional."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class Candidate(BaseModel):
    """
    A person undergoing one interview session.

    Holds contact details, the fixed question set, the append-only answer
    log and the final outcome. ``current_question_index`` always equals
    ``len(answers)`` between submissions.

    Example:
        >>> candidate = Candidate(
        ...     id="cand_1",
        ...     name="Alice Johnson",
        ...     email="alice.johnson@tech.com",
        ...     phone="(555) 456-7890",
        ...     interview_status=InterviewStatus.IN_PROGRESS,
        ... )
    """

    id: str = Field(..., min_length=1, description="Unique candidate identifier")
    name: Optional[str] = Field(default=None, description="Full name")
    email: Optional[str] = Field(default=None, description="Email address")
    phone: Optional[str] = Field(default=None, description="Phone number")
    resume_text: str = Field(default="", description="Extracted resume text")
    interview_status: InterviewStatus = Field(
        default=InterviewStatus.NOT_STARTED,
        description="Interview lifecycle status",
    )
    current_question_index: int = Field(default=0, ge=0, description="0-based index of the next question")
    questions: list[Question] = Field(default_factory=list, description="Ordered question set")
    answers: list[Answer] = Field(default_factory=list, description="Ordered answer log")
    final_score: Optional[int] = Field(default=None, ge=0, le=100, description="Final score 0-100")
    ai_summary: Optional[str] = Field(default=None, description="Summary produced at completion")
    created_at: str = Field(default_factory=format_utc_timestamp, description="Creation timestamp")
    updated_at: str = Field(default_factory=format_utc_timestamp, description="Last update timestamp")

    @property
    def question_limit(self) -> int:
        """Number of questions this interview actually runs."""
        return min(QUESTION_COUNT, len(self.questions))

    @property
    def is_finished(self) -> bool:
        """True once every question has an answer."""
        return bool(self.questions) and self.current_question_index >= self.question_limit

    def question_at(self, index: int) -> Optional[Question]:
        """Bounds-checked lookup into the question set."""
        if 0 <= index < self.question_limit:
            return self.questions[index]
        return None

    def contact(self) -> ContactInfo:
        return ContactInfo(name=self.name, email=self.email, phone=self.phone)


def new_candidate_id() -> str:
    """Generate a candidate id with a timestamp and random suffix."""
    timestamp = datetime.now(timezone.utc)
    return f"cand_{timestamp.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"
