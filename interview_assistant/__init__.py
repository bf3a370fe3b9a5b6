"""
Interview Assistant Package.

Runs resume-driven technical interviews: six timed questions generated from
the candidate's resume, free-text answers with auto-submit on timeout, and
scoring plus a summary at the end. Generation, scoring and summaries use the
OpenAI Agents SDK, with deterministic fallback content whenever the service
is unavailable.

Components:
    - AssessmentGateway: External question/scoring/summary service with availability tracking
    - InterviewSessionManager: Question progression, timer, answers and finalization
    - CandidateStore: Persisted candidate collection with a "current" pointer
    - CountdownTimer: Per-question countdown with timeout callback
    - Fallback provider: Fixed question bank, heuristic scorer and summarizer
    - Models: Pydantic models for candidates, questions and answers

Example:
    >>> from interview_assistant import (
    ...     AssessmentGateway, CandidateStore, InterviewSessionManager, Candidate,
    ... )
    >>>
    >>> gateway = AssessmentGateway(enabled=False)  # offline: fallback content only
    >>> store = CandidateStore()
    >>> manager = InterviewSessionManager(store, gateway)
    >>> questions = await gateway.generate_questions(resume_text)
    >>> manager.start(Candidate(id="cand_1", name="Alice Johnson"), questions)
    >>> await manager.submit_answer("React is a UI library built around components...")

Last Grunted: 10/17/2026
"""

from .models import (
    Answer,
    Candidate,
    ContactInfo,
    Difficulty,
    InterviewStatus,
    Question,
    QUESTION_COUNT,
    TIME_LIMITS,
    new_candidate_id,
)

from .fallback import (
    extract_contact_fallback,
    get_fallback_questions,
    score_fallback,
    summarize_fallback,
)

from .parsing import AssessmentResponseError

from .config import AssistantConfig, RequestDelays, load_config

from .gateway import AssessmentGateway, create_assessment_gateway

from .timer import CountdownTimer, TimerState

from .store import (
    CandidateStore,
    JsonFileCache,
    CacheReadError,
    CacheWriteError,
    CandidateNotFoundError,
    DuplicateCandidateError,
    InvalidAnswerError,
    InvalidStatusTransition,
)

from .session import InterviewSessionManager, InterviewStateError, SessionState

from .resume import (
    ResumeExtraction,
    UnsupportedResumeFormatError,
    extract_resume_text,
    missing_contact_fields,
)


__all__ = [
    # Models
    "Answer",
    "Candidate",
    "ContactInfo",
    "Difficulty",
    "InterviewStatus",
    "Question",
    "QUESTION_COUNT",
    "TIME_LIMITS",
    "new_candidate_id",
    # Fallback content
    "extract_contact_fallback",
    "get_fallback_questions",
    "score_fallback",
    "summarize_fallback",
    # Configuration
    "AssistantConfig",
    "RequestDelays",
    "load_config",
    # Assessment gateway
    "AssessmentGateway",
    "AssessmentResponseError",
    "create_assessment_gateway",
    # Timer
    "CountdownTimer",
    "TimerState",
    # Store
    "CandidateStore",
    "JsonFileCache",
    "CacheReadError",
    "CacheWriteError",
    "CandidateNotFoundError",
    "DuplicateCandidateError",
    "InvalidAnswerError",
    "InvalidStatusTransition",
    # Session
    "InterviewSessionManager",
    "InterviewStateError",
    "SessionState",
    # Resume extraction
    "ResumeExtraction",
    "UnsupportedResumeFormatError",
    "extract_resume_text",
    "missing_contact_fields",
]

__version__ = "0.1.0"
