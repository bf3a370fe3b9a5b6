"""
Interview Assistant Service

HTTP surface for the interview assistant: resume upload and contact
extraction, candidate creation with generated questions, the timed
question/answer loop, and the reviewer dashboard.

Endpoints:
    POST /resume                - Extract resume text and contact fields
    POST /candidates            - Create candidate, generate questions, start interview
    GET  /candidates            - Dashboard listing (search + status filter)
    GET  /candidates/{id}       - Candidate detail
    PATCH /candidates/{id}      - Correct contact details before the interview completes
    GET  /session/status        - Current question, timer and progress
    POST /session/draft         - Buffer the answer being typed
    POST /session/answer        - Submit the current answer
    POST /session/pause         - Pause the countdown
    POST /session/resume        - Resume the countdown
    POST /session/welcome-back  - Resume the in-progress interview after a restart
    POST /session/clear         - Detach from the current candidate
    POST /gateway/reset         - Clear the assessment service's quota flag
    GET  /health                - Health check (rechecks the assessment service when due)

Binding: configured by SERVICE_HOST/SERVICE_PORT (default 0.0.0.0:8780)
"""

from __future__ import annotations

import base64
import binascii
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, AsyncIterator, Optional, TypedDict

import aiofiles
import uvicorn
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from interview_assistant import __version__
from interview_assistant.config import AssistantConfig, load_config
from interview_assistant.gateway import AssessmentGateway, create_assessment_gateway
from interview_assistant.models import (
    Answer,
    Candidate,
    ContactInfo,
    InterviewStatus,
    Question,
    new_candidate_id,
)
from interview_assistant.resume import (
    UnsupportedResumeFormatError,
    extract_resume_text,
    missing_contact_fields,
)
from interview_assistant.session import InterviewSessionManager, InterviewStateError
from interview_assistant.store import (
    CandidateNotFoundError,
    DuplicateCandidateError,
    CandidateStore,
    JsonFileCache,
)

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


SERVICE_NAME = "Interview Assistant Service"

# CORS configuration - modify for production
CORS_ORIGINS: list[str] = [
    "http://localhost:3000",  # Common React dev port
    "http://localhost:5173",  # Vite dev server
]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Request/Response Models
# =============================================================================


class ResumeUploadRequest(BaseModel):
    """Resume file upload, base64 encoded."""

    filename: str = Field(..., min_length=1, description="Original file name (.pdf or .docx)")
    content_base64: str = Field(..., description="Base64-encoded file bytes")


class ResumeUploadResponse(BaseModel):
    ok: bool
    filename: str
    resume_text: str
    contact: ContactInfo
    missing_fields: list[str]
    used_placeholder: bool


class CandidateCreateRequest(BaseModel):
    """Confirmed contact details plus the resume text to generate questions from."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=7)
    resume_text: str = Field(default="")


class ContactUpdateRequest(BaseModel):
    """Contact corrections. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=3)
    phone: Optional[str] = Field(default=None, min_length=7)


class DraftRequest(BaseModel):
    text: str = Field(default="")


class AnswerRequest(BaseModel):
    text: Optional[str] = Field(
        default=None,
        description="Answer text. Omit to submit the buffered draft.",
    )


class SessionResponse(BaseModel):
    ok: bool
    message: str
    session: dict[str, Any]


class CandidateResponse(BaseModel):
    ok: bool
    candidate: Candidate
    session: dict[str, Any]


class AnswerResponse(BaseModel):
    ok: bool
    accepted: bool
    answer: Optional[Answer] = None
    candidate: Candidate
    session: dict[str, Any]


class CandidateSummary(BaseModel):
    """Row in the reviewer dashboard."""

    id: str
    name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    interview_status: InterviewStatus
    answered: int
    question_count: int
    final_score: Optional[int]
    updated_at: str


class CandidateListResponse(BaseModel):
    total: int
    candidates: list[CandidateSummary]


class GatewayResponse(BaseModel):
    ok: bool
    enabled: bool
    available: bool


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    assessment_enabled: bool
    assessment_available: bool
    session_active: bool
    candidates: int


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    error_code: Optional[str] = None


class AppState(TypedDict):
    """Type-safe application state container."""

    config: AssistantConfig
    store: CandidateStore
    gateway: AssessmentGateway
    session_manager: InterviewSessionManager


# =============================================================================
# Custom Exceptions
# =============================================================================


class InterviewServiceError(Exception):
    """Base exception for interview service errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class SessionAlreadyActiveError(InterviewServiceError):
    """Raised when creating a candidate while another interview is running."""

    def __init__(
        self,
        message: str = "An interview is already in progress. Finish or clear it first.",
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="SESSION_ALREADY_ACTIVE",
        )


class CandidateCompletedError(InterviewServiceError):
    """Raised when editing a candidate whose interview is already scored."""

    def __init__(self, candidate_id: str) -> None:
        super().__init__(
            message=f"Candidate {candidate_id!r} has a completed interview and can no longer be edited.",
            status_code=status.HTTP_409_CONFLICT,
            error_code="CANDIDATE_COMPLETED",
        )


class InvalidUploadError(InterviewServiceError):
    """Raised when the upload body cannot be decoded."""

    def __init__(self, message: str = "Upload content is not valid base64.") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_UPLOAD",
        )


# =============================================================================
# Dependencies
# =============================================================================


def get_app_state(request: Request) -> AppState:
    """
    Dependency to retrieve application state from request.

    Raises:
        RuntimeError: If state is not properly initialized.
    """
    state = getattr(request, "state", None)
    if state is None:
        raise RuntimeError("Application state not initialized")
    return AppState(
        config=state.config,
        store=state.store,
        gateway=state.gateway,
        session_manager=state.session_manager,
    )


# Type alias for dependency injection
AppStateDep = Annotated[AppState, Depends(get_app_state)]


# =============================================================================
# Transcript File (Async)
# =============================================================================


def build_transcript_hooks(transcript_file: Path):
    """Create session hooks that append answers and results to the transcript file."""

    async def _append(lines: list[str]) -> None:
        try:
            transcript_file.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(transcript_file, "a", encoding="utf-8") as f:
                for line in lines:
                    await f.write(f"{line}\n")
        except OSError as e:
            logger.error("Failed to save transcript to file: %s", e)

    async def on_answer(candidate: Candidate, question: Question, answer: Answer) -> None:
        lines: list[str] = []
        if candidate.current_question_index == 1:
            lines += [
                "",
                "=" * 60,
                f"INTERVIEW: {candidate.name or candidate.id} ({candidate.id})",
                "=" * 60,
            ]
        label = answer.text.strip() or "(no answer - time expired)"
        lines += [
            f"[{answer.submitted_at}] Q{candidate.current_question_index} "
            f"({question.difficulty.value}, {answer.time_spent}/{question.time_limit}s): "
            f"{question.text}",
            f"    A: {label}",
        ]
        await _append(lines)

    async def on_complete(candidate: Candidate) -> None:
        await _append(
            [
                f"--- Final score: {candidate.final_score}/100 ---",
                f"Summary: {candidate.ai_summary}",
                "",
            ]
        )

    return on_answer, on_complete


def _interview_pending(session_manager: InterviewSessionManager, store: CandidateStore) -> bool:
    """True while an interview is running or the current candidate awaits welcome-back."""
    if session_manager.is_active:
        return True
    current = store.current
    return current is not None and current.interview_status == InterviewStatus.IN_PROGRESS


def _summarize(candidate: Candidate) -> CandidateSummary:
    return CandidateSummary(
        id=candidate.id,
        name=candidate.name,
        email=candidate.email,
        phone=candidate.phone,
        interview_status=candidate.interview_status,
        answered=len(candidate.answers),
        question_count=candidate.question_limit,
        final_score=candidate.final_score,
        updated_at=candidate.updated_at,
    )


# =============================================================================
# Exception Handlers
# =============================================================================


def _error(status_code: int, message: str, error_code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(ok=False, error=message, error_code=error_code).model_dump(),
    )


async def interview_service_error_handler(
    request: Request, exc: InterviewServiceError
) -> JSONResponse:
    """Handle InterviewServiceError exceptions."""
    return _error(exc.status_code, exc.message, exc.error_code or "SERVICE_ERROR")


async def unsupported_format_handler(
    request: Request, exc: UnsupportedResumeFormatError
) -> JSONResponse:
    return _error(status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, str(exc), "UNSUPPORTED_FORMAT")


async def interview_state_error_handler(
    request: Request, exc: InterviewStateError
) -> JSONResponse:
    return _error(status.HTTP_409_CONFLICT, str(exc), "INVALID_SESSION_STATE")


async def candidate_not_found_handler(
    request: Request, exc: CandidateNotFoundError
) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, str(exc), "CANDIDATE_NOT_FOUND")


async def duplicate_candidate_handler(
    request: Request, exc: DuplicateCandidateError
) -> JSONResponse:
    return _error(status.HTTP_409_CONFLICT, str(exc), "DUPLICATE_CANDIDATE")


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        "INTERNAL_ERROR",
    )


# =============================================================================
# FastAPI App Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
    """
    Build config, store, gateway and session manager for the app's lifetime.

    Yields:
        Dictionary of application state to be attached to requests.
    """
    config = load_config()
    logger.info("Starting %s v%s", SERVICE_NAME, __version__)
    logger.info("Data directory: %s", config.data_dir)

    store = CandidateStore.load(JsonFileCache(config.data_dir))
    gateway = create_assessment_gateway(config)
    on_answer, on_complete = build_transcript_hooks(config.transcript_file)
    session_manager = InterviewSessionManager(
        store,
        gateway,
        tick_interval=config.tick_interval_s,
        on_answer=on_answer,
        on_complete=on_complete,
    )

    yield {
        "config": config,
        "store": store,
        "gateway": gateway,
        "session_manager": session_manager,
    }

    logger.info("Shutting down...")
    await session_manager.aclose()


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title=SERVICE_NAME,
    version=__version__,
    description="Resume-driven timed technical interviews with automated scoring",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    max_age=3600,
)

app.add_exception_handler(InterviewServiceError, interview_service_error_handler)
app.add_exception_handler(UnsupportedResumeFormatError, unsupported_format_handler)
app.add_exception_handler(InterviewStateError, interview_state_error_handler)
app.add_exception_handler(CandidateNotFoundError, candidate_not_found_handler)
app.add_exception_handler(DuplicateCandidateError, duplicate_candidate_handler)
app.add_exception_handler(Exception, generic_exception_handler)


# =============================================================================
# Endpoints
# =============================================================================


@app.post("/resume", response_model=ResumeUploadResponse)
async def upload_resume(
    request: ResumeUploadRequest,
    state: AppStateDep,
) -> ResumeUploadResponse:
    """
    Extract text and contact fields from an uploaded resume.

    Raises:
        UnsupportedResumeFormatError: If the file is not PDF or DOCX.
        InvalidUploadError: If the content is not valid base64.
    """
    try:
        data = base64.b64decode(request.content_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidUploadError() from e

    extraction = extract_resume_text(data, request.filename)
    if extraction.used_placeholder:
        contact = extraction.placeholder_contact
    else:
        contact = await state["gateway"].extract_contact_info(extraction.text)

    missing = missing_contact_fields(contact)
    logger.info(
        "Resume %s processed (placeholder=%s, missing=%s)",
        request.filename,
        extraction.used_placeholder,
        missing,
    )
    return ResumeUploadResponse(
        ok=True,
        filename=request.filename,
        resume_text=extraction.text,
        contact=contact,
        missing_fields=missing,
        used_placeholder=extraction.used_placeholder,
    )


@app.post("/candidates", response_model=CandidateResponse)
async def create_candidate(
    request: CandidateCreateRequest,
    state: AppStateDep,
) -> CandidateResponse:
    """
    Create a candidate, generate six questions and start the interview.

    Raises:
        SessionAlreadyActiveError: If another interview is in progress.
    """
    store = state["store"]
    session_manager = state["session_manager"]

    if _interview_pending(session_manager, store):
        raise SessionAlreadyActiveError()

    questions = await state["gateway"].generate_questions(request.resume_text)

    # Re-check after generation: another request may have started meanwhile
    if _interview_pending(session_manager, store):
        raise SessionAlreadyActiveError()

    candidate = Candidate(
        id=new_candidate_id(),
        name=request.name.strip(),
        email=request.email.strip(),
        phone=request.phone.strip(),
        resume_text=request.resume_text,
        interview_status=InterviewStatus.IN_PROGRESS,
    )
    session_manager.start(candidate, questions)
    logger.info("Interview started for: %s (%s)", candidate.name, candidate.id)

    return CandidateResponse(
        ok=True,
        candidate=store.get(candidate.id),
        session=session_manager.snapshot(),
    )


@app.get("/candidates", response_model=CandidateListResponse)
async def list_candidates(
    state: AppStateDep,
    search: Optional[str] = Query(default=None, description="Name or email substring"),
    status_filter: Optional[InterviewStatus] = Query(default=None, alias="status"),
) -> CandidateListResponse:
    """Reviewer dashboard: completed first, then by score, then most recent."""
    rows = [_summarize(c) for c in state["store"].list_candidates(search, status_filter)]
    return CandidateListResponse(total=len(rows), candidates=rows)


@app.get("/candidates/{candidate_id}", response_model=Candidate)
async def get_candidate(candidate_id: str, state: AppStateDep) -> Candidate:
    candidate = state["store"].get(candidate_id)
    if candidate is None:
        raise CandidateNotFoundError(candidate_id)
    return candidate


@app.patch("/candidates/{candidate_id}", response_model=Candidate)
async def update_candidate_contact(
    candidate_id: str,
    request: ContactUpdateRequest,
    state: AppStateDep,
) -> Candidate:
    """
    Correct a candidate's name, email or phone.

    Raises:
        CandidateNotFoundError: If the id is unknown.
        CandidateCompletedError: If the interview has already been scored.
    """
    store = state["store"]
    candidate = store.get(candidate_id)
    if candidate is None:
        raise CandidateNotFoundError(candidate_id)
    if candidate.interview_status == InterviewStatus.COMPLETED:
        raise CandidateCompletedError(candidate_id)

    fields = {
        name: value.strip()
        for name, value in request.model_dump(exclude_none=True).items()
    }
    if not fields:
        return candidate

    logger.info("Updating contact fields %s for %s", sorted(fields), candidate_id)
    return store.update_contact(candidate_id, **fields)


@app.get("/session/status", response_model=SessionResponse)
async def session_status(state: AppStateDep) -> SessionResponse:
    return SessionResponse(
        ok=True,
        message="Session status",
        session=state["session_manager"].snapshot(),
    )


@app.post("/session/draft", response_model=SessionResponse)
async def update_draft(request: DraftRequest, state: AppStateDep) -> SessionResponse:
    session_manager = state["session_manager"]
    session_manager.update_draft(request.text)
    return SessionResponse(ok=True, message="Draft saved", session=session_manager.snapshot())


@app.post("/session/answer", response_model=AnswerResponse)
async def submit_answer(request: AnswerRequest, state: AppStateDep) -> AnswerResponse:
    """
    Submit the answer for the current question.

    The last answer completes the interview; scoring and the summary are
    written before this returns.
    """
    session_manager = state["session_manager"]
    candidate_id = session_manager.candidate_id
    answer = await session_manager.submit_answer(request.text)

    candidate = state["store"].get(candidate_id) if candidate_id else None
    if candidate is None:
        raise InterviewStateError("No active interview. Call start() first.")
    return AnswerResponse(
        ok=True,
        accepted=answer is not None,
        answer=answer,
        candidate=candidate,
        session=session_manager.snapshot(),
    )


@app.post("/session/pause", response_model=SessionResponse)
async def pause_session(state: AppStateDep) -> SessionResponse:
    session_manager = state["session_manager"]
    session_manager.pause()
    return SessionResponse(ok=True, message="Paused", session=session_manager.snapshot())


@app.post("/session/resume", response_model=SessionResponse)
async def resume_session(state: AppStateDep) -> SessionResponse:
    session_manager = state["session_manager"]
    session_manager.resume()
    return SessionResponse(ok=True, message="Resumed", session=session_manager.snapshot())


@app.post("/session/welcome-back", response_model=SessionResponse)
async def welcome_back(state: AppStateDep) -> SessionResponse:
    """Resume the interview left in progress by a previous run, if any."""
    session_manager = state["session_manager"]
    candidate = await session_manager.resume_in_progress()
    if candidate is None:
        return SessionResponse(
            ok=True,
            message="No interview in progress",
            session=session_manager.snapshot(),
        )
    return SessionResponse(
        ok=True,
        message=f"Welcome back, {candidate.name or candidate.id}",
        session=session_manager.snapshot(),
    )


@app.post("/session/clear", response_model=SessionResponse)
async def clear_session(state: AppStateDep) -> SessionResponse:
    session_manager = state["session_manager"]
    session_manager.clear()
    return SessionResponse(ok=True, message="Session cleared", session=session_manager.snapshot())


@app.post("/gateway/reset", response_model=GatewayResponse)
async def reset_gateway(state: AppStateDep) -> GatewayResponse:
    gateway = state["gateway"]
    gateway.reset_availability()
    return GatewayResponse(ok=True, enabled=gateway.enabled, available=gateway.available)


@app.get("/health", response_model=HealthResponse)
async def health(state: AppStateDep) -> HealthResponse:
    """Health check endpoint. Rechecks the assessment service once its recheck is due."""
    gateway = state["gateway"]
    available = await gateway.check_availability()
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        version=__version__,
        timestamp=_utc_now(),
        assessment_enabled=gateway.enabled,
        assessment_available=available,
        session_active=state["session_manager"].is_active,
        candidates=len(state["store"]),
    )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    runtime_config = load_config()
    logger.info("=" * 60)
    logger.info("%s v%s", SERVICE_NAME, __version__)
    logger.info("=" * 60)
    logger.info(
        "Binding to: http://%s:%d",
        runtime_config.service_host,
        runtime_config.service_port,
    )
    logger.info("Data directory: %s", runtime_config.data_dir)
    logger.info("Transcript file: %s", runtime_config.transcript_file)
    logger.info("Assessment credentials configured: %s", runtime_config.has_credentials)
    logger.info("=" * 60)

    uvicorn.run(
        app,
        host=runtime_config.service_host,
        port=runtime_config.service_port,
        log_level="info",
    )
