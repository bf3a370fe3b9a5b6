"""
Interview Session Manager.

Drives one candidate's interview: binds each question to the countdown
timer, records answers (typed or produced by timeout) into the candidate
store, and once the last question is answered runs finalization, which
scores every answer, computes the final score and writes the summary.

Manual submission and timeout share the same code path and the same
"already submitted" guard, so a tick and a click landing together can
never record two answers for one question.

Thread Safety:
    This class is NOT thread-safe. It is meant to be driven from a single
    asyncio event loop.

Last Grunted: 10/17/2026
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from .fallback import round_score
from .gateway import AssessmentGateway
from .models import (
    Answer,
    Candidate,
    InterviewStatus,
    QUESTION_COUNT,
    Question,
)
from .store import CandidateStore
from .timer import CountdownTimer


__all__ = ["InterviewSessionManager", "InterviewStateError", "SessionState"]


logger = logging.getLogger(__name__)


AnswerHook = Callable[[Candidate, Question, Answer], Awaitable[None]]
CompletionHook = Callable[[Candidate], Awaitable[None]]


class SessionState(str, Enum):
    """Interview lifecycle for the session being driven."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class InterviewStateError(Exception):
    """Raised when an operation is not valid in the current session state."""


def _minimal_summary(candidate: Candidate, final_score: int) -> str:
    name = candidate.name or "The candidate"
    return (
        f"{name} answered {len(candidate.answers)}/{candidate.question_limit} "
        f"questions with a final score of {final_score}/100."
    )


class InterviewSessionManager:
    """
    Runs the question/answer/finalize cycle for the current candidate.

    Responsibilities:
        - Bind the current question to the countdown timer
        - Record manual and timed-out answers through the store
        - Advance to the next question or finish the interview
        - Score answers and write the final result through the gateway
        - Resume an in-progress interview after a restart

    Example:
        >>> manager = InterviewSessionManager(store, gateway)
        >>> manager.start(candidate, questions)
        >>> manager.update_draft("React is a UI library...")
        >>> await manager.submit_answer()
    """

    def __init__(
        self,
        store: CandidateStore,
        gateway: AssessmentGateway,
        tick_interval: Optional[float] = 1.0,
        on_answer: Optional[AnswerHook] = None,
        on_complete: Optional[CompletionHook] = None,
    ) -> None:
        """
        Initialize the session manager without an active interview.

        Args:
            store: Candidate store that owns every record.
            gateway: Assessment gateway used for finalization.
            tick_interval: Seconds between timer ticks. ``None`` disables the
                background ticking task; the caller drives ``timer.tick()``.
            on_answer: Awaited after each answer is recorded.
            on_complete: Awaited after finalization writes the result.
        """
        self._store = store
        self._gateway = gateway
        self._on_answer = on_answer
        self._on_complete = on_complete
        self._timer = CountdownTimer(self._handle_timeout, tick_interval=tick_interval)

        self._candidate_id: Optional[str] = None
        self._state = SessionState.NOT_STARTED
        self._accepting = False
        self._finalizing = False
        self._draft = ""
        # Bumped on start/clear so late results from an earlier session are dropped
        self._epoch = 0

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def timer(self) -> CountdownTimer:
        return self._timer

    @property
    def candidate_id(self) -> Optional[str]:
        return self._candidate_id

    @property
    def candidate(self) -> Optional[Candidate]:
        """The candidate record being interviewed, looked up in the store."""
        if self._candidate_id is None:
            return None
        return self._store.get(self._candidate_id)

    @property
    def is_active(self) -> bool:
        return self._state == SessionState.IN_PROGRESS and self._candidate_id is not None

    @property
    def is_paused(self) -> bool:
        return self._timer.is_paused

    @property
    def is_finalizing(self) -> bool:
        return self._finalizing

    @property
    def time_remaining(self) -> int:
        return self._timer.remaining if self.is_active else 0

    @property
    def current_question(self) -> Optional[Question]:
        """``questions[current_question_index]``, or None outside an active interview."""
        candidate = self.candidate
        if candidate is None or not self.is_active:
            return None
        return candidate.question_at(candidate.current_question_index)

    @property
    def draft(self) -> str:
        return self._draft

    def _require_candidate(self) -> Candidate:
        candidate = self.candidate
        if candidate is None:
            raise InterviewStateError("No active interview. Call start() first.")
        return candidate

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(
        self,
        candidate: Candidate,
        questions: Optional[Sequence[Question]] = None,
    ) -> Optional[Question]:
        """
        Start (or restart) the interview for a candidate.

        The candidate is added to the store if it is not there yet. Questions
        are only assigned when the record has none; an existing set is kept.
        The interview resumes at the record's ``current_question_index`` with
        a full time limit.

        Args:
            candidate: Candidate to interview.
            questions: Question set to assign if the record has none.

        Returns:
            The current question, or None if every question was already
            answered (the session is then COMPLETED, pending finalization).

        Raises:
            InterviewStateError: If there are no questions or the interview
                is already completed.
        """
        if candidate.id not in self._store:
            self._store.add(candidate)
        record = self._require_record(candidate.id)

        if questions:
            if not record.questions:
                record = self._store.assign_questions(record.id, questions)
            elif [q.id for q in questions] != [q.id for q in record.questions]:
                logger.warning("Candidate %s already has questions, keeping them", record.id)

        if not record.questions:
            raise InterviewStateError(f"Candidate {record.id} has no questions assigned")
        if record.interview_status == InterviewStatus.COMPLETED:
            raise InterviewStateError(f"Interview for {record.id} is already completed")
        if len(record.questions) != QUESTION_COUNT:
            logger.warning(
                "Candidate %s has %d questions (expected %d), clamping progression",
                record.id,
                len(record.questions),
                QUESTION_COUNT,
            )

        if self._candidate_id is not None and self._candidate_id != record.id:
            logger.info("Leaving interview for %s", self._candidate_id)
        self._timer.stop()
        self._epoch += 1

        self._store.update_status(record.id, InterviewStatus.IN_PROGRESS)
        self._store.set_current(record.id)
        self._candidate_id = record.id
        self._draft = ""

        question = record.question_at(record.current_question_index)
        if question is None:
            logger.info("All questions already answered for %s", record.id)
            self._state = SessionState.COMPLETED
            self._accepting = False
            return None

        self._state = SessionState.IN_PROGRESS
        self._accepting = True
        self._timer.bind(question.time_limit)
        logger.info(
            "Interview started for %s at question %d/%d",
            record.name or record.id,
            record.current_question_index + 1,
            record.question_limit,
        )
        return question

    def _require_record(self, candidate_id: str) -> Candidate:
        record = self._store.get(candidate_id)
        if record is None:
            raise InterviewStateError(f"Candidate {candidate_id} is not in the store")
        return record

    async def resume_in_progress(self) -> Optional[Candidate]:
        """
        Pick up the in-progress interview left over from a previous run.

        A candidate whose answers were all recorded but never finalized is
        finalized now.

        Returns:
            The resumed candidate, or None if nothing was in progress.
        """
        candidate = self._store.find_in_progress()
        if candidate is None:
            logger.info("No in-progress interview to resume")
            return None

        logger.info("Resuming interview for %s", candidate.name or candidate.id)
        self.start(candidate)
        if self._state == SessionState.COMPLETED:
            await self.finalize()
        return self._store.get(candidate.id)

    def clear(self) -> None:
        """Detach from the current candidate. The record stays in the store."""
        self._timer.stop()
        self._epoch += 1
        self._candidate_id = None
        self._state = SessionState.NOT_STARTED
        self._accepting = False
        self._draft = ""
        self._store.clear_current()

    async def aclose(self) -> None:
        await self._timer.aclose()

    # -------------------------------------------------------------------------
    # Answering
    # -------------------------------------------------------------------------

    def update_draft(self, text: str) -> None:
        """Buffer the answer being typed; a timeout submits whatever is here."""
        if not self.is_active:
            raise InterviewStateError("No active interview. Call start() first.")
        self._draft = text

    def pause(self) -> None:
        if not self.is_active:
            raise InterviewStateError("No active interview to pause.")
        self._timer.pause()

    def resume(self) -> None:
        if not self.is_active:
            raise InterviewStateError("No active interview to resume.")
        self._timer.resume()

    async def _handle_timeout(self) -> None:
        logger.info("Time is up, auto-submitting current answer")
        await self.submit_answer(self._draft)

    async def submit_answer(self, text: Optional[str] = None) -> Optional[Answer]:
        """
        Record the answer for the current question and advance.

        Used for both manual submission and timeout. After the last question
        the session completes and finalization runs before this returns.

        Args:
            text: Answer text. Defaults to the buffered draft.

        Returns:
            The recorded Answer, or None if this question was already
            submitted.

        Raises:
            InterviewStateError: If no interview has been started.
        """
        candidate = self._require_candidate()
        if not self._accepting:
            logger.info("Answer already submitted for this question, ignoring")
            return None

        question = candidate.question_at(candidate.current_question_index)
        if question is None:
            raise InterviewStateError(f"Candidate {candidate.id} has no current question")

        # Close the guard before anything can yield
        self._accepting = False
        answer_text = self._draft if text is None else text
        answer = Answer(
            question_id=question.id,
            text=answer_text,
            time_spent=max(0, question.time_limit - self._timer.remaining),
        )
        try:
            candidate = self._store.record_answer(candidate.id, answer)
        except Exception:
            self._accepting = True
            raise
        self._draft = ""

        next_question = candidate.question_at(candidate.current_question_index)
        if next_question is not None:
            self._timer.bind(next_question.time_limit)
            self._accepting = True
            logger.info(
                "Recorded answer for %s, moving to question %d/%d",
                question.id,
                candidate.current_question_index + 1,
                candidate.question_limit,
            )
            if self._on_answer is not None:
                await self._on_answer(candidate, question, answer)
            return answer

        logger.info("Last answer recorded for %s, finalizing", candidate.id)
        self._state = SessionState.COMPLETED
        self._timer.stop()
        if self._on_answer is not None:
            await self._on_answer(candidate, question, answer)
        if self._candidate_id == candidate.id:
            await self.finalize()
        return answer

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def _is_stale(self, epoch: int, candidate_id: str) -> bool:
        if self._epoch != epoch or self._candidate_id != candidate_id:
            logger.info("Discarding finalization result for %s, session moved on", candidate_id)
            return True
        return False

    async def finalize(self) -> Optional[Candidate]:
        """
        Score every answer, compute the final score and write the summary.

        Answers are evaluated one at a time, in order. Results are discarded
        if the session is cleared or restarted while the gateway is working.

        Returns:
            The completed candidate, or None if finalization was skipped or
            its results were discarded.

        Raises:
            InterviewStateError: If not every question has been answered.
        """
        candidate = self._require_candidate()
        if candidate.interview_status == InterviewStatus.COMPLETED and candidate.final_score is not None:
            return candidate
        if not candidate.is_finished:
            raise InterviewStateError(
                f"Cannot finalize {candidate.id}: "
                f"{len(candidate.answers)}/{candidate.question_limit} questions answered"
            )
        if self._finalizing:
            logger.info("Finalization already running for %s", candidate.id)
            return None

        epoch = self._epoch
        candidate_id = candidate.id
        questions = list(candidate.questions[: candidate.question_limit])
        answers = list(candidate.answers)
        by_id = {q.id: q for q in questions}

        self._finalizing = True
        try:
            scores: list[int] = []
            for index, answer in enumerate(answers):
                question = by_id.get(answer.question_id) or questions[min(index, len(questions) - 1)]
                score = await self._gateway.evaluate_answer(question, answer.text)
                if self._is_stale(epoch, candidate_id):
                    return None
                scores.append(score)

            final_score = round_score(sum(scores) / len(scores)) if scores else 0
            scored = [a.model_copy(update={"score": s}) for a, s in zip(answers, scores)]
            snapshot = candidate.model_copy(update={"answers": scored, "final_score": final_score})

            try:
                summary = (await self._gateway.generate_summary(snapshot, questions, scored)).strip()
            except Exception as e:
                logger.error("Summary generation failed: %s", e, exc_info=True)
                summary = ""
            if self._is_stale(epoch, candidate_id):
                return None
            if not summary:
                summary = _minimal_summary(snapshot, final_score)

            self._store.set_answer_scores(candidate_id, scores)
            completed = self._store.set_final_score(candidate_id, final_score, summary)
            self._state = SessionState.COMPLETED
            if self._on_complete is not None:
                await self._on_complete(completed)
            return completed
        finally:
            self._finalizing = False

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Current session view for status endpoints."""
        candidate = self.candidate
        question = self.current_question
        return {
            "state": self._state.value,
            "candidate_id": self._candidate_id,
            "candidate_name": candidate.name if candidate else None,
            "is_active": self.is_active,
            "is_paused": self.is_paused,
            "is_finalizing": self._finalizing,
            "time_remaining": self.time_remaining,
            "question_index": candidate.current_question_index if candidate else 0,
            "question_count": candidate.question_limit if candidate else 0,
            "current_question": question.model_dump(mode="json") if question else None,
            "interview_status": candidate.interview_status.value if candidate else None,
            "final_score": candidate.final_score if candidate else None,
        }
