"""
External Assessment Gateway using OpenAI Agents SDK.

Wraps four language-model operations behind fixed internal contracts:
question generation, answer scoring, summary writing and contact extraction.
Each operation runs a dedicated agent, parses the reply through
``parsing.py`` and falls back to ``fallback.py`` when the service is
unavailable, times out, or returns something unusable.

Availability is tracked per instance. A quota or rate-limit failure marks the
gateway unavailable; it is retried only after ``recheck_interval`` seconds.
Every other failure only affects the call that raised it.

Last Grunted: 10/17/2026
"""

import asyncio
import logging
import random
import re
import time
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from agents import Agent, ModelSettings, OpenAIChatCompletionsModel, Runner
from openai import RateLimitError
from openai.types.shared import Reasoning

from .config import AssistantConfig, DEFAULT_MODEL, RequestDelays, build_agent_model, load_config
from .fallback import (
    extract_contact_fallback,
    get_fallback_questions,
    score_fallback,
    summarize_fallback,
)
from .models import Answer, Candidate, ContactInfo, Question
from .parsing import (
    AssessmentResponseError,
    normalize_questions,
    parse_contact_payload,
    parse_evaluation,
    parse_question_payload,
)


__all__ = [
    "AssessmentGateway",
    "AgentRunner",
    "run_agent",
    "is_rate_limit_error",
    "create_assessment_gateway",
]


logger = logging.getLogger(__name__)


# Signature of the coroutine that executes an agent and returns its text reply
AgentRunner = Callable[[Agent, str], Awaitable[str]]

_RATE_LIMIT_PATTERN = re.compile(r"quota|rate limit", re.IGNORECASE)

# Resume text beyond this many characters is not sent to the service
_MAX_RESUME_CHARS = 12000


# =============================================================================
# Agent Instructions
# =============================================================================

QUESTION_GENERATOR_INSTRUCTIONS = """You are an expert technical interviewer preparing a timed interview for a full-stack developer role.

Generate EXACTLY 6 interview questions based on the candidate's resume:
- 2 easy questions (50 seconds each)
- 2 medium questions (90 seconds each)
- 2 hard questions (150 seconds each)

Order them easy, easy, medium, medium, hard, hard. Focus on React, Node.js,
JavaScript and the technologies mentioned in the resume.

Return ONLY valid JSON without markdown formatting or code blocks:
{"questions": [{"id": "string", "text": "string", "difficulty": "easy|medium|hard", "timeLimit": number, "category": "string"}]}"""


ANSWER_EVALUATOR_INSTRUCTIONS = """You are an expert technical interviewer scoring a candidate's answer.

Rate the answer from 0 to 100 based on:
- Technical accuracy
- Completeness of the response
- Understanding of the concepts
- Practical application
- Communication clarity

Calibrate to the question difficulty:
- Easy (50s): basic concepts, simple explanations
- Medium (90s): intermediate concepts, some depth
- Hard (150s): advanced concepts, complex problem solving

An empty or off-topic answer scores near 0.

Return ONLY valid JSON without markdown formatting or code blocks:
{"score": number, "feedback": "string"}"""


SUMMARY_WRITER_INSTRUCTIONS = """You are an experienced hiring manager writing a candidate evaluation summary.

Using the interview questions, answers and scores, write a short professional summary covering:
- Overall performance
- Strengths demonstrated
- Areas for improvement
- Technical competency level
- Recommendation for next steps

Be constructive and specific. Reply with plain prose, no JSON and no markdown headings."""


CONTACT_EXTRACTOR_INSTRUCTIONS = """You extract contact information from resume text.

Find the candidate's full name, email address and phone number. Use null for anything not present.

Return ONLY valid JSON without markdown formatting or code blocks:
{"name": "string or null", "email": "string or null", "phone": "string or null"}"""


PROBE_INSTRUCTIONS = "Reply with the single word OK."


def is_rate_limit_error(exc: BaseException) -> bool:
    """True if an exception signals quota exhaustion or rate limiting."""
    if isinstance(exc, RateLimitError):
        return True
    for attr in ("status_code", "status", "http_status"):
        if getattr(exc, attr, None) == 429:
            return True
    return bool(_RATE_LIMIT_PATTERN.search(str(exc)))


async def run_agent(agent: Agent, prompt: str) -> str:
    """Run an agent through the SDK runner and return its final text output."""
    result = await Runner.run(agent, prompt)
    output = result.final_output
    if output is None:
        return ""
    return output if isinstance(output, str) else str(output)


# =============================================================================
# Assessment Gateway
# =============================================================================

class AssessmentGateway:
    """
    Adapts the external assessment service to fixed internal contracts.

    Every public operation always returns a structurally valid result: when
    the service is disabled, unavailable, slow or returns garbage, the
    fallback provider answers instead.

    Example:
        >>> gateway = AssessmentGateway(enabled=False)
        >>> questions = await gateway.generate_questions("")
        >>> [q.id for q in questions]
        ['q1', 'q2', 'q3', 'q4', 'q5', 'q6']
    """

    def __init__(
        self,
        model: Optional[Union[str, OpenAIChatCompletionsModel]] = None,
        *,
        runner: Optional[AgentRunner] = None,
        enabled: bool = True,
        delays: Optional[RequestDelays] = None,
        request_timeout: float = 30.0,
        recheck_interval: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        reasoning_effort: str = "low",
    ) -> None:
        """
        Initialize the gateway.

        Args:
            model: Model name or SDK model object. Defaults to OPENAI_MODEL's default.
            runner: Coroutine that executes an agent and returns its text.
                Defaults to ``run_agent`` (the SDK runner).
            enabled: When False every operation goes straight to the fallback.
            delays: Pause before each external call.
            request_timeout: Seconds before an external call is abandoned.
            recheck_interval: Seconds to wait before retrying after a quota failure.
            clock: Monotonic clock used for availability tracking.
            sleep: Coroutine used for the pre-call delays.
            rng: Random source for the fallback scorer.
            reasoning_effort: Reasoning effort for reasoning models.
        """
        self.model = model or DEFAULT_MODEL
        self._runner: AgentRunner = runner or run_agent
        self._enabled = enabled
        self._delays = delays or RequestDelays()
        self._request_timeout = request_timeout
        self._recheck_interval = recheck_interval
        self._clock = clock
        self._sleep = sleep
        self._rng = rng

        self._available = True
        self._last_check: Optional[float] = None

        model_settings = None
        if isinstance(self.model, str) and any(
            tag in self.model.lower() for tag in ("gpt-5", "o1", "o3", "o4")
        ):
            model_settings = ModelSettings(reasoning=Reasoning(effort=reasoning_effort))

        def _agent(name: str, instructions: str) -> Agent:
            if model_settings is None:
                return Agent(name=name, instructions=instructions, model=self.model)
            return Agent(
                name=name,
                instructions=instructions,
                model=self.model,
                model_settings=model_settings,
            )

        self._generator = _agent("Question Generator", QUESTION_GENERATOR_INSTRUCTIONS)
        self._evaluator = _agent("Answer Evaluator", ANSWER_EVALUATOR_INSTRUCTIONS)
        self._summarizer = _agent("Summary Writer", SUMMARY_WRITER_INSTRUCTIONS)
        self._extractor = _agent("Contact Extractor", CONTACT_EXTRACTOR_INSTRUCTIONS)
        self._probe = _agent("Availability Probe", PROBE_INSTRUCTIONS)

        logger.info(
            "AssessmentGateway initialized (enabled=%s, model=%s)",
            enabled,
            self.model if isinstance(self.model, str) else type(self.model).__name__,
        )

    # -------------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def available(self) -> bool:
        """Whether the external service is currently presumed reachable."""
        return self._enabled and self._available

    @property
    def last_availability_check(self) -> Optional[float]:
        return self._last_check

    def _recheck_due(self) -> bool:
        if self._last_check is None:
            return True
        return self._clock() - self._last_check >= self._recheck_interval

    def _can_call(self) -> bool:
        if not self._enabled:
            return False
        if self._available:
            return True
        if self._recheck_due():
            logger.info("Recheck interval elapsed, retrying external assessment service")
            self._last_check = self._clock()
            return True
        return False

    def _mark_success(self) -> None:
        if not self._available:
            logger.info("External assessment service reachable again")
        self._available = True

    def _record_failure(self, operation: str, exc: BaseException) -> None:
        if is_rate_limit_error(exc):
            self._available = False
            self._last_check = self._clock()
            logger.warning(
                "%s hit a quota/rate limit, using fallback for %.0fs: %s",
                operation,
                self._recheck_interval,
                exc,
            )
        elif isinstance(exc, asyncio.TimeoutError):
            logger.error("%s timed out after %.1fs, using fallback", operation, self._request_timeout)
        elif isinstance(exc, AssessmentResponseError):
            logger.warning("%s returned an unusable response, using fallback: %s", operation, exc)
        else:
            logger.error("%s failed, using fallback: %s", operation, exc, exc_info=True)

    def reset_availability(self) -> None:
        """Forget any recorded quota failure."""
        self._available = True
        self._last_check = None
        logger.info("Assessment availability reset")

    async def check_availability(self) -> bool:
        """
        Probe the external service if a recheck is due.

        Returns:
            The availability flag after the probe (or without one, if no
            recheck was due).
        """
        if not self._enabled:
            return False
        if self._available or not self._recheck_due():
            return self._available
        self._last_check = self._clock()
        try:
            await self._complete(self._probe, "ping", 0.0)
            self._mark_success()
        except Exception as e:
            self._record_failure("check_availability", e)
        return self._available

    async def _complete(self, agent: Agent, prompt: str, delay: float) -> str:
        if delay > 0:
            await self._sleep(delay)
        return await asyncio.wait_for(self._runner(agent, prompt), timeout=self._request_timeout)

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    @staticmethod
    def _question_prompt(resume_text: str) -> str:
        text = (resume_text or "").strip()[:_MAX_RESUME_CHARS]
        if not text:
            text = "(no resume text provided; ask general full-stack questions)"
        return f"Generate interview questions based on this resume:\n\n{text}"

    @staticmethod
    def _evaluation_prompt(question: Question, answer_text: str) -> str:
        answer = (answer_text or "").strip() or "(no answer provided)"
        return (
            f"Question ({question.difficulty.value} - {question.time_limit}s, "
            f"{question.category}): {question.text}\n\n"
            f"Candidate Answer: {answer}\n\n"
            "Evaluate this answer and provide a score from 0-100."
        )

    @staticmethod
    def _summary_prompt(
        candidate: Candidate,
        questions: Sequence[Question],
        answers: Sequence[Answer],
    ) -> str:
        parts = [f"Create a summary for candidate: {candidate.name or 'Unknown Candidate'}", ""]
        parts.append("Interview Questions and Answers:")
        for index, question in enumerate(questions):
            answer = answers[index] if index < len(answers) else None
            parts.append(f"Q{index + 1} ({question.difficulty.value}): {question.text}")
            parts.append(f"A{index + 1}: {(answer.text if answer else '') or 'No answer provided'}")
            parts.append(f"Score: {(answer.score if answer else None) or 0}/100")
            parts.append("")
        parts.append(f"Final Score: {candidate.final_score or 0}/100")
        return "\n".join(parts)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def generate_questions(self, resume_text: str) -> list[Question]:
        """
        Generate exactly six questions for a resume.

        Args:
            resume_text: Extracted resume text, possibly empty.

        Returns:
            Six questions in schedule order (easy, easy, medium, medium, hard, hard).
        """
        if self._can_call():
            try:
                raw = await self._complete(
                    self._generator,
                    self._question_prompt(resume_text),
                    self._delays.generate,
                )
                questions = normalize_questions(parse_question_payload(raw))
                self._mark_success()
                logger.info("Generated %d questions", len(questions))
                return questions
            except Exception as e:
                self._record_failure("generate_questions", e)

        logger.info("Using fallback question bank")
        return get_fallback_questions()

    async def evaluate_answer(self, question: Question, answer_text: str) -> int:
        """
        Score one answer.

        Returns:
            Integer score in [0, 100].
        """
        if self._can_call():
            try:
                raw = await self._complete(
                    self._evaluator,
                    self._evaluation_prompt(question, answer_text),
                    self._delays.evaluate,
                )
                score = parse_evaluation(raw)
                self._mark_success()
                logger.debug("Scored %s: %d", question.id, score)
                return score
            except Exception as e:
                self._record_failure("evaluate_answer", e)

        return score_fallback(question, answer_text, self._rng)

    async def generate_summary(
        self,
        candidate: Candidate,
        questions: Sequence[Question],
        answers: Sequence[Answer],
    ) -> str:
        """Write the end-of-interview summary."""
        if self._can_call():
            try:
                raw = await self._complete(
                    self._summarizer,
                    self._summary_prompt(candidate, questions, answers),
                    self._delays.summarize,
                )
                summary = (raw or "").strip()
                if not summary:
                    raise AssessmentResponseError(raw or "", "empty summary")
                self._mark_success()
                return summary
            except Exception as e:
                self._record_failure("generate_summary", e)

        return summarize_fallback(candidate, questions, answers)

    async def extract_contact_info(self, resume_text: str) -> ContactInfo:
        """
        Extract name, email and phone from resume text.

        Fields the service leaves empty are filled from the regex fallback.
        """
        fallback = extract_contact_fallback(resume_text)
        if not (resume_text or "").strip():
            return fallback

        if self._can_call():
            try:
                raw = await self._complete(
                    self._extractor,
                    f"Extract Name, Email, and Phone from this resume text:\n\n"
                    f"{resume_text[:_MAX_RESUME_CHARS]}",
                    self._delays.extract,
                )
                info = parse_contact_payload(raw)
                self._mark_success()
                return ContactInfo(
                    name=info.name or fallback.name,
                    email=info.email or fallback.email,
                    phone=info.phone or fallback.phone,
                )
            except Exception as e:
                self._record_failure("extract_contact_info", e)

        return fallback


# =============================================================================
# Factory Function
# =============================================================================

def create_assessment_gateway(
    config: Optional[AssistantConfig] = None,
    **kwargs: Any,
) -> AssessmentGateway:
    """
    Build a gateway from runtime config.

    Without credentials the gateway is created disabled (offline mode).

    Args:
        config: Runtime config. Loaded from the environment if omitted.
        **kwargs: Overrides passed to ``AssessmentGateway``.

    Returns:
        Configured AssessmentGateway instance.
    """
    config = config or load_config()
    if not config.has_credentials and "runner" not in kwargs:
        logger.warning(
            "No OpenAI credentials configured. Set either:\n"
            "  - OPENAI_API_KEY for standard OpenAI, or\n"
            "  - AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, AZURE_OPENAI_DEPLOYMENT for Azure OpenAI\n"
            "Running in offline mode with fallback content."
        )
        kwargs.setdefault("enabled", False)

    options: dict[str, Any] = {
        "delays": config.delays,
        "request_timeout": config.request_timeout_s,
        "recheck_interval": config.recheck_interval_s,
        "reasoning_effort": config.reasoning_effort,
    }
    options.update(kwargs)
    model = options.pop("model", None)
    if model is None:
        model = build_agent_model(config) if config.has_credentials else config.model
    return AssessmentGateway(model, **options)
