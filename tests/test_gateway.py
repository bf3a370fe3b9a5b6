"""
Tests for AssessmentGateway.

Uses a scripted agent runner keyed by agent name, so no request ever leaves
the process. Covers the fallback paths, quota tracking with recheck, and
timeouts.

Last Grunted: 10/17/2026
"""

from __future__ import annotations

import asyncio
import random
from pathlib import Path

import pytest

from interview_assistant.config import AssistantConfig, RequestDelays
from interview_assistant.fallback import get_fallback_questions
from interview_assistant.gateway import (
    AssessmentGateway,
    create_assessment_gateway,
    is_rate_limit_error,
)
from interview_assistant.models import DIFFICULTY_SCHEDULE

from tests.mock_data import (
    FakeClock,
    QuotaExceededError,
    SAMPLE_RESUME_TEXT,
    ScriptedRunner,
    generate_candidate,
    generate_question_payload,
    no_sleep,
)


GENERATOR = "Question Generator"
EVALUATOR = "Answer Evaluator"
SUMMARIZER = "Summary Writer"
EXTRACTOR = "Contact Extractor"
PROBE = "Availability Probe"


def _gateway(runner: ScriptedRunner, clock: FakeClock | None = None, **kwargs) -> AssessmentGateway:
    return AssessmentGateway(
        "gpt-4o-mini",
        runner=runner,
        delays=RequestDelays(0, 0, 0, 0),
        recheck_interval=300.0,
        clock=clock or FakeClock(),
        sleep=no_sleep,
        rng=random.Random(0),
        **kwargs,
    )


def _config(**overrides) -> AssistantConfig:
    values = dict(
        model="gpt-5-mini",
        openai_api_key=None,
        azure_endpoint=None,
        azure_key=None,
        azure_deployment=None,
        azure_api_version="2024-08-01-preview",
        request_timeout_s=30.0,
        recheck_interval_s=300.0,
        delays=RequestDelays(0, 0, 0, 0),
        data_dir=Path("data"),
        transcript_file=Path("data/interview_transcript.txt"),
        service_host="127.0.0.1",
        service_port=8780,
        tick_interval_s=1.0,
    )
    values.update(overrides)
    return AssistantConfig(**values)


# =============================================================================
# Rate Limit Detection Tests
# =============================================================================


class TestIsRateLimitError:
    """Tests for quota/rate-limit classification."""

    def test_status_code_429(self):
        assert is_rate_limit_error(QuotaExceededError("slow down"))

    def test_message_mentions_quota(self):
        assert is_rate_limit_error(RuntimeError("You exceeded your current quota"))

    def test_message_mentions_rate_limit(self):
        assert is_rate_limit_error(RuntimeError("Rate limit reached for requests"))

    def test_other_errors(self):
        assert not is_rate_limit_error(ValueError("bad gateway"))
        assert not is_rate_limit_error(asyncio.TimeoutError())


# =============================================================================
# Question Generation Tests
# =============================================================================


class TestGenerateQuestions:
    """Tests for generate_questions."""

    @pytest.mark.asyncio
    async def test_uses_generated_questions(self):
        """A valid reply is normalized and returned."""
        runner = ScriptedRunner({GENERATOR: generate_question_payload(fenced=True)})
        gateway = _gateway(runner)

        questions = await gateway.generate_questions(SAMPLE_RESUME_TEXT)

        assert [q.id for q in questions] == ["g1", "g2", "g3", "g4", "g5", "g6"]
        assert "Alice Johnson" in runner.calls[0][1]

    @pytest.mark.asyncio
    async def test_garbage_reply_falls_back(self):
        """Unparseable output yields the fallback bank without marking unavailable."""
        runner = ScriptedRunner({GENERATOR: "Sure! Here are six great questions..."})
        gateway = _gateway(runner)

        questions = await gateway.generate_questions(SAMPLE_RESUME_TEXT)

        assert [q.text for q in questions] == [q.text for q in get_fallback_questions()]
        assert gateway.available

    @pytest.mark.asyncio
    async def test_empty_resume_still_generates(self):
        """Empty resume text still produces six questions."""
        runner = ScriptedRunner({GENERATOR: generate_question_payload()})
        gateway = _gateway(runner)

        questions = await gateway.generate_questions("")

        assert len(questions) == 6
        assert tuple(q.difficulty for q in questions) == DIFFICULTY_SCHEDULE

    @pytest.mark.asyncio
    async def test_disabled_gateway_never_calls_runner(self):
        runner = ScriptedRunner({GENERATOR: generate_question_payload()})
        gateway = _gateway(runner, enabled=False)

        questions = await gateway.generate_questions(SAMPLE_RESUME_TEXT)

        assert [q.id for q in questions] == ["q1", "q2", "q3", "q4", "q5", "q6"]
        assert runner.calls == []
        assert not gateway.available


# =============================================================================
# Availability Tests
# =============================================================================


class TestAvailability:
    """Tests for quota tracking and recheck."""

    @pytest.mark.asyncio
    async def test_quota_error_marks_unavailable(self):
        """After a 429, later calls skip the service until the recheck interval."""
        clock = FakeClock()
        runner = ScriptedRunner({GENERATOR: QuotaExceededError("quota"), EVALUATOR: '{"score": 90}'})
        gateway = _gateway(runner, clock)

        await gateway.generate_questions(SAMPLE_RESUME_TEXT)
        assert not gateway.available
        assert gateway.last_availability_check == clock.now

        question = get_fallback_questions()[0]
        score = await gateway.evaluate_answer(question, "some answer")

        assert runner.count(EVALUATOR) == 0
        assert 0 <= score <= 100

    @pytest.mark.asyncio
    async def test_retry_after_recheck_interval(self):
        """Once the interval passes, the next call tries the service again."""
        clock = FakeClock()
        runner = ScriptedRunner({GENERATOR: QuotaExceededError("quota"), EVALUATOR: '{"score": 91}'})
        gateway = _gateway(runner, clock)
        await gateway.generate_questions(SAMPLE_RESUME_TEXT)

        clock.advance(299)
        question = get_fallback_questions()[0]
        await gateway.evaluate_answer(question, "answer")
        assert runner.count(EVALUATOR) == 0

        clock.advance(1)
        score = await gateway.evaluate_answer(question, "answer")

        assert runner.count(EVALUATOR) == 1
        assert score == 91
        assert gateway.available

    @pytest.mark.asyncio
    async def test_failed_retry_restarts_interval(self):
        clock = FakeClock()
        runner = ScriptedRunner({EVALUATOR: [QuotaExceededError("q"), QuotaExceededError("q"), '{"score": 10}']})
        gateway = _gateway(runner, clock)
        question = get_fallback_questions()[0]

        await gateway.evaluate_answer(question, "a")
        clock.advance(300)
        await gateway.evaluate_answer(question, "a")
        clock.advance(100)
        await gateway.evaluate_answer(question, "a")

        assert runner.count(EVALUATOR) == 2
        assert not gateway.available

    @pytest.mark.asyncio
    async def test_other_errors_do_not_mark_unavailable(self):
        runner = ScriptedRunner({EVALUATOR: [RuntimeError("connection reset"), '{"score": 77}']})
        gateway = _gateway(runner)
        question = get_fallback_questions()[0]

        await gateway.evaluate_answer(question, "a")
        score = await gateway.evaluate_answer(question, "a")

        assert gateway.available
        assert score == 77

    @pytest.mark.asyncio
    async def test_reset_availability(self):
        runner = ScriptedRunner({GENERATOR: QuotaExceededError("quota")})
        gateway = _gateway(runner)
        await gateway.generate_questions("")

        gateway.reset_availability()

        assert gateway.available
        assert gateway.last_availability_check is None

    @pytest.mark.asyncio
    async def test_check_availability_probes_when_due(self):
        clock = FakeClock()
        runner = ScriptedRunner({GENERATOR: QuotaExceededError("quota"), PROBE: "OK"})
        gateway = _gateway(runner, clock)
        await gateway.generate_questions("")

        assert await gateway.check_availability() is False
        assert runner.count(PROBE) == 0

        clock.advance(300)
        assert await gateway.check_availability() is True
        assert runner.count(PROBE) == 1


# =============================================================================
# Timeout Tests
# =============================================================================


class TestTimeouts:
    """Tests for slow external calls."""

    @pytest.mark.asyncio
    async def test_slow_call_falls_back(self):
        """A reply slower than request_timeout is abandoned."""

        async def slow_runner(agent, prompt):
            await asyncio.sleep(5)
            return '{"score": 100}'

        gateway = AssessmentGateway(
            "gpt-4o-mini",
            runner=slow_runner,
            delays=RequestDelays(0, 0, 0, 0),
            request_timeout=0.01,
            rng=random.Random(3),
        )
        question = get_fallback_questions()[0]

        score = await gateway.evaluate_answer(question, "a reasonable medium answer")

        assert 65 <= score <= 75
        assert gateway.available


# =============================================================================
# Evaluation / Summary / Contact Tests
# =============================================================================


class TestEvaluateAnswer:
    """Tests for evaluate_answer."""

    @pytest.mark.asyncio
    async def test_prompt_includes_question_and_answer(self):
        runner = ScriptedRunner({EVALUATOR: '{"score": 88, "feedback": "ok"}'})
        gateway = _gateway(runner)
        question = get_fallback_questions()[2]

        score = await gateway.evaluate_answer(question, "Redux Toolkit slices...")

        assert score == 88
        prompt = runner.calls[0][1]
        assert question.text in prompt
        assert "Redux Toolkit slices" in prompt
        assert "medium - 90s" in prompt

    @pytest.mark.asyncio
    async def test_empty_answer_prompt(self):
        runner = ScriptedRunner({EVALUATOR: '{"score": 0}'})
        gateway = _gateway(runner)

        await gateway.evaluate_answer(get_fallback_questions()[0], "")

        assert "(no answer provided)" in runner.calls[0][1]

    @pytest.mark.asyncio
    async def test_null_feedback_keeps_service_score(self):
        """A valid score with null feedback is used as-is, not replaced by the heuristic."""
        runner = ScriptedRunner({EVALUATOR: '{"score": 85, "feedback": null}'})
        gateway = _gateway(runner)

        score = await gateway.evaluate_answer(get_fallback_questions()[0], "Short.")

        assert score == 85
        assert runner.count(EVALUATOR) == 1
        assert gateway.available


class TestGenerateSummary:
    """Tests for generate_summary."""

    @pytest.mark.asyncio
    async def test_returns_service_summary(self):
        runner = ScriptedRunner({SUMMARIZER: "  Strong candidate overall.  "})
        gateway = _gateway(runner)
        questions = get_fallback_questions()
        candidate = generate_candidate(questions=questions, answered=6, final_score=80)

        summary = await gateway.generate_summary(candidate, questions, candidate.answers)

        assert summary == "Strong candidate overall."

    @pytest.mark.asyncio
    async def test_empty_summary_falls_back(self):
        runner = ScriptedRunner({SUMMARIZER: "   "})
        gateway = _gateway(runner)
        questions = get_fallback_questions()
        candidate = generate_candidate(questions=questions, answered=6)
        answers = [a.model_copy(update={"score": 75}) for a in candidate.answers]

        summary = await gateway.generate_summary(candidate, questions, answers)

        assert summary.startswith("Candidate Alice Johnson completed 6/6 questions")


class TestExtractContactInfo:
    """Tests for extract_contact_info."""

    @pytest.mark.asyncio
    async def test_service_fields_merged_with_regex(self):
        """Fields the service leaves null are taken from the regex fallback."""
        runner = ScriptedRunner({EXTRACTOR: '{"name": "Alice Johnson", "email": null, "phone": "unknown"}'})
        gateway = _gateway(runner)

        info = await gateway.extract_contact_info(SAMPLE_RESUME_TEXT)

        assert info.name == "Alice Johnson"
        assert info.email == "alice.johnson@tech.com"
        assert info.phone == "(555) 456-7890"

    @pytest.mark.asyncio
    async def test_empty_text_skips_service(self):
        runner = ScriptedRunner({EXTRACTOR: '{"name": "Ghost"}'})
        gateway = _gateway(runner)

        info = await gateway.extract_contact_info("   ")

        assert runner.calls == []
        assert info.name is None

    @pytest.mark.asyncio
    async def test_quota_error_uses_regex(self):
        runner = ScriptedRunner({EXTRACTOR: QuotaExceededError("rate limit")})
        gateway = _gateway(runner)

        info = await gateway.extract_contact_info(SAMPLE_RESUME_TEXT)

        assert info.email == "alice.johnson@tech.com"
        assert not gateway.available


# =============================================================================
# Factory Tests
# =============================================================================


class TestCreateAssessmentGateway:
    """Tests for create_assessment_gateway."""

    def test_no_credentials_gives_disabled_gateway(self):
        gateway = create_assessment_gateway(_config())

        assert not gateway.enabled
        assert not gateway.available

    def test_runner_override_keeps_gateway_enabled(self):
        gateway = create_assessment_gateway(_config(), runner=ScriptedRunner())

        assert gateway.enabled

    def test_api_key_enables_gateway(self):
        gateway = create_assessment_gateway(_config(openai_api_key="sk-test"))

        assert gateway.enabled
        assert gateway.model == "gpt-5-mini"
