"""
Mock data generators for Interview Assistant testing.

Builds realistic candidates, question sets, resumes and scripted agent
runners, so gateway and session tests never touch the network.

Last Grunted: 10/17/2026
"""

import io
import json
from typing import Optional, Sequence

from docx import Document

from interview_assistant.models import (
    Answer,
    Candidate,
    Difficulty,
    InterviewStatus,
    Question,
    TIME_LIMITS,
)


# =============================================================================
# Resume Content
# =============================================================================

SAMPLE_RESUME_TEXT = """Alice Johnson
Senior Software Engineer
Email: alice.johnson@tech.com
Phone: (555) 456-7890

Experience
Globex - Frontend Lead (2020-present)
Built a React 18 design system used by 12 product teams.
Maintained Node.js/Express BFF services with Redis caching.

Skills
JavaScript, TypeScript, React, Redux Toolkit, Node.js, Express, PostgreSQL
"""

RESUME_WITHOUT_CONTACT = """Experience
Built dashboards in React and maintained a Node.js API.
Skills: JavaScript, React, Node.js
"""

STRONG_ANSWER = (
    "useEffect runs after render. The dependency array controls when it re-runs "
    "and the cleanup function removes subscriptions before the next run or unmount. "
    "Missing dependencies lead to stale closures."
)

WEAK_ANSWER = "idk"


def build_docx_bytes(lines: Sequence[str]) -> bytes:
    """Render paragraphs into a real DOCX document."""
    doc = Document()
    for line in lines:
        doc.add_paragraph(line)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


# =============================================================================
# Questions and Candidates
# =============================================================================

GENERATED_QUESTION_TEXTS = [
    ("What does JSX compile to?", "easy", "React Fundamentals"),
    ("What is the difference between == and ===?", "easy", "JavaScript Fundamentals"),
    ("How does React reconcile list items using keys?", "medium", "React Internals"),
    ("How would you structure error handling in an Express app?", "medium", "Node.js Backend"),
    ("Design a rate limiter for a Node.js API cluster.", "hard", "System Design"),
    ("How would you server-render a React app with streaming?", "hard", "Full-Stack Architecture"),
]


def generate_question_payload(
    count: int = 6,
    wrap: bool = True,
    fenced: bool = False,
    camel_case: bool = True,
) -> str:
    """
    Build a question generator reply.

    Args:
        count: Number of items to include (cycles the sample texts).
        wrap: Wrap the list in ``{"questions": [...]}``.
        fenced: Surround the JSON with a markdown code fence.
        camel_case: Use ``timeLimit`` instead of ``time_limit``.
    """
    items = []
    for index in range(count):
        text, difficulty, category = GENERATED_QUESTION_TEXTS[index % len(GENERATED_QUESTION_TEXTS)]
        limit_key = "timeLimit" if camel_case else "time_limit"
        items.append(
            {
                "id": f"g{index + 1}",
                "text": text,
                "difficulty": difficulty,
                limit_key: 999,
                "category": category,
            }
        )
    body = json.dumps({"questions": items} if wrap else items)
    if fenced:
        return f"```json\n{body}\n```"
    return body


def generate_questions() -> list[Question]:
    """Six schedule-conforming questions with ids g1..g6."""
    questions = []
    for index, (text, difficulty, category) in enumerate(GENERATED_QUESTION_TEXTS):
        level = Difficulty(difficulty)
        questions.append(
            Question(
                id=f"g{index + 1}",
                text=text,
                difficulty=level,
                time_limit=TIME_LIMITS[level],
                category=category,
            )
        )
    return questions


def generate_candidate(
    candidate_id: str = "cand_test_1",
    name: Optional[str] = "Alice Johnson",
    email: Optional[str] = "alice.johnson@tech.com",
    phone: Optional[str] = "(555) 456-7890",
    status: InterviewStatus = InterviewStatus.NOT_STARTED,
    questions: Optional[list[Question]] = None,
    answered: int = 0,
    final_score: Optional[int] = None,
    updated_at: Optional[str] = None,
) -> Candidate:
    """
    Build a candidate, optionally with questions and some answers recorded.

    Answers are filled in order with ``time_spent=10``.
    """
    questions = questions if questions is not None else []
    answers = [
        Answer(question_id=q.id, text=f"Answer to {q.id}", time_spent=10)
        for q in questions[:answered]
    ]
    candidate = Candidate(
        id=candidate_id,
        name=name,
        email=email,
        phone=phone,
        resume_text=SAMPLE_RESUME_TEXT,
        interview_status=status,
        current_question_index=len(answers),
        questions=questions,
        answers=answers,
        final_score=final_score,
    )
    if updated_at is not None:
        candidate.updated_at = updated_at
    return candidate


# =============================================================================
# Scripted Runners, Clocks and Gateways
# =============================================================================


class QuotaExceededError(Exception):
    """Stand-in for an HTTP 429 from the model provider."""

    status_code = 429


class ScriptedRunner:
    """
    Fake agent runner that answers by agent name.

    Each entry in ``replies`` is either a string (returned as-is), an
    exception instance (raised), or a list of those consumed in order.
    Every call is recorded in ``calls`` as ``(agent_name, prompt)``.
    """

    def __init__(self, replies: Optional[dict] = None) -> None:
        self.replies = dict(replies or {})
        self.calls: list[tuple[str, str]] = []

    def count(self, agent_name: str) -> int:
        return sum(1 for name, _ in self.calls if name == agent_name)

    async def __call__(self, agent, prompt: str) -> str:
        self.calls.append((agent.name, prompt))
        reply = self.replies.get(agent.name, "")
        if isinstance(reply, list):
            reply = reply.pop(0) if reply else ""
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def no_sleep(seconds: float) -> None:
    """Drop-in for asyncio.sleep that returns immediately."""
    return None


class StubGateway:
    """
    Minimal gateway double for session tests.

    Scores answers from a fixed list in call order and returns a fixed
    summary (or raises ``summary_error``).
    """

    def __init__(
        self,
        scores: Sequence[int] = (),
        summary: str = "Solid fundamentals, weaker on system design.",
        summary_error: Optional[Exception] = None,
    ) -> None:
        self._scores = list(scores)
        self.summary = summary
        self.summary_error = summary_error
        self.evaluated: list[tuple[str, str]] = []
        self.summary_calls = 0

    async def evaluate_answer(self, question: Question, answer_text: str) -> int:
        self.evaluated.append((question.id, answer_text))
        return self._scores.pop(0) if self._scores else 50

    async def generate_summary(self, candidate, questions, answers) -> str:
        self.summary_calls += 1
        if self.summary_error is not None:
            raise self.summary_error
        return self.summary
