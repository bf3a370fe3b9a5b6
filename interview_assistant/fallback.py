"""
Fallback Content Provider.

Deterministic content used whenever the external assessment service is
unavailable or misbehaving: a fixed six-question bank, a length-based
heuristic scorer, a template summarizer and a regex contact extractor.

Everything here is total over valid inputs. These functions are the last
resort, so they never raise.

Last Grunted: 10/17/2026
"""

import logging
import math
import random
import re
from typing import Optional, Sequence

from .models import (
    Answer,
    Candidate,
    ContactInfo,
    Difficulty,
    Question,
    TIME_LIMITS,
)


__all__ = [
    "FALLBACK_QUESTIONS",
    "get_fallback_questions",
    "score_fallback",
    "summarize_fallback",
    "extract_contact_fallback",
    "round_score",
    "PASS_THRESHOLD",
]


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Average score at or above which the candidate is recommended to proceed
PASS_THRESHOLD = 70

_BASE_SCORES: dict[Difficulty, int] = {
    Difficulty.EASY: 70,
    Difficulty.MEDIUM: 60,
    Difficulty.HARD: 50,
}

_SHORT_ANSWER_CHARS = 10
_LONG_ANSWER_CHARS = 100
_SHORT_ANSWER_PENALTY = 20
_LONG_ANSWER_BONUS = 10
_PERTURBATION = 10.0  # total width, i.e. +/-5

_EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_PATTERN = re.compile(
    r"(\+?1[-.\s]?)?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})"
)
_NAME_LABEL_PATTERN = re.compile(
    r"(?:Full Name|Candidate Name|Name)\s*:\s*([A-Za-z][A-Za-z ]*?)\s*$",
    re.MULTILINE,
)
_NAME_LINE_PATTERN = re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+$")

# Two-word title lines that look like names ("Software Engineer")
_TITLE_WORDS = frozenset(
    {
        "Engineer", "Developer", "Manager", "Designer", "Analyst", "Scientist",
        "Architect", "Consultant", "Intern", "Specialist", "Lead", "Director",
        "Summary", "Experience", "Education", "Skills", "Profile", "Objective",
        "Resume", "Curriculum", "Contact", "Projects", "References",
    }
)


def _question(
    qid: str, text: str, difficulty: Difficulty, category: str
) -> Question:
    return Question(
        id=qid,
        text=text,
        difficulty=difficulty,
        time_limit=TIME_LIMITS[difficulty],
        category=category,
    )


FALLBACK_QUESTIONS: tuple[Question, ...] = (
    _question(
        "q1",
        "What is React and what are its main advantages for building user "
        "interfaces? How does it differ from traditional DOM manipulation?",
        Difficulty.EASY,
        "React Fundamentals",
    ),
    _question(
        "q2",
        "Explain the difference between let, const, and var in JavaScript. "
        "When would you use each in a React/Node.js application?",
        Difficulty.EASY,
        "JavaScript Fundamentals",
    ),
    _question(
        "q3",
        "How would you implement state management in a large React application? "
        "Discuss Redux Toolkit, Context API, and Zustand for a full-stack "
        "React/Node.js project.",
        Difficulty.MEDIUM,
        "React State Management",
    ),
    _question(
        "q4",
        "Explain how you would build a RESTful API using Node.js and Express. "
        "Include middleware, error handling, and database integration.",
        Difficulty.MEDIUM,
        "Node.js Backend",
    ),
    _question(
        "q5",
        "Design a full-stack architecture for a real-time chat application using "
        "React, Node.js, and WebSockets. Consider performance, scalability, and "
        "data consistency.",
        Difficulty.HARD,
        "Full-Stack Architecture",
    ),
    _question(
        "q6",
        "Implement a custom React hook for managing complex form validation with "
        "async validation rules. Show how you would integrate it with a Node.js "
        "backend API.",
        Difficulty.HARD,
        "React Advanced + Node.js Integration",
    ),
)


# =============================================================================
# Helpers
# =============================================================================

def round_score(value: float) -> int:
    """
    Round half-up and clamp into [0, 100].

    Python's built-in ``round`` uses banker's rounding (62.5 -> 62); interview
    scores always round halves up (62.5 -> 63).
    """
    if math.isnan(value):
        return 0
    clamped = max(0.0, min(100.0, float(value)))
    return int(math.floor(clamped + 0.5))


def _mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


# =============================================================================
# Provider Operations
# =============================================================================

def get_fallback_questions() -> list[Question]:
    """Return fresh copies of the fixed six-question bank, in order q1..q6."""
    return [q.model_copy() for q in FALLBACK_QUESTIONS]


def score_fallback(
    question: Question,
    answer_text: Optional[str],
    rng: Optional[random.Random] = None,
) -> int:
    """
    Heuristic score for an answer when the external scorer is unavailable.

    Args:
        question: The question that was answered.
        answer_text: Candidate answer, possibly empty.
        rng: Random source for the +/-5 perturbation. Defaults to the
            module-level generator.

    Returns:
        Integer score in [0, 100].
    """
    score = float(_BASE_SCORES.get(question.difficulty, 50))
    length = len((answer_text or "").strip())

    if length < _SHORT_ANSWER_CHARS:
        score = max(0.0, score - _SHORT_ANSWER_PENALTY)
    elif length > _LONG_ANSWER_CHARS:
        score = min(100.0, score + _LONG_ANSWER_BONUS)

    source = rng if rng is not None else random
    score += (source.random() - 0.5) * _PERTURBATION
    return round_score(score)


def summarize_fallback(
    candidate: Candidate,
    questions: Sequence[Question],
    answers: Sequence[Answer],
) -> str:
    """
    Template summary built from answer scores.

    Answers are matched to questions by ``question_id``, falling back to
    position when an id is unknown.
    """
    name = candidate.name or "the candidate"
    if not answers:
        return (
            f"Candidate {name} has no recorded answers, "
            "so no performance assessment is available."
        )

    by_id = {q.id: q for q in questions}
    scores = [a.score or 0 for a in answers]
    average = _mean(scores) or 0.0

    parts = [
        f"Candidate {name} completed {len(answers)}/{len(questions)} questions "
        f"with an average score of {round_score(average)}/100."
    ]

    if average >= 80:
        parts.append(
            "The candidate demonstrated strong technical knowledge and provided "
            "comprehensive answers."
        )
    elif average >= 60:
        parts.append(
            "The candidate showed good understanding of the topics with room for improvement."
        )
    else:
        parts.append(
            "The candidate may need additional training or experience in the "
            "technical areas covered."
        )

    band_scores: dict[Difficulty, list[int]] = {d: [] for d in Difficulty}
    for index, answer in enumerate(answers):
        question = by_id.get(answer.question_id)
        if question is None and index < len(questions):
            question = questions[index]
        if question is not None:
            band_scores[question.difficulty].append(answer.score or 0)

    easy_avg = _mean(band_scores[Difficulty.EASY])
    if easy_avg is not None and easy_avg >= 80:
        parts.append("Strong performance on fundamental concepts.")

    hard_avg = _mean(band_scores[Difficulty.HARD])
    if hard_avg is not None:
        if hard_avg >= 70:
            parts.append("Excellent problem-solving skills demonstrated in complex scenarios.")
        elif hard_avg < 40:
            parts.append("May need more experience with advanced technical challenges.")

    if average >= PASS_THRESHOLD:
        parts.append("Overall recommendation: Proceed to next round.")
    else:
        parts.append("Overall recommendation: Consider for junior role or additional training.")

    return " ".join(parts)


def _find_name(text: str) -> Optional[str]:
    for match in _NAME_LABEL_PATTERN.finditer(text):
        candidate = " ".join(match.group(1).split())
        if _NAME_LINE_PATTERN.match(candidate):
            return candidate

    for line in text.splitlines():
        stripped = line.strip()
        if not _NAME_LINE_PATTERN.match(stripped):
            continue
        if any(word in _TITLE_WORDS for word in stripped.split()):
            continue
        return stripped
    return None


def extract_contact_fallback(text: Optional[str]) -> ContactInfo:
    """
    Regex contact extraction.

    Example:
        >>> info = extract_contact_fallback("Alice Johnson\\nalice.johnson@tech.com")
        >>> info.name, info.email
        ('Alice Johnson', 'alice.johnson@tech.com')
    """
    if not text:
        return ContactInfo()

    email_match = _EMAIL_PATTERN.search(text)
    phone_match = _PHONE_PATTERN.search(text)

    info = ContactInfo(
        name=_find_name(text),
        email=email_match.group(0) if email_match else None,
        phone=phone_match.group(0).strip() if phone_match else None,
    )
    logger.debug("Fallback contact extraction: %s", info.model_dump())
    return info
