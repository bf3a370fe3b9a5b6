"""
Response parsing and normalization for the assessment gateway.

Every external reply passes through one of the ``parse_*`` functions here.
They either return a typed result or raise ``AssessmentResponseError``; the
gateway treats that error like any other failed call and falls back.

``normalize_questions`` turns whatever the question generator produced into
exactly six well-formed questions following the positional schedule.

Last Grunted: 10/17/2026
"""

import json
import logging
import math
import re
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from .fallback import get_fallback_questions, round_score
from .models import (
    ContactInfo,
    DIFFICULTY_SCHEDULE,
    Difficulty,
    QUESTION_COUNT,
    Question,
    TIME_LIMITS,
    scheduled_difficulty,
)


__all__ = [
    "AssessmentResponseError",
    "GeneratedQuestion",
    "strip_code_fences",
    "parse_question_payload",
    "normalize_questions",
    "parse_evaluation",
    "parse_contact_payload",
    "clean_contact_value",
]


logger = logging.getLogger(__name__)


_FENCE_PATTERN = re.compile(r"^```[A-Za-z0-9_-]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)
# First fenced block anywhere in a reply that wraps it in prose
_EMBEDDED_FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?\s*```", re.DOTALL)

# Values an extractor uses to mean "not found"
_EMPTY_MARKERS = frozenset({"", "null", "none", "undefined", "n/a", "na", "unknown"})


class AssessmentResponseError(Exception):
    """Raised when an external reply cannot be parsed into the expected shape."""

    def __init__(self, raw: str, cause: Exception | str) -> None:
        self.raw = raw
        self.cause = cause
        preview = (raw or "")[:80]
        super().__init__(f"Invalid assessment response ({cause}): {preview!r}")


class GeneratedQuestion(BaseModel):
    """
    Loosely-typed question item as produced by the generator.

    Every field is optional here; ``normalize_questions`` decides defaults.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[Any] = None
    text: Optional[Any] = None
    difficulty: Optional[Any] = None
    time_limit: Optional[Any] = None
    category: Optional[Any] = None


class _QuestionsEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    questions: list[dict[str, Any]]


class _EvaluationPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    score: Any = None
    feedback: Any = None


# =============================================================================
# Low-level helpers
# =============================================================================

def strip_code_fences(text: Optional[str]) -> str:
    """
    Remove a ```json ... ``` (or bare ```) fence if present.

    A fence wrapping the whole reply wins; otherwise the first fenced block
    inside surrounding prose is returned.
    """
    cleaned = (text or "").strip()
    match = _FENCE_PATTERN.match(cleaned) or _EMBEDDED_FENCE_PATTERN.search(cleaned)
    if match:
        return match.group(1).strip()
    return cleaned


def _load_json(text: Optional[str]) -> Any:
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise AssessmentResponseError(text or "", "empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AssessmentResponseError(text or "", e) from e


def clean_contact_value(value: Any) -> Optional[str]:
    """Normalize an extracted contact value; placeholders become ``None``."""
    if value is None:
        return None
    text = " ".join(str(value).split())
    if text.lower() in _EMPTY_MARKERS:
        return None
    return text


# =============================================================================
# Question generation
# =============================================================================

def parse_question_payload(text: Optional[str]) -> list[GeneratedQuestion]:
    """
    Parse the generator reply into raw question items.

    Accepts ``{"questions": [...]}`` or a bare JSON list. The camelCase
    ``timeLimit`` key is accepted alongside ``time_limit``.

    Raises:
        AssessmentResponseError: If the reply is not JSON or has no question list.
    """
    data = _load_json(text)
    if isinstance(data, list):
        data = {"questions": data}
    try:
        envelope = _QuestionsEnvelope.model_validate(data)
    except ValidationError as e:
        raise AssessmentResponseError(text or "", e) from e

    items: list[GeneratedQuestion] = []
    for raw in envelope.questions:
        if "timeLimit" in raw and "time_limit" not in raw:
            raw = {**raw, "time_limit": raw["timeLimit"]}
        items.append(GeneratedQuestion.model_validate(raw))
    return items


def _coerce_difficulty(value: Any) -> Optional[Difficulty]:
    if isinstance(value, Difficulty):
        return value
    if isinstance(value, str):
        try:
            return Difficulty(value.strip().lower())
        except ValueError:
            return None
    return None


def _coerce_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def normalize_questions(items: Sequence[GeneratedQuestion]) -> list[Question]:
    """
    Coerce generated items into exactly six schedule-conforming questions.

    - More than six items are truncated, preserving order.
    - Fewer than six are padded with the fallback question for each missing
      position.
    - An item without usable text is replaced by the fallback question for
      its position.
    - Invalid difficulty, id or category is defaulted by position.
    - ``time_limit`` always follows the difficulty policy.
    - If the resulting difficulties break the 2/2/2 split, they are
      relabelled by position.

    Args:
        items: Raw items from ``parse_question_payload``.

    Returns:
        Exactly ``QUESTION_COUNT`` questions.
    """
    fallback = get_fallback_questions()

    if len(items) > QUESTION_COUNT:
        logger.warning(
            "Generator returned %d questions, truncating to %d",
            len(items),
            QUESTION_COUNT,
        )
    elif len(items) < QUESTION_COUNT:
        logger.warning(
            "Generator returned %d questions, padding with %d fallback questions",
            len(items),
            QUESTION_COUNT - len(items),
        )

    slots: list[dict[str, Any]] = []
    for index in range(QUESTION_COUNT):
        item = items[index] if index < len(items) else None
        text = _coerce_text(item.text) if item is not None else None

        if item is None or text is None:
            if item is not None:
                logger.warning("Generated question %d has no text, using fallback", index + 1)
            slots.append(fallback[index].model_dump())
            continue

        difficulty = _coerce_difficulty(item.difficulty) or scheduled_difficulty(index)
        category = _coerce_text(item.category) or "General"
        qid = _coerce_text(str(item.id)) if item.id is not None else None
        slots.append(
            {
                "id": qid or f"q{index + 1}",
                "text": text,
                "difficulty": difficulty,
                "category": category,
            }
        )

    counts = {d: 0 for d in Difficulty}
    for slot in slots:
        counts[Difficulty(slot["difficulty"])] += 1
    expected = {d: DIFFICULTY_SCHEDULE.count(d) for d in Difficulty}
    if counts != expected:
        logger.warning(
            "Generated difficulty split %s does not match schedule, relabelling by position",
            {d.value: n for d, n in counts.items()},
        )
        for index, slot in enumerate(slots):
            slot["difficulty"] = DIFFICULTY_SCHEDULE[index]

    seen: set[str] = set()
    questions: list[Question] = []
    for index, slot in enumerate(slots):
        qid = slot["id"]
        if qid in seen:
            qid = f"q{index + 1}"
            suffix = 2
            while qid in seen:
                qid = f"q{index + 1}_{suffix}"
                suffix += 1
        seen.add(qid)

        difficulty = Difficulty(slot["difficulty"])
        questions.append(
            Question(
                id=qid,
                text=slot["text"],
                difficulty=difficulty,
                time_limit=TIME_LIMITS[difficulty],
                category=slot["category"],
            )
        )
    return questions


# =============================================================================
# Evaluation / contact extraction
# =============================================================================

def parse_evaluation(text: Optional[str]) -> int:
    """
    Parse ``{"score": number, "feedback": str}`` into a clamped integer score.

    Raises:
        AssessmentResponseError: If the score is missing or not a finite number.
    """
    data = _load_json(text)
    if not isinstance(data, dict):
        raise AssessmentResponseError(text or "", "expected a JSON object")
    try:
        payload = _EvaluationPayload.model_validate(data)
    except ValidationError as e:
        raise AssessmentResponseError(text or "", e) from e

    score = payload.score
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        if isinstance(score, str):
            try:
                score = float(score.strip())
            except ValueError as e:
                raise AssessmentResponseError(text or "", "score is not numeric") from e
        else:
            raise AssessmentResponseError(text or "", "score missing or not numeric")

    if not math.isfinite(score):
        raise AssessmentResponseError(text or "", "score is not finite")

    if score < 0 or score > 100:
        logger.warning("Evaluator returned out-of-range score %s, clamping", score)
    return round_score(score)


def parse_contact_payload(text: Optional[str]) -> ContactInfo:
    """
    Parse ``{"name": ..., "email": ..., "phone": ...}``.

    Raises:
        AssessmentResponseError: If the reply is not a JSON object.
    """
    data = _load_json(text)
    if not isinstance(data, dict):
        raise AssessmentResponseError(text or "", "expected a JSON object")
    return ContactInfo(
        name=clean_contact_value(data.get("name")),
        email=clean_contact_value(data.get("email")),
        phone=clean_contact_value(data.get("phone")),
    )
