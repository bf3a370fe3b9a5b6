"""
Candidate/Answer Store.

Keeps every candidate record in memory, keyed by id, with a single "current
candidate" pointer. The pointer is an id reference; the collection owns the
records. After each mutation the whole collection is written as one JSON
blob through a key-value cache so it survives restarts.

Thread Safety:
    Not thread-safe. All access is expected from a single asyncio event loop.

Last Grunted: 10/17/2026
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

from pydantic import ValidationError

from .models import (
    Answer,
    Candidate,
    InterviewStatus,
    Question,
    format_utc_timestamp,
    is_status_regression,
    parse_utc_timestamp,
)


__all__ = [
    "CandidateStore",
    "JsonFileCache",
    "KeyValueCache",
    "CacheReadError",
    "CacheWriteError",
    "DuplicateCandidateError",
    "CandidateNotFoundError",
    "InvalidStatusTransition",
    "InvalidAnswerError",
    "STORE_KEY",
]


logger = logging.getLogger(__name__)


# Cache key under which the whole collection is persisted
STORE_KEY = "interview-assistant"

_BLOB_VERSION = "1.0"


# =============================================================================
# Errors
# =============================================================================

class CacheWriteError(Exception):
    """Raised when writing to the durable cache fails."""

    def __init__(self, path: Path, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write to {path}: {cause}")


class CacheReadError(Exception):
    """Raised when reading from the durable cache fails."""

    def __init__(self, path: Path, cause: Exception) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to read from {path}: {cause}")


class DuplicateCandidateError(ValueError):
    """Raised when adding a candidate whose id already exists."""

    def __init__(self, candidate_id: str) -> None:
        self.candidate_id = candidate_id
        super().__init__(f"Candidate {candidate_id!r} already exists")


class CandidateNotFoundError(KeyError):
    """Raised when a mutation targets an unknown candidate id."""

    def __init__(self, candidate_id: str) -> None:
        self.candidate_id = candidate_id
        super().__init__(candidate_id)

    def __str__(self) -> str:
        return f"Candidate {self.candidate_id!r} not found"


class InvalidStatusTransition(ValueError):
    """Raised when a status update would move backwards."""


class InvalidAnswerError(ValueError):
    """Raised when an answer does not fit the candidate's next question."""


# =============================================================================
# Durable key-value cache
# =============================================================================

class KeyValueCache(Protocol):
    """Durable key-value storage for JSON-compatible blobs."""

    def get(self, key: str) -> Optional[dict[str, Any]]: ...

    def set(self, key: str, value: dict[str, Any]) -> None: ...


class JsonFileCache:
    """
    Key-value cache storing one JSON file per key.

    Files are named ``{key}.json`` and replaced atomically on write.

    Example:
        >>> cache = JsonFileCache(Path("./data"))
        >>> cache.set("interview-assistant", {"candidates": []})
        >>> cache.get("interview-assistant")
        {'candidates': [], '_meta': {...}}
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheWriteError(self.directory, e) from e

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[dict[str, Any]]:
        """
        Load a blob.

        Returns:
            The stored dict, or None if the key was never written.

        Raises:
            CacheReadError: If the file exists but is unreadable or not a JSON object.
        """
        path = self._path(key)
        if not path.exists():
            logger.debug("No cache entry for %s", key)
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CacheReadError(path, e) from e
        except OSError as e:
            raise CacheReadError(path, e) from e
        if not isinstance(data, dict):
            raise CacheReadError(path, TypeError("cache entry is not a JSON object"))
        return data

    def set(self, key: str, value: dict[str, Any]) -> None:
        """
        Write a blob, adding a ``_meta`` block.

        Raises:
            CacheWriteError: If the write fails.
        """
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        data = dict(value)
        data["_meta"] = {
            "written_at": format_utc_timestamp(),
            "version": _BLOB_VERSION,
        }
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except OSError as e:
            raise CacheWriteError(path, e) from e
        logger.debug("Wrote cache entry %s", path)


# =============================================================================
# Candidate store
# =============================================================================

class CandidateStore:
    """
    Persisted collection of candidates with a "current candidate" pointer.

    Every mutation touches ``updated_at`` and persists the collection when a
    cache is attached. Without a cache the store is memory-only.

    Example:
        >>> store = CandidateStore.load(JsonFileCache(Path("./data")))
        >>> store.add(Candidate(id="cand_1", name="Alice Johnson"))
        >>> store.set_current("cand_1")
        >>> store.current.name
        'Alice Johnson'
    """

    def __init__(self, cache: Optional[KeyValueCache] = None, key: str = STORE_KEY) -> None:
        self._cache = cache
        self._key = key
        self._candidates: dict[str, Candidate] = {}
        self._current_id: Optional[str] = None

    @classmethod
    def load(cls, cache: KeyValueCache, key: str = STORE_KEY) -> "CandidateStore":
        """
        Rehydrate a store from the cache. An absent entry yields an empty store.

        Raises:
            CacheReadError: If the stored blob is unreadable.
        """
        store = cls(cache, key)
        data = cache.get(key)
        if data is None:
            logger.info("No persisted candidates found, starting empty")
            return store

        try:
            candidates = [Candidate.model_validate(item) for item in data.get("candidates", [])]
        except ValidationError as e:
            path = getattr(cache, "directory", Path(key))
            raise CacheReadError(Path(path), e) from e

        for candidate in candidates:
            store._candidates[candidate.id] = candidate
        current_id = data.get("current_candidate_id")
        store._current_id = current_id if current_id in store._candidates else None
        logger.info(
            "Loaded %d candidates (current=%s)",
            len(store._candidates),
            store._current_id,
        )
        return store

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_blob(self) -> dict[str, Any]:
        return {
            "candidates": [c.model_dump(mode="json") for c in self._candidates.values()],
            "current_candidate_id": self._current_id,
        }

    def _persist(self) -> None:
        if self._cache is not None:
            self._cache.set(self._key, self.to_blob())

    @staticmethod
    def _touch(candidate: Candidate) -> None:
        now = format_utc_timestamp()
        try:
            previous = parse_utc_timestamp(candidate.updated_at)
        except ValueError:
            logger.warning("Candidate %s has unreadable updated_at %r, replacing it", candidate.id, candidate.updated_at)
            candidate.updated_at = now
            return
        # updated_at never moves backwards, even if the wall clock does
        if parse_utc_timestamp(now) > previous:
            candidate.updated_at = now

    def _require(self, candidate_id: str) -> Candidate:
        candidate = self._candidates.get(candidate_id)
        if candidate is None:
            raise CandidateNotFoundError(candidate_id)
        return candidate

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self._candidates

    @property
    def candidates(self) -> list[Candidate]:
        """All records in insertion order."""
        return list(self._candidates.values())

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current(self) -> Optional[Candidate]:
        """The current candidate record, if any."""
        if self._current_id is None:
            return None
        return self._candidates.get(self._current_id)

    def get(self, candidate_id: str) -> Optional[Candidate]:
        return self._candidates.get(candidate_id)

    def find_in_progress(self) -> Optional[Candidate]:
        """First in-progress candidate, preferring the current one."""
        current = self.current
        if current is not None and current.interview_status == InterviewStatus.IN_PROGRESS:
            return current
        for candidate in self._candidates.values():
            if candidate.interview_status == InterviewStatus.IN_PROGRESS:
                return candidate
        return None

    def list_candidates(
        self,
        search: Optional[str] = None,
        status: Optional[InterviewStatus] = None,
    ) -> list[Candidate]:
        """
        Reviewer dashboard listing.

        Args:
            search: Case-insensitive substring matched against name and email.
            status: Only include candidates with this status.

        Returns:
            Completed candidates first, then by final score (highest first),
            then most recently updated first.
        """
        needle = (search or "").strip().lower()

        def _matches(candidate: Candidate) -> bool:
            if status is not None and candidate.interview_status != status:
                return False
            if not needle:
                return True
            haystack = f"{candidate.name or ''} {candidate.email or ''}".lower()
            return needle in haystack

        selected = [c for c in self._candidates.values() if _matches(c)]
        # Stable sorts, least significant key first
        selected.sort(key=lambda c: c.updated_at, reverse=True)
        selected.sort(key=lambda c: c.final_score if c.final_score is not None else -1, reverse=True)
        selected.sort(key=lambda c: c.interview_status != InterviewStatus.COMPLETED)
        return selected

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add(self, candidate: Candidate) -> Candidate:
        """
        Insert a new record.

        Raises:
            DuplicateCandidateError: If the id is already present.
        """
        if candidate.id in self._candidates:
            raise DuplicateCandidateError(candidate.id)
        self._candidates[candidate.id] = candidate
        self._persist()
        logger.info("Added candidate %s (%s)", candidate.id, candidate.name or "unnamed")
        return candidate

    def set_current(self, candidate_id: Optional[str]) -> Optional[Candidate]:
        """Point "current" at a record, or at nothing if the id is unknown."""
        self._current_id = candidate_id if candidate_id in self._candidates else None
        self._persist()
        return self.current

    def clear_current(self) -> None:
        """Detach the current pointer. Records are never deleted."""
        if self._current_id is not None:
            logger.info("Cleared current candidate %s", self._current_id)
        self._current_id = None
        self._persist()

    def update_contact(self, candidate_id: str, **fields: Optional[str]) -> Candidate:
        """Update name, email and/or phone."""
        allowed = {"name", "email", "phone"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown contact fields: {sorted(unknown)}")
        candidate = self._require(candidate_id)
        for field_name, value in fields.items():
            setattr(candidate, field_name, value)
        self._touch(candidate)
        self._persist()
        return candidate

    def assign_questions(self, candidate_id: str, questions: Iterable[Question]) -> Candidate:
        """
        Attach the question set. A set, once assigned, is never replaced.

        Raises:
            ValueError: If the candidate already has questions.
        """
        candidate = self._require(candidate_id)
        if candidate.questions:
            raise ValueError(f"Candidate {candidate_id!r} already has questions assigned")
        candidate.questions = [q.model_copy() for q in questions]
        self._touch(candidate)
        self._persist()
        return candidate

    def record_answer(self, candidate_id: str, answer: Answer) -> Candidate:
        """
        Append an answer and advance the question index.

        Raises:
            CandidateNotFoundError: If the candidate is unknown.
            InvalidAnswerError: If every question is already answered or the
                answer targets a different question than the next one.
        """
        candidate = self._require(candidate_id)
        index = candidate.current_question_index
        question = candidate.question_at(index)
        if question is None:
            raise InvalidAnswerError(
                f"Candidate {candidate_id!r} has no question at index {index}"
            )
        if answer.question_id != question.id:
            raise InvalidAnswerError(
                f"Answer for {answer.question_id!r} does not match next question {question.id!r}"
            )

        candidate.answers.append(answer)
        candidate.current_question_index = len(candidate.answers)
        self._touch(candidate)
        self._persist()
        logger.debug(
            "Recorded answer %d/%d for %s",
            candidate.current_question_index,
            candidate.question_limit,
            candidate_id,
        )
        return candidate

    def update_status(self, candidate_id: str, status: InterviewStatus) -> Candidate:
        """
        Set the interview status.

        Raises:
            InvalidStatusTransition: If the new status would move backwards.
        """
        candidate = self._require(candidate_id)
        if is_status_regression(candidate.interview_status, status):
            raise InvalidStatusTransition(
                f"Cannot move {candidate_id!r} from {candidate.interview_status.value} "
                f"to {status.value}"
            )
        if candidate.interview_status != status:
            candidate.interview_status = status
            self._touch(candidate)
            self._persist()
        return candidate

    def set_answer_scores(self, candidate_id: str, scores: list[int]) -> Candidate:
        """Attach finalization scores to the recorded answers, in order."""
        candidate = self._require(candidate_id)
        if len(scores) != len(candidate.answers):
            raise ValueError(
                f"Got {len(scores)} scores for {len(candidate.answers)} answers"
            )
        candidate.answers = [
            answer.model_copy(update={"score": score})
            for answer, score in zip(candidate.answers, scores)
        ]
        self._touch(candidate)
        self._persist()
        return candidate

    def set_final_score(self, candidate_id: str, score: int, summary: str) -> Candidate:
        """Record the outcome and force the status to completed."""
        candidate = self._require(candidate_id)
        if not 0 <= score <= 100:
            raise ValueError(f"Final score must be in [0, 100], got {score}")
        candidate.final_score = score
        candidate.ai_summary = summary
        candidate.interview_status = InterviewStatus.COMPLETED
        self._touch(candidate)
        self._persist()
        logger.info("Candidate %s completed with final score %d", candidate_id, score)
        return candidate
