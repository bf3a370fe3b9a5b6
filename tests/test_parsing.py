"""
Tests for assessment response parsing and question normalization.

Last Grunted: 10/17/2026
"""

import json

import pytest

from interview_assistant.fallback import get_fallback_questions
from interview_assistant.models import DIFFICULTY_SCHEDULE, Difficulty, TIME_LIMITS
from interview_assistant.parsing import (
    AssessmentResponseError,
    GeneratedQuestion,
    clean_contact_value,
    normalize_questions,
    parse_contact_payload,
    parse_evaluation,
    parse_question_payload,
    strip_code_fences,
)

from tests.mock_data import generate_question_payload


# =============================================================================
# Code Fence Tests
# =============================================================================


class TestStripCodeFences:
    """Tests for markdown fence removal."""

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"

    def test_no_fence_unchanged(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'

    def test_none(self):
        assert strip_code_fences(None) == ""

    def test_fence_inside_prose(self):
        """A fenced block surrounded by commentary is still extracted."""
        reply = 'Here is the result:\n```json\n{"score": 70}\n```\nLet me know'
        assert strip_code_fences(reply) == '{"score": 70}'


# =============================================================================
# Question Payload Tests
# =============================================================================


class TestParseQuestionPayload:
    """Tests for parsing generator replies."""

    def test_envelope_with_camel_case_time_limit(self):
        """``timeLimit`` is read into ``time_limit``."""
        items = parse_question_payload(generate_question_payload())

        assert len(items) == 6
        assert items[0].text == "What does JSX compile to?"
        assert items[0].time_limit == 999

    def test_bare_list(self):
        """A top-level list is accepted."""
        items = parse_question_payload(generate_question_payload(wrap=False))

        assert len(items) == 6

    def test_fenced_reply(self):
        """Markdown fences around the JSON are stripped."""
        items = parse_question_payload(generate_question_payload(fenced=True))

        assert items[5].category == "Full-Stack Architecture"

    def test_not_json_raises(self):
        with pytest.raises(AssessmentResponseError):
            parse_question_payload("Here are some questions: 1. What is React?")

    def test_missing_questions_key_raises(self):
        with pytest.raises(AssessmentResponseError):
            parse_question_payload('{"items": []}')

    def test_empty_reply_raises(self):
        with pytest.raises(AssessmentResponseError):
            parse_question_payload("   ")


# =============================================================================
# Normalization Tests
# =============================================================================


class TestNormalizeQuestions:
    """Tests for coercing generated items into six valid questions."""

    def test_well_formed_items_kept(self):
        """Valid items keep their id, text and category; limits follow policy."""
        questions = normalize_questions(parse_question_payload(generate_question_payload()))

        assert [q.id for q in questions] == ["g1", "g2", "g3", "g4", "g5", "g6"]
        assert tuple(q.difficulty for q in questions) == DIFFICULTY_SCHEDULE
        assert [q.time_limit for q in questions] == [50, 50, 90, 90, 150, 150]

    def test_extra_items_truncated(self):
        """More than six items keeps the first six in order."""
        items = parse_question_payload(generate_question_payload(count=9))

        questions = normalize_questions(items)

        assert len(questions) == 6
        assert questions[0].id == "g1"
        assert questions[5].id == "g6"

    def test_short_list_padded_with_fallback(self):
        """Missing positions are filled from the fallback bank."""
        items = parse_question_payload(generate_question_payload(count=4))
        fallback = get_fallback_questions()

        questions = normalize_questions(items)

        assert len(questions) == 6
        assert [q.id for q in questions[:4]] == ["g1", "g2", "g3", "g4"]
        assert questions[4].text == fallback[4].text
        assert questions[5].text == fallback[5].text

    def test_empty_list_gives_fallback_bank(self):
        questions = normalize_questions([])

        assert [q.text for q in questions] == [q.text for q in get_fallback_questions()]

    def test_item_without_text_replaced(self):
        """Blank text is replaced by the fallback question at that position."""
        items = parse_question_payload(generate_question_payload())
        items[2] = GeneratedQuestion(id="g3", text="   ", difficulty="medium")

        questions = normalize_questions(items)

        assert questions[2].text == get_fallback_questions()[2].text

    def test_invalid_difficulty_defaults_to_schedule(self):
        items = parse_question_payload(generate_question_payload())
        items[1] = GeneratedQuestion(id="g2", text="Explain closures.", difficulty="trivial")

        questions = normalize_questions(items)

        assert questions[1].difficulty == Difficulty.EASY
        assert questions[1].time_limit == TIME_LIMITS[Difficulty.EASY]

    def test_broken_split_relabelled_by_position(self):
        """All-hard output is relabelled easy, easy, medium, medium, hard, hard."""
        payload = json.dumps(
            {"questions": [{"id": f"h{i}", "text": f"Hard question {i}", "difficulty": "hard"} for i in range(6)]}
        )

        questions = normalize_questions(parse_question_payload(payload))

        assert tuple(q.difficulty for q in questions) == DIFFICULTY_SCHEDULE
        assert questions[0].time_limit == 50

    def test_duplicate_and_missing_ids_fixed(self):
        """Ids are unique after normalization."""
        payload = json.dumps(
            {
                "questions": [
                    {"id": "x", "text": "A", "difficulty": "easy"},
                    {"id": "x", "text": "B", "difficulty": "easy"},
                    {"text": "C", "difficulty": "medium"},
                    {"id": "", "text": "D", "difficulty": "medium"},
                    {"id": "y", "text": "E", "difficulty": "hard"},
                    {"id": "y", "text": "F", "difficulty": "hard"},
                ]
            }
        )

        questions = normalize_questions(parse_question_payload(payload))
        ids = [q.id for q in questions]

        assert len(set(ids)) == 6
        assert ids[0] == "x"
        assert ids[2] == "q3"

    def test_missing_category_defaults_to_general(self):
        payload = json.dumps([{"id": "a", "text": "Q", "difficulty": "easy"}])

        questions = normalize_questions(parse_question_payload(payload))

        assert questions[0].category == "General"


# =============================================================================
# Evaluation Tests
# =============================================================================


class TestParseEvaluation:
    """Tests for score parsing."""

    def test_integer_score(self):
        assert parse_evaluation('{"score": 85, "feedback": "Good"}') == 85

    def test_fractional_score_rounds_half_up(self):
        assert parse_evaluation('{"score": 72.5}') == 73

    def test_numeric_string_accepted(self):
        assert parse_evaluation('{"score": " 64 "}') == 64

    def test_out_of_range_clamped(self):
        assert parse_evaluation('{"score": 140}') == 100
        assert parse_evaluation('{"score": -3}') == 0

    def test_fenced_reply(self):
        assert parse_evaluation('```json\n{"score": 40, "feedback": "ok"}\n```') == 40

    def test_fenced_reply_with_prose(self):
        """Commentary around the fenced JSON does not lose the score."""
        reply = 'Here is the result:\n```json\n{"score": 70}\n```\nLet me know'
        assert parse_evaluation(reply) == 70

    @pytest.mark.parametrize(
        "raw",
        [
            '{"score": 85, "feedback": null}',
            '{"score": 85, "feedback": {"detail": "x"}}',
            '{"score": 85, "feedback": ["a", "b"]}',
        ],
    )
    def test_unusual_feedback_keeps_score(self, raw):
        """Null or non-string feedback is ignored; only the score matters."""
        assert parse_evaluation(raw) == 85

    @pytest.mark.parametrize(
        "raw",
        [
            '{"feedback": "no score"}',
            '{"score": "great"}',
            '{"score": true}',
            '{"score": null}',
            "[85]",
            "eighty-five",
        ],
    )
    def test_unusable_replies_raise(self, raw):
        with pytest.raises(AssessmentResponseError):
            parse_evaluation(raw)

    def test_non_finite_raises(self):
        with pytest.raises(AssessmentResponseError):
            parse_evaluation('{"score": "nan"}')


# =============================================================================
# Contact Payload Tests
# =============================================================================


class TestParseContactPayload:
    """Tests for contact extractor replies."""

    def test_all_fields(self):
        info = parse_contact_payload(
            '{"name": "Alice Johnson", "email": "alice@tech.com", "phone": "555-456-7890"}'
        )

        assert info.name == "Alice Johnson"
        assert info.email == "alice@tech.com"
        assert info.phone == "555-456-7890"

    def test_placeholders_become_none(self):
        info = parse_contact_payload('{"name": "Unknown", "email": null, "phone": "N/A"}')

        assert info.model_dump() == {"name": None, "email": None, "phone": None}

    def test_list_reply_raises(self):
        with pytest.raises(AssessmentResponseError):
            parse_contact_payload('["Alice"]')

    def test_clean_contact_value_collapses_whitespace(self):
        assert clean_contact_value("  Alice   Johnson ") == "Alice Johnson"
        assert clean_contact_value("undefined") is None
