"""Tests for eduassist.core.strength.prompt_strength."""

import pytest

from eduassist.core.strength import prompt_strength
from eduassist.core.types import ContextUsed


class TestPromptStrength:

    def test_base_score_without_context(self):
        assert prompt_strength(ContextUsed(), 0) == 0.3

    def test_none_context_counts_as_empty(self):
        assert prompt_strength(None, 0) == 0.3

    def test_owned_entity_bonus(self):
        assert prompt_strength(ContextUsed(students_count=1), 0) == 0.4

    def test_records_saturate_at_twenty(self):
        assert prompt_strength(ContextUsed(grades_count=20), 0) == 0.7
        assert prompt_strength(ContextUsed(grades_count=45), 0) == 0.7

    def test_tool_calls_saturate_at_three(self):
        assert prompt_strength(ContextUsed(), 3) == 0.5
        assert prompt_strength(ContextUsed(), 9) == 0.5

    def test_all_record_kinds_count(self):
        context = ContextUsed(students_count=1, feedback_count=2, grades_count=3)
        # 0.3 + 0.1 + 0.4 * 5/20 + 0.2 * 1/3
        assert prompt_strength(context, 1) == 0.5667

    def test_maximum_is_one(self):
        context = ContextUsed(students_count=2, feedback_count=10, grades_count=10, violations_count=10)
        assert prompt_strength(context, 5) == 1.0

    def test_negative_call_count_is_ignored(self):
        assert prompt_strength(ContextUsed(), -4) == 0.3

    def test_monotonic_in_records(self):
        scores = [prompt_strength(ContextUsed(violations_count=n), 1) for n in range(0, 30)]
        assert scores == sorted(scores)
        assert all(0.0 <= s <= 1.0 for s in scores)

    def test_monotonic_in_tool_calls(self):
        context = ContextUsed(students_count=1, grades_count=4)
        scores = [prompt_strength(context, n) for n in range(0, 6)]
        assert scores == sorted(scores)

    @pytest.mark.parametrize("students", [0, 1])
    def test_scores_are_rounded_to_four_places(self, students):
        score = prompt_strength(ContextUsed(students_count=students, feedback_count=1), 2)
        assert score == round(score, 4)


class TestContextUsed:

    def test_wire_keys_are_camel_case(self):
        context = ContextUsed(students_count=1, feedback_count=2, grades_count=3, violations_count=4)
        assert context.to_dict() == {
            "studentsCount": 1,
            "feedbackCount": 2,
            "gradesCount": 3,
            "violationsCount": 4,
        }

    def test_from_dict_tolerates_missing_keys(self):
        assert ContextUsed.from_dict({"gradesCount": 2}) == ContextUsed(grades_count=2)
        assert ContextUsed.from_dict(None).is_empty
