"""Tests for the rule-based oracle, fallback evaluation, issue derivation and classifier."""

import itertools

import pytest

from promptlint.models.evaluation import (
    GoldenDimension,
    GoldenScoreVector,
    Grade,
    GuidelineEvaluation,
    Severity,
    derive_issues,
)
from promptlint.rewriter.templates import detect_category
from promptlint.scoring.classifier import KeywordClassifier
from promptlint.scoring.oracle import (
    DIMENSION_WEIGHTS,
    FALLBACK_NOTE,
    fallback_evaluation,
    grade_for,
)

from conftest import STRONG_PROMPT


class TestRuleBasedOracle:
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_input_scores_lowest(self, oracle, text):
        evaluation = oracle.score(text)

        assert evaluation.overall_score == 0.0
        assert evaluation.grade == Grade.F
        assert evaluation.dimension_scores == GoldenScoreVector()
        assert [p.pattern for p in evaluation.anti_patterns] == ["too-short"]

    def test_structured_prompt_scores_high(self, oracle):
        evaluation = oracle.score(STRONG_PROMPT)

        assert evaluation.overall_score >= 0.75
        assert evaluation.grade in (Grade.A, Grade.B)
        assert evaluation.dimension_scores.goal == 1.0

    def test_short_prompt_is_flagged(self, oracle):
        patterns = [p.pattern for p in oracle.score("fix it").anti_patterns]

        assert "too-short" in patterns

    def test_retry_without_context(self, oracle):
        patterns = {p.pattern: p.severity for p in oracle.score("try again").anti_patterns}

        assert patterns["retry-without-context"] == Severity.HIGH

    def test_recommendations_are_bounded(self, oracle):
        evaluation = oracle.score("do that thing again")

        assert 0 < len(evaluation.recommendations) <= 5

    def test_weights_sum_to_one(self):
        assert sum(DIMENSION_WEIGHTS.values()) == pytest.approx(1.0)

    def test_overall_is_monotone_in_every_dimension(self, oracle):
        names = [d.value for d in GoldenDimension]
        vectors = [
            GoldenScoreVector(**dict(zip(names, combo)))
            for combo in itertools.product([0.0, 1.0], repeat=len(names))
        ]
        base = GoldenScoreVector(goal=0.4, output=0.4, limits=0.4, data=0.4, evaluation=0.4, next=0.4)
        for dim in GoldenDimension:
            raised = GoldenScoreVector(**{**base.to_dict(), dim.value: 0.9})
            assert oracle.overall(raised) >= oracle.overall(base)
        for a, b in itertools.product(vectors, repeat=2):
            if all(b.get(d) >= a.get(d) for d in GoldenDimension):
                assert oracle.overall(b) >= oracle.overall(a)


@pytest.mark.parametrize("score,grade", [
    (0.95, Grade.A), (0.90, Grade.A), (0.89, Grade.B), (0.75, Grade.B),
    (0.6, Grade.C), (0.4, Grade.D), (0.39, Grade.F), (0.0, Grade.F),
])
def test_grade_thresholds(score, grade):
    assert grade_for(score) == grade


class TestFallbackEvaluation:
    def test_short_text_starts_at_fifty(self):
        evaluation = fallback_evaluation("explain python decorators")

        assert evaluation.overall_score == 0.5
        assert evaluation.dimension_scores.goal == 0.5
        assert evaluation.recommendations == [FALLBACK_NOTE]

    def test_length_code_and_question_add_points(self):
        text = " ".join(["word"] * 60) + "\n```\ncode\n```\nwhy?"

        assert fallback_evaluation(text).overall_score == pytest.approx(0.85)

    def test_empty_text(self):
        assert fallback_evaluation("").grade == Grade.F


class TestDeriveIssues:
    def _evaluation(self, **scores):
        values = {dim.value: 0.8 for dim in GoldenDimension}
        values.update(scores)
        return GuidelineEvaluation(
            dimension_scores=GoldenScoreVector(**values), overall_score=0.5, grade=Grade.D
        )

    def test_weak_dimensions_become_issues_with_escalation(self):
        issues = derive_issues(self._evaluation(goal=0.45, limits=0.1))

        assert [(i.category, i.severity) for i in issues] == [
            ("no-constraints", Severity.HIGH),
            ("vague-goal", Severity.MEDIUM),
        ]
        assert issues[1].message.startswith("Goal clarity:")

    def test_issue_list_is_truncated(self):
        issues = derive_issues(self._evaluation(**{dim.value: 0.0 for dim in GoldenDimension}), limit=5)

        assert len(issues) == 5
        assert all(i.severity == Severity.HIGH for i in issues)


class TestKeywordClassifier:
    @pytest.fixture
    def classifier(self):
        return KeywordClassifier()

    def test_command_bug_fix(self, classifier):
        result = classifier.classify("fix the crash in the login function")

        assert result.intent == "command"
        assert result.category == "bug-fix"
        assert result.confidence == 0.67

    def test_question_intent(self, classifier):
        assert classifier.classify("Why does this function throw an error?").intent == "question"

    def test_retry_intent(self, classifier):
        assert classifier.classify("try again please").intent == "retry"

    def test_nothing_matches(self, classifier):
        result = classifier.classify("hello there")

        assert (result.intent, result.category, result.confidence) == ("request", "general", 0.3)

    def test_agrees_with_template_category_on_mixed_keywords(self, classifier):
        text = "add unit tests for the parser and fix the flaky mock"

        assert classifier.classify(text).category == "testing"
        assert detect_category(text) == "testing"
