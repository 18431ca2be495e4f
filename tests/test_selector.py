"""Tests for AIVariantSelector selection policy and fallbacks."""

import asyncio
import itertools
import time

import pytest

from promptlint.config import ProviderType
from promptlint.models.candidate import RewriteCandidate, VariantType
from promptlint.models.runtime import ProviderError
from promptlint.voting.selector import AIVariantSelector

from conftest import FakeProvider, SlowProvider, TableOracle, make_registry, variants_json


ORIGINAL = "make the report page"
BASELINE = RewriteCandidate(
    rewritten_prompt="Goal: Make the report page.\n\nmake the report page",
    variant=VariantType.BALANCED,
    key_changes=["goal"],
    confidence=0.83
)


def select(selector, oracle, baseline=BASELINE):
    return asyncio.run(selector.select(ORIGINAL, oracle.score(ORIGINAL), baseline=baseline))


class TestNeedsSetup:
    def test_no_provider_returns_needs_setup_without_calls(self):
        oracle = TableOracle()
        selector = AIVariantSelector(oracle, make_registry())

        candidate = asyncio.run(selector.select_best(ORIGINAL, oracle.score(ORIGINAL), baseline=BASELINE))

        assert candidate.needs_setup is True
        assert candidate.rewritten_prompt == ""
        assert candidate.is_ai_generated is False
        assert candidate.variant == VariantType.AI
        # only the evaluation above was scored; nothing else ran
        assert oracle.calls == [ORIGINAL]


class TestSelection:
    def test_best_scoring_draft_wins(self):
        oracle = TableOracle({BASELINE.rewritten_prompt: 0.5, "draft a": 0.6, "draft b": 0.8})
        provider = FakeProvider([variants_json("draft a", "draft b")])
        selector = AIVariantSelector(oracle, make_registry(provider))

        result = select(selector, oracle)

        assert result.candidate.rewritten_prompt == "draft b"
        assert result.candidate.is_ai_generated is True
        assert result.candidate.variant == VariantType.AI
        assert result.candidate.provider == "claude"
        assert result.candidate.confidence == 0.8
        assert result.candidate.ai_explanation == "draft 2"
        assert result.baseline_score == 0.5

    def test_exact_tie_prefers_ai_draft(self):
        oracle = TableOracle({BASELINE.rewritten_prompt: 0.7, "draft": 0.7})
        selector = AIVariantSelector(oracle, make_registry(FakeProvider([variants_json("draft")])))

        candidate = select(selector, oracle).candidate

        assert candidate.rewritten_prompt == "draft"
        assert candidate.is_ai_generated is True

    def test_lower_scoring_draft_is_rejected_for_baseline(self):
        oracle = TableOracle({BASELINE.rewritten_prompt: 0.7, "draft": 0.69})
        selector = AIVariantSelector(oracle, make_registry(FakeProvider([variants_json("draft")])))

        candidate = select(selector, oracle).candidate

        assert candidate.rewritten_prompt == BASELINE.rewritten_prompt
        assert candidate.key_changes == BASELINE.key_changes
        assert candidate.is_ai_generated is False
        assert candidate.variant == VariantType.AI
        assert candidate.was_fallback is False
        assert "balanced" in candidate.ai_explanation

    def test_key_changes_are_dimensions_improved_over_original(self):
        oracle = TableOracle({ORIGINAL: 0.3, BASELINE.rewritten_prompt: 0.4, "draft": 0.9})
        selector = AIVariantSelector(oracle, make_registry(FakeProvider([variants_json("draft")])))

        candidate = select(selector, oracle).candidate

        assert candidate.key_changes == ["goal", "output", "limits", "data", "evaluation", "next"]


@pytest.mark.parametrize("baseline_score,draft_scores", list(itertools.product(
    [0.0, 0.35, 0.5, 0.72, 1.0],
    [(0.1,), (0.35, 0.2), (0.5, 0.49), (0.71, 0.73), (0.99, 1.0, 0.0)],
)))
def test_never_returns_ai_candidate_scoring_below_baseline(baseline_score, draft_scores):
    drafts = [f"draft {i}" for i in range(len(draft_scores))]
    oracle = TableOracle({BASELINE.rewritten_prompt: baseline_score, **dict(zip(drafts, draft_scores))})
    selector = AIVariantSelector(oracle, make_registry(FakeProvider([variants_json(*drafts)])))

    candidate = select(selector, oracle).candidate

    if candidate.is_ai_generated:
        assert oracle.score(candidate.rewritten_prompt).overall_score >= baseline_score
    else:
        assert candidate.rewritten_prompt == BASELINE.rewritten_prompt


class TestProviderFallback:
    def test_failed_primary_falls_through_to_next_provider(self, failing_provider):
        oracle = TableOracle({"from openai": 0.9})
        secondary = FakeProvider([variants_json("from openai")], provider_type=ProviderType.OPENAI, is_primary=False)
        selector = AIVariantSelector(oracle, make_registry(failing_provider, secondary))

        candidate = select(selector, oracle).candidate

        assert candidate.provider == "openai"
        assert candidate.is_ai_generated is True
        assert len(failing_provider.calls) == 1

    def test_all_providers_failing_returns_balanced_baseline(self, failing_provider):
        oracle = TableOracle()
        selector = AIVariantSelector(oracle, make_registry(failing_provider))

        candidate = select(selector, oracle).candidate

        assert candidate.rewritten_prompt == BASELINE.rewritten_prompt
        assert candidate.is_ai_generated is False
        assert candidate.was_fallback is True
        assert candidate.needs_setup is False

    def test_empty_response_is_treated_as_failure(self):
        oracle = TableOracle()
        selector = AIVariantSelector(oracle, make_registry(FakeProvider([""])))

        candidate = select(selector, oracle).candidate

        assert candidate.was_fallback is True
        assert candidate.rewritten_prompt == BASELINE.rewritten_prompt

    def test_attempts_stop_at_max_attempts(self):
        providers = [
            FakeProvider(error=ProviderError("down", t.value), provider_type=t, is_primary=(i == 0))
            for i, t in enumerate([ProviderType.CLAUDE, ProviderType.OPENAI, ProviderType.GEMINI])
        ]
        selector = AIVariantSelector(TableOracle(), make_registry(*providers), max_attempts=2)

        select(selector, TableOracle())

        assert [len(p.calls) for p in providers] == [1, 1, 0]

    def test_unexpected_exception_still_returns_baseline(self):
        class BrokenProvider(FakeProvider):
            def generate(self, *args, **kwargs):
                raise KeyError("surprise")

        oracle = TableOracle()
        selector = AIVariantSelector(oracle, make_registry(BrokenProvider()))

        candidate = select(selector, oracle).candidate

        assert candidate.was_fallback is True
        assert candidate.rewritten_prompt == BASELINE.rewritten_prompt


class TestTimeout:
    def test_slow_provider_resolves_to_baseline_within_timeout(self):
        oracle = TableOracle({"late draft": 1.0})
        slow = SlowProvider(variants_json("late draft"))
        selector = AIVariantSelector(oracle, make_registry(slow), timeout=0.2)

        try:
            start = time.monotonic()
            candidate = select(selector, oracle).candidate
            elapsed = time.monotonic() - start
        finally:
            slow.release.set()
            selector.shutdown()

        assert elapsed < 2.0
        assert candidate.is_ai_generated is False
        assert candidate.rewritten_prompt == BASELINE.rewritten_prompt
        assert candidate.was_fallback is True
        assert "timed out" in candidate.ai_explanation

    def test_baseline_defaults_to_generated_balanced_variant(self, failing_provider, oracle):
        selector = AIVariantSelector(oracle, make_registry(failing_provider))
        evaluation = oracle.score(ORIGINAL)

        candidate = asyncio.run(selector.select_best(ORIGINAL, evaluation))
        expected = selector.generator.generate(ORIGINAL, evaluation)[1]

        assert candidate.rewritten_prompt == expected.rewritten_prompt
        assert candidate.key_changes == expected.key_changes
