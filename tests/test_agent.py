"""Tests for RewriteAgent request building and draft parsing."""

import json

import pytest

from promptlint.agents.rewriter import RewriteAgent
from promptlint.models.evaluation import (
    GoldenScoreVector,
    Grade,
    GuidelineEvaluation,
    Issue,
    SessionContext,
    Severity,
)
from promptlint.models.runtime import ProviderError

from conftest import FakeProvider, variants_json


@pytest.fixture
def agent():
    return RewriteAgent(candidate_count=2)


EVALUATION = GuidelineEvaluation(
    dimension_scores=GoldenScoreVector(goal=0.8, output=0.5, limits=0.1, data=0.0, evaluation=0.7, next=0.39),
    overall_score=0.4,
    grade=Grade.D
)


class TestBuildUserMessage:
    def test_scores_have_status_markers(self, agent):
        message = agent.build_user_message("add caching", EVALUATION)

        assert '"""\nadd caching\n"""' in message
        assert "✓ Goal: 80" in message
        assert "△ Output: 50" in message
        assert "✗ Limits: 10" in message
        assert "✗ Next: 39" in message

    def test_includes_top_four_issues_and_context(self, agent):
        issues = [
            Issue(severity=Severity.HIGH, category=f"c{i}", message=f"problem {i}", suggestion=f"fix {i}")
            for i in range(6)
        ]
        context = SessionContext(
            project_path="/src/api-server", ide_name="Cursor",
            tech_stack=["Python", "FastAPI"], git_branch="feature/cache"
        )

        message = agent.build_user_message("add caching", EVALUATION, issues, context)

        assert "4. [high] problem 3\n   -> fix 3" in message
        assert "problem 4" not in message
        assert "- Project: api-server" in message
        assert "- IDE: Cursor" in message
        assert "- Tech stack: Python, FastAPI" in message
        assert "- Branch: feature/cache" in message

    def test_system_prompt_asks_for_candidate_count(self, agent):
        assert "Return exactly 2 distinct variants." in agent.system_prompt()


class TestParseDrafts:
    def test_variants_object(self, agent):
        drafts = agent.parse_drafts(variants_json("one", "two", "one"), "openai")

        assert [d.text for d in drafts] == ["one", "two"]
        assert drafts[0].explanation == "draft 1"
        assert drafts[0].improvements == ["structure"]
        assert drafts[0].provider == "openai"

    def test_single_object(self, agent):
        drafts = agent.parse_drafts(json.dumps({"rewrittenPrompt": "solo", "explanation": "why"}))

        assert [(d.text, d.explanation) for d in drafts] == [("solo", "why")]

    def test_json_wrapped_in_prose(self, agent):
        raw = "Here you go:\n" + variants_json("wrapped") + "\nHope this helps."

        assert [d.text for d in agent.parse_drafts(raw)] == ["wrapped"]

    def test_plain_text_is_one_draft(self, agent):
        drafts = agent.parse_drafts("Just an improved prompt.")

        assert [d.text for d in drafts] == ["Just an improved prompt."]

    def test_entries_without_text_are_dropped(self, agent):
        raw = json.dumps({"variants": [{"explanation": "no text"}, "junk", {"rewrittenPrompt": "  "}]})

        assert agent.parse_drafts(raw) == []

    def test_empty_response(self, agent):
        assert agent.parse_drafts("   ") == []


class TestRequestDrafts:
    def test_truncates_to_candidate_count(self, agent):
        provider = FakeProvider([variants_json("a", "b", "c")])

        drafts = agent.request_drafts(provider, "add caching", EVALUATION)

        assert [d.text for d in drafts] == ["a", "b"]
        assert provider.calls[0]["system"] == agent.system_prompt()

    def test_unusable_response_raises_provider_error(self, agent):
        provider = FakeProvider([json.dumps({"variants": []})])

        with pytest.raises(ProviderError):
            agent.request_drafts(provider, "add caching", EVALUATION)
