"""
Shared fixtures: in-process fake providers, a fixed clock and record builders.
No test touches the network.
"""

import json
import threading
from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from promptlint.config import AIConfig, AppConfig, ProviderConfig, ProviderType
from promptlint.history.store import InMemoryHistoryStore
from promptlint.models.record import AnalysisRecord
from promptlint.models.registry import ProviderRegistry
from promptlint.models.runtime import GenerationResult, GenerativeProvider, ProviderError
from promptlint.models.evaluation import GoldenDimension, GoldenScoreVector, Grade, GuidelineEvaluation, Issue, Severity
from promptlint.scoring.oracle import RuleBasedOracle, ScoringOracle, grade_for


NOW = datetime(2024, 6, 12, 12, 0, 0)  # a Wednesday

STRONG_PROMPT = (
    "Goal: implement a login form component so that users can sign in.\n"
    "Output format: return the React TypeScript code as a complete implementation, for example a LoginForm.tsx file.\n"
    "Constraints: only use the existing UI library, avoid external dependencies, keep it under 100 lines.\n"
    "Context: the project currently uses React with Firebase auth, see src/auth/session.ts.\n"
    "Success criteria: verify that all tests pass and edge cases are handled.\n"
    "Next step: then write unit tests and describe the follow-up steps."
)


class FakeProvider(GenerativeProvider):
    """Provider that returns canned text instead of calling HTTP."""

    provider_type = ProviderType.CLAUDE

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None,
                 provider_type: ProviderType = ProviderType.CLAUDE, is_primary: bool = True):
        self.provider_type = provider_type
        super().__init__(ProviderConfig(
            provider=provider_type, api_key="test-key", is_enabled=True, is_primary=is_primary
        ))
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def build_request(self, prompt, system, max_tokens, temperature):
        raise AssertionError("fake provider never builds HTTP requests")

    def parse_response(self, data):
        raise AssertionError("fake provider never parses HTTP responses")

    def generate(self, prompt, system=None, max_tokens=1500, temperature=0.7):
        self.calls.append({"prompt": prompt, "system": system})
        if self.error is not None:
            raise self.error
        text = self.responses.pop(0) if self.responses else ""
        return GenerationResult(text=text, model="fake", provider=self.name, duration_ms=1.0)


class SlowProvider(FakeProvider):
    """Blocks until released (or a safety deadline) before answering."""

    def __init__(self, response: str, **kwargs):
        super().__init__([response], **kwargs)
        self.release = threading.Event()

    def generate(self, prompt, system=None, max_tokens=1500, temperature=0.7):
        self.release.wait(timeout=5.0)
        return super().generate(prompt, system, max_tokens, temperature)


def variants_json(*texts: str) -> str:
    return json.dumps({
        "variants": [
            {"rewrittenPrompt": text, "explanation": f"draft {i}", "improvements": ["structure"]}
            for i, text in enumerate(texts, start=1)
        ]
    })


def make_registry(*providers: GenerativeProvider) -> ProviderRegistry:
    return ProviderRegistry(AIConfig(), providers=list(providers))


def make_record(
    record_id: int,
    score: int,
    timestamp: datetime,
    issues: Optional[List[str]] = None,
    category: Optional[str] = None,
    project_path: Optional[str] = None,
    golden: Optional[int] = None
) -> AnalysisRecord:
    golden_value = score if golden is None else golden
    return AnalysisRecord(
        id=record_id,
        prompt_text=f"prompt {record_id}",
        timestamp=timestamp,
        overall_score=score,
        grade=Grade.C,
        golden_scores={dim: golden_value for dim in ("goal", "output", "limits", "data", "evaluation", "next")},
        issues=[
            Issue(severity=Severity.MEDIUM, category=c, message=c, suggestion="")
            for c in (issues or [])
        ],
        project_path=project_path,
        category=category
    )


def daily_records(scores: List[int], start: Optional[datetime] = None, **kwargs) -> List[AnalysisRecord]:
    start = start or NOW - timedelta(days=len(scores) - 1)
    return [
        make_record(i + 1, score, start + timedelta(days=i), **kwargs)
        for i, score in enumerate(scores)
    ]


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def oracle():
    return RuleBasedOracle()


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def app_config(tmp_path):
    config = AppConfig()
    config.storage.data_dir = tmp_path / "data"
    config.ai.timeout_seconds = 2.0
    return config


@pytest.fixture
def no_provider_registry():
    return make_registry()


@pytest.fixture
def failing_provider():
    return FakeProvider(error=ProviderError("HTTP 500: boom", "claude", status_code=500))


def uniform_evaluation(value: float) -> GuidelineEvaluation:
    vector = GoldenScoreVector(**{dim.value: value for dim in GoldenDimension})
    return GuidelineEvaluation(dimension_scores=vector, overall_score=value, grade=grade_for(value))


class TableOracle(ScoringOracle):
    """Oracle with scripted scores: every dimension gets the text's table value."""

    def __init__(self, scores=None, default: float = 0.2):
        self.scores = dict(scores or {})
        self.default = default
        self.calls = []

    def score(self, text):
        self.calls.append(text)
        return uniform_evaluation(self.scores.get(text, self.default))


class ExplodingOracle(ScoringOracle):
    def score(self, text):
        raise RuntimeError("oracle unavailable")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real provider keys and overrides out of every test."""
    for var in (
        "PROMPTLINT_CLAUDE_API_KEY", "PROMPTLINT_OPENAI_API_KEY", "PROMPTLINT_GEMINI_API_KEY",
        "PROMPTLINT_PRIMARY_PROVIDER", "PROMPTLINT_AI_TIMEOUT", "PROMPTLINT_DATA_DIR",
    ):
        monkeypatch.delenv(var, raising=False)
