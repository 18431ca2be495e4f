"""Tests for the Flask HTTP surface."""

import pytest

from promptlint.main import create_app
from promptlint.orchestrator import AnalysisOrchestrator
from promptlint.scoring.classifier import KeywordClassifier

from conftest import STRONG_PROMPT, make_registry


@pytest.fixture
def orchestrator(oracle, store, clock, app_config):
    return AnalysisOrchestrator(
        oracle=oracle,
        store=store,
        classifier=KeywordClassifier(),
        config=app_config,
        registry=make_registry(),
        clock=clock
    )


@pytest.fixture
def client(tmp_path, orchestrator):
    app = create_app(config_path=str(tmp_path), orchestrator=orchestrator)
    app.config["TESTING"] = True
    return app.test_client()


def analyze(client, text, **extra):
    return client.post("/api/analyze", json={"text": text, **extra})


class TestSystemRoutes:
    def test_health(self, client):
        data = client.get("/api/health").get_json()

        assert data["status"] == "healthy"
        assert data["has_provider"] is False

    def test_config_summary(self, client):
        data = client.get("/api/config").get_json()

        assert data["registry"]["has_provider"] is False
        assert "providers" in data


class TestAnalyzeRoutes:
    def test_missing_text_is_rejected(self, client):
        response = client.post("/api/analyze", json={"prompt": "wrong field"})

        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_non_json_body_is_rejected(self, client):
        response = client.post("/api/analyze", data="text=hi")

        assert response.status_code == 400

    def test_invalid_context_is_rejected(self, client):
        response = analyze(client, "hi", context={"source": "app-path"})

        assert response.status_code == 400

    def test_analyze_returns_four_variants(self, client):
        data = analyze(client, "fix the login bug", context={"project_path": "/work/shop"}).get_json()

        assert [v["variant"] for v in data["variants"]] == ["ai", "conservative", "balanced", "comprehensive"]
        assert data["variants"][0]["needs_setup"] is True
        assert data["classification"]["category"] == "bug-fix"
        assert data["context"]["project_name"] == "shop"
        assert data["record_id"] is not None

    def test_empty_text_is_analyzed(self, client):
        data = analyze(client, "").get_json()

        assert data["grade"] == "F"

    def test_ai_variant_without_provider_needs_setup(self, client):
        data = client.post("/api/analyze/ai-variant", json={"text": "fix the login bug"}).get_json()

        assert data["index"] == 0
        assert data["candidate"]["needs_setup"] is True
        assert data["candidate"]["rewritten_prompt"] == ""


class TestHistoryRoutes:
    @pytest.fixture
    def seeded(self, client):
        for text in ("fix the login bug", STRONG_PROMPT, "explain this"):
            analyze(client, text)
        return client

    def test_history_newest_first(self, seeded):
        records = seeded.get("/api/history?limit=2").get_json()["records"]

        assert [r["prompt_text"] for r in records] == ["explain this", STRONG_PROMPT]

    def test_stats(self, seeded):
        assert seeded.get("/api/history/stats").get_json()["total_analyses"] == 3

    def test_query_endpoints_respond(self, seeded):
        for url, key in [
            ("/api/history/trend?days=7", "trend"),
            ("/api/history/weaknesses?limit=2", "weaknesses"),
            ("/api/history/issue-patterns", "patterns"),
            ("/api/history/streaks", "streaks"),
            ("/api/history/categories", "categories"),
            ("/api/history/weekly?weeks=2", "weeks"),
            ("/api/history/monthly?months=3", "months"),
        ]:
            response = seeded.get(url)
            assert response.status_code == 200, url
            assert key in response.get_json(), url

    def test_golden_averages(self, seeded):
        data = seeded.get("/api/history/golden-averages").get_json()

        assert set(data) == {"goal", "output", "limits", "data", "evaluation", "next"}

    def test_prediction(self, seeded):
        data = seeded.get("/api/history/prediction").get_json()

        assert data["confidence"] == "low"
        assert 0 <= data["predicted_score"] <= 100

    def test_weekly_dimension_trend(self, seeded):
        assert seeded.get("/api/history/weekly?dimension=goal").get_json()["dimension"] == "goal"
        assert seeded.get("/api/history/weekly?dimension=bogus").status_code == 400

    def test_recommendations_require_scope(self, seeded):
        assert seeded.get("/api/history/recommendations").status_code == 400

        data = seeded.get("/api/history/recommendations?category=bug-fix").get_json()
        assert set(data) == {"based_on_project", "based_on_category", "reference_prompts"}

    def test_improvement_analysis(self, seeded):
        data = seeded.get("/api/history/improvement").get_json()

        assert data["overall_improvement"] == 0
        assert data["streak"] == 1
        assert data["milestones"][-1]["type"] == "highest_score"
