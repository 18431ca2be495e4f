"""
PromptLint - Main Flask Application
HTTP API over the analysis orchestrator and history analytics.
"""

import asyncio
import atexit
import logging
from pathlib import Path
from typing import Optional, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import ConfigManager, get_config_manager
from .history.analytics import HistoryAnalytics
from .history.store import JsonlHistoryStore
from .models.evaluation import GoldenDimension, SessionContext
from .orchestrator import AnalysisOrchestrator
from .scoring.classifier import KeywordClassifier
from .scoring.oracle import RuleBasedOracle


logger = logging.getLogger(__name__)


def create_app(config_path: str = None, orchestrator: Optional[AnalysisOrchestrator] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_path: Optional base directory holding config/default.yaml.
        orchestrator: Prebuilt orchestrator. Built from the loaded
            configuration (rule-based oracle, keyword classifier, JSONL
            history) when omitted.

    Returns:
        Configured Flask application.
    """
    if config_path:
        config_manager = ConfigManager(Path(config_path))
    else:
        config_manager = get_config_manager(Path(__file__).parent.parent)
    config = config_manager.load()

    if orchestrator is None:
        orchestrator = AnalysisOrchestrator(
            oracle=RuleBasedOracle(),
            store=JsonlHistoryStore(config.storage.history_path),
            classifier=KeywordClassifier(),
            config=config
        )
        atexit.register(orchestrator.close)

    app = Flask(__name__)

    # Enable CORS for the desktop/web front end
    CORS(app)

    app.config["PROMPTLINT_CONFIG_MANAGER"] = config_manager
    app.config["PROMPTLINT_ORCHESTRATOR"] = orchestrator
    app.config["PROMPTLINT_ANALYTICS"] = HistoryAnalytics(
        orchestrator.store,
        orchestrator.config.history,
        clock=orchestrator.clock
    )

    register_routes(app)

    return app


def _read_prompt() -> Tuple[Optional[str], Optional[SessionContext], Optional[str]]:
    """Returns (text, context, error message)."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, None, "Request body must be a JSON object"

    text = data.get("text")
    if not isinstance(text, str):
        return None, None, "text is required"

    context = None
    if data.get("context"):
        try:
            context = SessionContext.from_dict(data["context"])
        except (KeyError, ValueError, TypeError) as e:
            return None, None, f"Invalid context: {e}"

    return text, context, None


def register_routes(app: Flask):
    """Register all application routes."""

    def orchestrator() -> AnalysisOrchestrator:
        return app.config["PROMPTLINT_ORCHESTRATOR"]

    def analytics() -> HistoryAnalytics:
        return app.config["PROMPTLINT_ANALYTICS"]

    # =========================================================================
    # System API
    # =========================================================================

    @app.route("/api/health", methods=["GET"])
    def health_check():
        """Health check endpoint."""
        summary = orchestrator().registry.summary()
        return jsonify({
            "status": "healthy",
            "ai_provider": summary["primary"],
            "has_provider": summary["has_provider"],
        })

    @app.route("/api/config", methods=["GET"])
    def get_configuration():
        """Get current configuration summary. Never includes API keys."""
        config_manager = app.config["PROMPTLINT_CONFIG_MANAGER"]
        return jsonify({
            **config_manager.get_summary(),
            "registry": orchestrator().registry.summary(),
        })

    # =========================================================================
    # Analysis API
    # =========================================================================

    @app.route("/api/analyze", methods=["POST"])
    def analyze_prompt():
        """Analyze a prompt. The AI slot comes back as a placeholder."""
        text, context, error = _read_prompt()
        if error:
            return jsonify({"error": error}), 400

        result = orchestrator().analyze(text, context)
        return jsonify(result.to_dict())

    @app.route("/api/analyze/ai-variant", methods=["POST"])
    def resolve_ai_variant():
        """Resolve the AI slot for a prompt analyzed earlier."""
        text, context, error = _read_prompt()
        if error:
            return jsonify({"error": error}), 400

        candidate = asyncio.run(orchestrator().resolve_ai_variant(text, context))
        return jsonify({"index": 0, "candidate": candidate.to_dict()})

    # =========================================================================
    # History API
    # =========================================================================

    @app.route("/api/history", methods=["GET"])
    def get_history():
        """Most recent analyses, newest first."""
        limit = request.args.get("limit", 30, type=int)
        return jsonify({"records": [r.to_dict() for r in analytics().recent(limit)]})

    @app.route("/api/history/stats", methods=["GET"])
    def get_history_stats():
        return jsonify(analytics().stats())

    @app.route("/api/history/trend", methods=["GET"])
    def get_score_trend():
        days = request.args.get("days", type=int)
        return jsonify({"trend": [p.to_dict() for p in analytics().score_trend(days)]})

    @app.route("/api/history/golden-averages", methods=["GET"])
    def get_golden_averages():
        days = request.args.get("days", type=int)
        return jsonify(analytics().golden_averages(days))

    @app.route("/api/history/weaknesses", methods=["GET"])
    def get_top_weaknesses():
        limit = request.args.get("limit", type=int)
        days = request.args.get("days", type=int)
        return jsonify({"weaknesses": [w.to_dict() for w in analytics().top_weaknesses(limit, days)]})

    @app.route("/api/history/issue-patterns", methods=["GET"])
    def get_issue_patterns():
        days = request.args.get("days", type=int)
        return jsonify({"patterns": [p.to_dict() for p in analytics().issue_patterns(days)]})

    @app.route("/api/history/streaks", methods=["GET"])
    def get_streaks():
        limit = request.args.get("limit", type=int)
        return jsonify({"streaks": [s.to_dict() for s in analytics().consecutive_improvements(limit)]})

    @app.route("/api/history/categories", methods=["GET"])
    def get_category_performance():
        days = request.args.get("days", type=int)
        return jsonify({"categories": [c.to_dict() for c in analytics().category_performance(days)]})

    @app.route("/api/history/prediction", methods=["GET"])
    def get_prediction():
        window_days = request.args.get("window_days", type=int)
        return jsonify(analytics().predicted_score(window_days).to_dict())

    @app.route("/api/history/weekly", methods=["GET"])
    def get_weekly_stats():
        weeks = request.args.get("weeks", 4, type=int)
        dimension = request.args.get("dimension")
        if dimension:
            try:
                golden = GoldenDimension(dimension)
            except ValueError:
                return jsonify({"error": f"Unknown dimension: {dimension}"}), 400
            points = analytics().golden_trend_by_dimension(golden, weeks)
            return jsonify({"dimension": golden.value, "trend": [p.to_dict() for p in points]})

        return jsonify({"weeks": [w.to_dict() for w in analytics().weekly_stats(weeks)]})

    @app.route("/api/history/monthly", methods=["GET"])
    def get_monthly_stats():
        months = request.args.get("months", 6, type=int)
        return jsonify({"months": [m.to_dict() for m in analytics().monthly_stats(months)]})

    @app.route("/api/history/improvement", methods=["GET"])
    def get_improvement_analysis():
        return jsonify(analytics().improvement_analysis().to_dict())

    @app.route("/api/history/recommendations", methods=["GET"])
    def get_history_recommendations():
        """Project and category recommendations from past analyses."""
        project_path = request.args.get("project_path")
        category = request.args.get("category")
        if not project_path and not category:
            return jsonify({"error": "project_path or category is required"}), 400

        recs = orchestrator().advisor.context_recommendations(category, project_path)
        return jsonify({
            "based_on_project": [r.to_dict() for r in recs["based_on_project"]],
            "based_on_category": [r.to_dict() for r in recs["based_on_category"]],
            "reference_prompts": recs["reference_prompts"],
        })
