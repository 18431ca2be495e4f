"""
PromptLint - Orchestrator
Sequences scoring, classification, variant generation, history enrichment and persistence.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Any, List, Optional

from .agents.rewriter import RewriteAgent
from .config import AppConfig
from .history.recommendations import HistoryAdvisor, HistoryComparison, HistoryRecommendation
from .history.store import HistoryStore
from .models.candidate import (
    RewriteCandidate,
    VariantType,
    loading_candidate,
    needs_setup_candidate,
)
from .models.evaluation import (
    Classification,
    Grade,
    GuidelineEvaluation,
    Issue,
    SessionContext,
    Severity,
    derive_issues,
)
from .models.record import AnalysisRecord
from .models.registry import ProviderRegistry
from .rewriter.generator import VariantGenerator
from .rewriter.templates import DIMENSION_TEMPLATES
from .scoring.classifier import Classifier
from .scoring.oracle import FALLBACK_NOTE, ScoringOracle, fallback_evaluation
from .voting.selector import AIVariantSelector


logger = logging.getLogger(__name__)

AI_SLOT = 0
MAX_PERSONAL_TIPS = 3


class AnalysisStage(Enum):
    """Analysis execution stages, in order."""
    SCORING = "scoring"
    CLASSIFYING = "classifying"
    VARIANTS_READY = "variants_ready"
    AI_PENDING = "ai_pending"
    AI_RESOLVED = "ai_resolved"
    AI_FALLBACK = "ai_fallback"
    ENRICHED = "enriched"
    PERSISTED = "persisted"


UNAVAILABLE_ISSUE = Issue(
    severity=Severity.MEDIUM,
    category="analysis-unavailable",
    message="Deeper analysis was unavailable, so this score is a rough estimate.",
    suggestion="Try again in a moment for a full GOLDEN analysis."
)


@dataclass(frozen=True)
class AnalysisResult:
    """
    Synchronous result of one analysis.

    `variants[0]` is always the AI slot (a placeholder until resolved),
    followed by the conservative, balanced and comprehensive candidates.
    """
    prompt_text: str
    overall_score: int
    grade: Grade
    golden_scores: Dict[str, int]
    issues: List[Issue]
    variants: List[RewriteCandidate]
    personal_tips: List[str] = field(default_factory=list)
    classification: Optional[Classification] = None
    context: Optional[SessionContext] = None
    history_recommendations: List[HistoryRecommendation] = field(default_factory=list)
    comparison_with_history: Optional[HistoryComparison] = None
    record_id: Optional[int] = None
    stages: List[AnalysisStage] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def ai_variant(self) -> RewriteCandidate:
        return self.variants[AI_SLOT]

    def variant(self, variant_type: VariantType) -> RewriteCandidate:
        for candidate in self.variants:
            if candidate.variant == variant_type:
                return candidate
        raise KeyError(variant_type)

    def with_ai_variant(self, text: str, candidate: RewriteCandidate) -> "AnalysisResult":
        """
        Return a copy with the AI slot replaced by `candidate`.

        The replacement only happens when `text` is this result's prompt and
        the slot still holds a placeholder; otherwise `self` is returned, so a
        late answer for an older prompt is dropped.
        """
        if text != self.prompt_text or not self.ai_variant.is_placeholder:
            return self
        if candidate.variant != VariantType.AI:
            candidate = candidate.relabel(variant=VariantType.AI)
        variants = list(self.variants)
        variants[AI_SLOT] = candidate
        stage = AnalysisStage.AI_FALLBACK if candidate.was_fallback else AnalysisStage.AI_RESOLVED
        return replace(self, variants=variants, stages=self.stages + [stage])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt_text": self.prompt_text,
            "overall_score": self.overall_score,
            "grade": self.grade.value,
            "golden_scores": dict(self.golden_scores),
            "issues": [issue.to_dict() for issue in self.issues],
            "variants": [candidate.to_dict() for candidate in self.variants],
            "personal_tips": list(self.personal_tips),
            "classification": self.classification.to_dict() if self.classification else None,
            "context": self.context.to_dict() if self.context else None,
            "history_recommendations": [rec.to_dict() for rec in self.history_recommendations],
            "comparison_with_history": (
                self.comparison_with_history.to_dict() if self.comparison_with_history else None
            ),
            "record_id": self.record_id,
            "stages": [stage.value for stage in self.stages],
            "used_fallback": self.used_fallback,
        }


class AnalysisOrchestrator:
    """
    Runs one analysis end to end.

    Stages:
    1. Scoring - oracle evaluation (heuristic fallback on failure)
    2. Classifying - optional intent/category labelling
    3. Variants ready - rule-based candidates plus the AI slot placeholder
    4. Enriched - history recommendations for the project/category
    5. Persisted - append the record to the history log

    The AI slot is resolved separately through `resolve_ai_variant`.
    `analyze` never raises.
    """

    def __init__(
        self,
        oracle: ScoringOracle,
        store: HistoryStore,
        classifier: Optional[Classifier] = None,
        config: Optional[AppConfig] = None,
        registry: Optional[ProviderRegistry] = None,
        generator: Optional[VariantGenerator] = None,
        selector: Optional[AIVariantSelector] = None,
        advisor: Optional[HistoryAdvisor] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize orchestrator.

        Args:
            oracle: Scorer, constructed once by the caller and shared.
            store: Append-only history log.
            classifier: Optional intent/category classifier.
            config: Application configuration (defaults when omitted).
            registry: Provider registry; built from `config.ai` when omitted.
            generator: Rule-based variant generator.
            selector: AI selector; built from the other collaborators when omitted.
            advisor: History advisor; built over `store` when omitted.
            clock: Source of record timestamps.
        """
        self.config = config or AppConfig()
        self.oracle = oracle
        self.store = store
        self.classifier = classifier
        self.clock = clock or datetime.now

        analysis = self.config.analysis
        self.generator = generator or VariantGenerator(weak_threshold=analysis.weak_threshold)
        self.registry = registry or ProviderRegistry(self.config.ai)
        self.advisor = advisor or HistoryAdvisor(store, self.config.history)

        ai = self.config.ai
        self.selector = selector or AIVariantSelector(
            oracle=oracle,
            registry=self.registry,
            agent=RewriteAgent(
                max_tokens=ai.max_tokens,
                temperature=ai.temperature,
                candidate_count=ai.candidate_count
            ),
            generator=self.generator,
            timeout=ai.timeout_seconds,
            max_attempts=ai.max_attempts
        )

    @property
    def has_ai_provider(self) -> bool:
        return self.selector.registry.has_any_provider()

    def close(self):
        """Release the selector's worker threads."""
        self.selector.shutdown()

    def _evaluate(self, text: str):
        """Returns (evaluation, issues, used_fallback)."""
        analysis = self.config.analysis
        try:
            evaluation = self.oracle.score(text)
            issues = derive_issues(
                evaluation,
                weak_threshold=analysis.weak_threshold,
                high_threshold=analysis.high_severity_threshold,
                limit=analysis.max_issues
            )
            return evaluation, issues, False
        except Exception as e:
            logger.error("Scoring failed, using heuristic evaluation: %s", e, exc_info=True)
            return fallback_evaluation(text), [UNAVAILABLE_ISSUE], True

    def _classify(self, text: str) -> Optional[Classification]:
        if self.classifier is None:
            return None
        try:
            return self.classifier.classify(text)
        except Exception as e:
            logger.warning("Classification failed, continuing without it: %s", e)
            return None

    def personal_tips(self, evaluation: GuidelineEvaluation) -> List[str]:
        """First two oracle recommendations plus the weakest dimension's tip."""
        tips = [tip for tip in evaluation.recommendations[:2] if tip != FALLBACK_NOTE]
        weakest = evaluation.dimension_scores.weakest(self.config.analysis.weak_threshold)
        if weakest:
            tip = DIMENSION_TEMPLATES[weakest[0]].tip
            if not any(tip in existing for existing in tips):
                tips.append(tip)
        return tips[:MAX_PERSONAL_TIPS]

    def analyze(self, text: str, context: Optional[SessionContext] = None) -> AnalysisResult:
        """
        Analyze a prompt and return the synchronous result.

        Args:
            text: Prompt text (may be empty).
            context: Where the prompt was written, if known.

        Returns:
            AnalysisResult with the AI slot at index 0 holding a loading
            placeholder (provider configured) or a needs-setup placeholder.
        """
        text = text or ""
        stages = [AnalysisStage.SCORING]
        if context is not None:
            logger.info(
                "Session context: %s (source: %s, confidence: %s)",
                context.project_path, context.source.value, context.confidence.value
            )

        evaluation, issues, used_fallback = self._evaluate(text)

        classification = None
        if self.classifier is not None:
            stages.append(AnalysisStage.CLASSIFYING)
            classification = self._classify(text)
        category = classification.category if classification else None

        rule_based = self.generator.generate(text, evaluation, context, category)
        if self.has_ai_provider:
            ai_slot = loading_candidate()
            stages.extend([AnalysisStage.VARIANTS_READY, AnalysisStage.AI_PENDING])
        else:
            ai_slot = needs_setup_candidate()
            stages.append(AnalysisStage.VARIANTS_READY)
        variants = [ai_slot] + rule_based

        overall_score = int(round(evaluation.overall_score * 100))
        project_path = context.project_path if context else None

        recommendations: List[HistoryRecommendation] = []
        comparison = None
        if project_path or category:
            try:
                enrichment = self.advisor.enrich(overall_score, project_path, category)
                recommendations = enrichment["recommendations"]
                comparison = enrichment["comparison"]
                stages.append(AnalysisStage.ENRICHED)
            except Exception as e:
                logger.warning("History enrichment failed, omitting it: %s", e)

        record_id = self._persist(
            text=text,
            evaluation=evaluation,
            issues=issues,
            balanced=rule_based[1],
            project_path=project_path,
            classification=classification
        )
        if record_id is not None:
            stages.append(AnalysisStage.PERSISTED)

        return AnalysisResult(
            prompt_text=text,
            overall_score=overall_score,
            grade=evaluation.grade,
            golden_scores=evaluation.dimension_scores.to_percent(),
            issues=issues,
            variants=variants,
            personal_tips=self.personal_tips(evaluation),
            classification=classification,
            context=context,
            history_recommendations=recommendations,
            comparison_with_history=comparison,
            record_id=record_id,
            stages=stages,
            used_fallback=used_fallback
        )

    def _persist(
        self,
        text: str,
        evaluation: GuidelineEvaluation,
        issues: List[Issue],
        balanced: RewriteCandidate,
        project_path: Optional[str],
        classification: Optional[Classification]
    ) -> Optional[int]:
        """Append the record once. Failures are logged and swallowed."""
        try:
            improved = balanced.rewritten_prompt
            record = AnalysisRecord(
                id=self.store.new_id(),
                prompt_text=text,
                timestamp=self.clock(),
                overall_score=int(round(evaluation.overall_score * 100)),
                grade=evaluation.grade,
                golden_scores=evaluation.dimension_scores.to_percent(),
                issues=list(issues),
                improved_prompt=improved if improved and improved != text else None,
                project_path=project_path,
                intent=classification.intent if classification else None,
                category=classification.category if classification else None
            )
            self.store.append(record)
            return record.id
        except Exception as e:
            logger.error("Failed to persist analysis record: %s", e)
            return None

    async def resolve_ai_variant(self, text: str, context: Optional[SessionContext] = None) -> RewriteCandidate:
        """
        Resolve the AI slot for `text`.

        Returns immediately with a needs-setup candidate when no provider is
        configured. Otherwise the selector's timeout bounds the call and any
        failure resolves to the balanced rewrite.
        """
        text = text or ""
        if not self.has_ai_provider:
            return needs_setup_candidate()

        evaluation, issues, _ = self._evaluate(text)
        classification = self._classify(text)
        category = classification.category if classification else None
        baseline = self.generator.generate(text, evaluation, context, category)[1]

        candidate = await self.selector.select_best(text, evaluation, context, baseline, issues)
        stage = AnalysisStage.AI_FALLBACK if candidate.was_fallback else AnalysisStage.AI_RESOLVED
        logger.info("AI variant %s (provider: %s)", stage.value, candidate.provider)
        return candidate


class AIVariantTasks:
    """
    In-flight AI resolutions keyed by prompt text.

    At most one task runs per text. Starting a task for a different text
    never cancels an earlier one; callers drop stale answers through
    `AnalysisResult.with_ai_variant`.
    """

    def __init__(self, orchestrator: AnalysisOrchestrator):
        self.orchestrator = orchestrator
        self._tasks: Dict[str, asyncio.Task] = {}

    def start(self, text: str, context: Optional[SessionContext] = None) -> "asyncio.Task":
        """Return the running task for `text`, starting one if needed. Needs a running loop."""
        task = self._tasks.get(text)
        if task is not None and not task.done():
            return task

        task = asyncio.ensure_future(self.orchestrator.resolve_ai_variant(text, context))
        self._tasks[text] = task
        task.add_done_callback(lambda finished, key=text: self._forget(key, finished))
        return task

    def _forget(self, text: str, task: "asyncio.Task"):
        if self._tasks.get(text) is task:
            del self._tasks[text]

    def cancel(self, text: str) -> bool:
        task = self._tasks.pop(text, None)
        if task is None or task.done():
            return False
        return task.cancel()

    def pending(self) -> List[str]:
        return [text for text, task in self._tasks.items() if not task.done()]
