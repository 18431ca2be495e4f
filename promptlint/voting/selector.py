"""
PromptLint - AI Variant Selector
Requests AI rewrites, scores them against the rule-based baseline and picks a winner.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from ..agents.rewriter import AIDraft, RewriteAgent
from ..models.candidate import RewriteCandidate, VariantType, needs_setup_candidate
from ..models.evaluation import GoldenDimension, GuidelineEvaluation, Issue, SessionContext
from ..models.registry import ProviderRegistry
from ..models.runtime import ProviderError
from ..rewriter.generator import VariantGenerator
from ..scoring.oracle import ScoringOracle


logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    """Outcome of one selection, with the scores that decided it."""
    candidate: RewriteCandidate
    baseline_score: Optional[float] = None
    ai_scores: Dict[str, float] = field(default_factory=dict)
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate.to_dict(),
            "baseline_score": self.baseline_score,
            "ai_scores": self.ai_scores,
            "reason": self.reason,
        }


class AIVariantSelector:
    """
    Chooses the candidate for the AI slot.

    Selection workflow:
    1. No usable provider: return a needs-setup candidate, no network call
    2. Ask providers for drafts, primary first, up to `max_attempts`
    3. Score every draft and the balanced baseline with the same oracle
    4. The best draft wins if it scores at least as high as the baseline
    5. Otherwise, or on any failure or timeout, return the baseline

    Every exit path returns a well-formed candidate; nothing is raised.
    """

    def __init__(
        self,
        oracle: ScoringOracle,
        registry: ProviderRegistry,
        agent: Optional[RewriteAgent] = None,
        generator: Optional[VariantGenerator] = None,
        timeout: float = 15.0,
        max_attempts: int = 2,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Initialize selector.

        Args:
            oracle: Scorer shared with the rest of the analysis.
            registry: Configured providers.
            agent: Builds provider requests and parses drafts.
            generator: Source of the balanced baseline when none is passed in.
            timeout: Seconds allowed for the whole provider phase.
            max_attempts: Number of providers tried before giving up.
            executor: Thread pool for the blocking provider calls.
        """
        self.oracle = oracle
        self.registry = registry
        self.agent = agent or RewriteAgent()
        self.generator = generator or VariantGenerator()
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="promptlint-ai")

    async def select_best(
        self,
        text: str,
        evaluation: GuidelineEvaluation,
        context: Optional[SessionContext] = None,
        baseline: Optional[RewriteCandidate] = None,
        issues: Optional[List[Issue]] = None
    ) -> RewriteCandidate:
        result = await self.select(text, evaluation, context, baseline, issues)
        return result.candidate

    async def select(
        self,
        text: str,
        evaluation: GuidelineEvaluation,
        context: Optional[SessionContext] = None,
        baseline: Optional[RewriteCandidate] = None,
        issues: Optional[List[Issue]] = None
    ) -> SelectionResult:
        if not self.registry.has_any_provider():
            return SelectionResult(candidate=needs_setup_candidate(), reason="no provider configured")

        try:
            if baseline is None:
                baseline = self.generator.generate(text, evaluation, context)[1]

            try:
                drafts = await asyncio.wait_for(
                    self._collect_drafts(text, evaluation, issues, context),
                    timeout=self.timeout
                )
            except asyncio.TimeoutError:
                logger.warning("AI rewrite timed out after %.1fs, using balanced rewrite", self.timeout)
                return self._fallback(baseline, "AI rewrite timed out.")

            if not drafts:
                return self._fallback(baseline, "No AI rewrite was available.")

            return self._decide(drafts, baseline, evaluation)

        except Exception as e:
            logger.warning("AI selection failed, using balanced rewrite: %s", e, exc_info=True)
            if baseline is None:
                baseline = RewriteCandidate(rewritten_prompt=text or "", variant=VariantType.BALANCED)
            return self._fallback(baseline, "AI rewrite failed.")

    async def _collect_drafts(
        self,
        text: str,
        evaluation: GuidelineEvaluation,
        issues: Optional[List[Issue]],
        context: Optional[SessionContext]
    ) -> List[AIDraft]:
        loop = asyncio.get_running_loop()
        for provider in self.registry.enabled()[:self.max_attempts]:
            logger.info("Requesting AI rewrites from %s", provider.name)
            try:
                return await loop.run_in_executor(
                    self._executor,
                    self.agent.request_drafts,
                    provider, text, evaluation, issues, context
                )
            except ProviderError as e:
                logger.warning("Provider %s failed (%s), trying next", e.provider, e)
        return []

    def _decide(
        self,
        drafts: List[AIDraft],
        baseline: RewriteCandidate,
        evaluation: GuidelineEvaluation
    ) -> SelectionResult:
        baseline_score = self.oracle.score(baseline.rewritten_prompt).overall_score

        best_draft, best_eval = None, None
        ai_scores = {}
        for i, draft in enumerate(drafts):
            draft_eval = self.oracle.score(draft.text)
            ai_scores[f"{draft.provider}_{i + 1}"] = draft_eval.overall_score
            if best_eval is None or draft_eval.overall_score > best_eval.overall_score:
                best_draft, best_eval = draft, draft_eval

        logger.info(
            "AI best %.3f vs balanced %.3f (%d drafts)",
            best_eval.overall_score, baseline_score, len(drafts)
        )

        if best_eval.overall_score < baseline_score:
            note = (
                f"AI rewrites scored lower than the balanced rewrite "
                f"({round(best_eval.overall_score * 100)} vs {round(baseline_score * 100)}); "
                f"showing the balanced rewrite instead."
            )
            return SelectionResult(
                candidate=baseline.relabel(
                    variant=VariantType.AI,
                    is_ai_generated=False,
                    ai_explanation=note,
                    provider=best_draft.provider
                ),
                baseline_score=baseline_score,
                ai_scores=ai_scores,
                reason="baseline scored higher"
            )

        improved = [
            dim.value for dim in GoldenDimension
            if best_eval.dimension_scores.get(dim) > evaluation.dimension_scores.get(dim)
        ]
        candidate = RewriteCandidate(
            rewritten_prompt=best_draft.text,
            variant=VariantType.AI,
            key_changes=improved,
            confidence=round(min(1.0, max(0.0, best_eval.overall_score)), 2),
            is_ai_generated=True,
            ai_explanation=best_draft.explanation or None,
            provider=best_draft.provider
        )
        return SelectionResult(
            candidate=candidate,
            baseline_score=baseline_score,
            ai_scores=ai_scores,
            reason="ai draft scored highest"
        )

    def _fallback(self, baseline: RewriteCandidate, note: str) -> SelectionResult:
        return SelectionResult(
            candidate=baseline.relabel(
                variant=VariantType.AI,
                is_ai_generated=False,
                ai_explanation=note,
                was_fallback=True
            ),
            reason=note
        )

    def shutdown(self):
        """Stop the thread pool if this selector created it. A shared executor is left running."""
        if self._owns_executor:
            self._executor.shutdown(wait=False)
