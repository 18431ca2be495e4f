"""
PromptLint - Variant Generator
Deterministic rule-based rewrites of increasing aggressiveness.
"""

import logging
from typing import List, Optional

from ..models.candidate import RewriteCandidate, VariantType
from ..models.evaluation import GoldenDimension, GuidelineEvaluation, SessionContext
from .templates import DIMENSION_TEMPLATES, FillContext, detect_category, extract_code


logger = logging.getLogger(__name__)

DIMENSION_COUNT = len(GoldenDimension)


class VariantGenerator:
    """
    Produces the conservative, balanced and comprehensive candidates.

    Confidence reflects how many weak dimensions a variant leaves weak:
    a dimension filled only with a placeholder still counts as weak.

    - conservative: 1 - ((W - 1) + r) / 6, where W is the number of weak
      dimensions and r is the residual of the weakest one (1 when it got a
      placeholder, its original score when it got concrete content)
    - balanced: 1 - P / 6, where P is the number of placeholder clauses
    - comprehensive: 1.0
    """

    def __init__(self, weak_threshold: float = 0.5):
        self.weak_threshold = weak_threshold

    def generate(
        self,
        text: str,
        evaluation: GuidelineEvaluation,
        context: Optional[SessionContext] = None,
        category: Optional[str] = None
    ) -> List[RewriteCandidate]:
        """
        Build the three rule-based candidates, in fixed order.

        Never raises: on any internal failure each variant degrades to the
        original text with no key changes and confidence 0.
        """
        text = text or ""
        try:
            ctx = FillContext(text=text, category=category or detect_category(text), context=context)
            weak = evaluation.dimension_scores.weakest(self.weak_threshold)
            return [
                self.conservative(ctx, evaluation, weak),
                self.balanced(ctx, weak),
                self.comprehensive(ctx),
            ]
        except Exception as e:
            logger.warning("Variant generation failed, returning original text: %s", e)
            return [
                RewriteCandidate(rewritten_prompt=text, variant=variant)
                for variant in (VariantType.CONSERVATIVE, VariantType.BALANCED, VariantType.COMPREHENSIVE)
            ]

    def conservative(
        self,
        ctx: FillContext,
        evaluation: GuidelineEvaluation,
        weak: List[GoldenDimension]
    ) -> RewriteCandidate:
        """Single insertion addressing only the weakest dimension."""
        if not weak:
            return RewriteCandidate(
                rewritten_prompt=ctx.text,
                variant=VariantType.CONSERVATIVE,
                confidence=1.0
            )

        target = weak[0]
        template = DIMENSION_TEMPLATES[target]
        clause, is_placeholder = template.clause(ctx)
        residual = 1.0 if is_placeholder else evaluation.dimension_scores.get(target)

        return RewriteCandidate(
            rewritten_prompt=self._join([clause] if template.prepend else [], ctx.text,
                                        [] if template.prepend else [clause]),
            variant=VariantType.CONSERVATIVE,
            key_changes=[target.value],
            confidence=self._confidence((len(weak) - 1) + residual)
        )

    def balanced(self, ctx: FillContext, weak: List[GoldenDimension]) -> RewriteCandidate:
        """One templated clause per weak dimension, in GOLDEN order."""
        if not weak:
            return RewriteCandidate(
                rewritten_prompt=ctx.text,
                variant=VariantType.BALANCED,
                confidence=1.0
            )

        before, after = [], []
        placeholders = 0
        touched = [dim for dim in GoldenDimension if dim in weak]
        for dim in touched:
            template = DIMENSION_TEMPLATES[dim]
            clause, is_placeholder = template.clause(ctx)
            placeholders += int(is_placeholder)
            (before if template.prepend else after).append(clause)

        return RewriteCandidate(
            rewritten_prompt=self._join(before, ctx.text, after),
            variant=VariantType.BALANCED,
            key_changes=[dim.value for dim in touched],
            confidence=self._confidence(placeholders)
        )

    def comprehensive(self, ctx: FillContext) -> RewriteCandidate:
        """Full restructuring into the six GOLDEN sections."""
        sections = []
        for dim in GoldenDimension:
            template = DIMENSION_TEMPLATES[dim]
            body = self._section_body(dim, ctx)
            if body is None:
                body = template.fill(ctx) or template.placeholder
                body = body[0].upper() + body[1:]
            sections.append(f"## {template.section}\n{body}")

        return RewriteCandidate(
            rewritten_prompt="\n\n".join(sections),
            variant=VariantType.COMPREHENSIVE,
            key_changes=[dim.value for dim in GoldenDimension],
            confidence=1.0
        )

    def _section_body(self, dim: GoldenDimension, ctx: FillContext) -> Optional[str]:
        """Original wording takes precedence over templated content."""
        stripped = ctx.text.strip()
        if dim == GoldenDimension.GOAL and stripped:
            return stripped
        if dim == GoldenDimension.DATA:
            filled = DIMENSION_TEMPLATES[dim].fill(ctx)
            code = extract_code(ctx.text)
            if filled and code:
                return f"{filled[0].upper()}{filled[1:]}\n{code}"
            if code:
                return code
        return None

    @staticmethod
    def _join(before: List[str], text: str, after: List[str]) -> str:
        parts = before + ([text.strip()] if text.strip() else []) + after
        return "\n\n".join(parts)

    @staticmethod
    def _confidence(remaining_weak: float) -> float:
        return round(max(0.0, 1.0 - remaining_weak / DIMENSION_COUNT), 2)
