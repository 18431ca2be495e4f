"""
PromptLint - Candidate Models
Rewritten prompt candidates and their variant tags.
"""

from dataclasses import dataclass, asdict, field, replace
from enum import Enum
from typing import Dict, Any, List, Optional


class VariantType(Enum):
    """Generation strategy of a candidate. Closed set."""
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    COMPREHENSIVE = "comprehensive"
    AI = "ai"


VARIANT_LABELS: Dict[VariantType, str] = {
    VariantType.CONSERVATIVE: "Conservative",
    VariantType.BALANCED: "Balanced",
    VariantType.COMPREHENSIVE: "Comprehensive",
    VariantType.AI: "AI Recommended",
}

# Order of the rule-based variants in every result list
RULE_BASED_ORDER = (VariantType.CONSERVATIVE, VariantType.BALANCED, VariantType.COMPREHENSIVE)


@dataclass(frozen=True)
class RewriteCandidate:
    """One rewritten version of a prompt."""
    rewritten_prompt: str
    variant: VariantType
    key_changes: List[str] = field(default_factory=list)
    confidence: float = 0.0  # 0-1
    is_ai_generated: bool = False
    ai_explanation: Optional[str] = None
    needs_setup: bool = False
    is_loading: bool = False
    provider: Optional[str] = None
    was_fallback: bool = False

    @property
    def variant_label(self) -> str:
        return VARIANT_LABELS[self.variant]

    @property
    def is_placeholder(self) -> bool:
        return self.is_loading or self.needs_setup

    def relabel(self, **changes) -> "RewriteCandidate":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["variant"] = self.variant.value
        data["variant_label"] = self.variant_label
        return data


def needs_setup_candidate() -> RewriteCandidate:
    """AI slot shown when no provider is configured."""
    return RewriteCandidate(
        rewritten_prompt="",
        variant=VariantType.AI,
        needs_setup=True
    )


def loading_candidate() -> RewriteCandidate:
    """Transient AI slot shown while the AI variant resolves. Never persisted."""
    return RewriteCandidate(
        rewritten_prompt="",
        variant=VariantType.AI,
        is_loading=True
    )
