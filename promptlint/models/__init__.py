"""
PromptLint - Model Components
Data model, generative provider transports and the provider registry.
"""

from .candidate import RewriteCandidate, VariantType
from .evaluation import GoldenDimension, GoldenScoreVector, GuidelineEvaluation, Issue, SessionContext
from .record import AnalysisRecord
from .runtime import GenerativeProvider, ProviderError
from .registry import ProviderRegistry

__all__ = [
    "RewriteCandidate", "VariantType",
    "GoldenDimension", "GoldenScoreVector", "GuidelineEvaluation", "Issue", "SessionContext",
    "AnalysisRecord",
    "GenerativeProvider", "ProviderError",
    "ProviderRegistry",
]
