"""
PromptLint - Scoring Components
GOLDEN rubric oracle and prompt classifier.
"""

from .oracle import ScoringOracle, RuleBasedOracle
from .classifier import Classifier, KeywordClassifier

__all__ = ["ScoringOracle", "RuleBasedOracle", "Classifier", "KeywordClassifier"]
