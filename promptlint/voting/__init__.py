"""
PromptLint - Selection
Scores AI drafts against the rule-based baseline.
"""

from .selector import AIVariantSelector, SelectionResult

__all__ = ["AIVariantSelector", "SelectionResult"]
