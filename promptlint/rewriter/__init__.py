"""
PromptLint - Rule-Based Rewriter
Remediation templates and the conservative/balanced/comprehensive generator.
"""

from .generator import VariantGenerator

__all__ = ["VariantGenerator"]
