"""
PromptLint - Agent Components
Rewrite agent that talks to generative providers.
"""

from .rewriter import AIDraft, RewriteAgent

__all__ = ["AIDraft", "RewriteAgent"]
