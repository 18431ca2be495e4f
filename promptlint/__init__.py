"""
PromptLint
GOLDEN prompt analysis, rule-based and AI rewrites, and history analytics.
"""

__version__ = "0.1.0"
