"""
PromptLint - Prompt Classifier
Keyword-based intent and task category classification.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List

from ..models.evaluation import Classification
from ..rewriter.templates import category_matches, detect_category


class Classifier(ABC):
    """Optional collaborator that labels a prompt with intent and category."""

    @abstractmethod
    def classify(self, text: str) -> Classification:
        pass


INTENT_PATTERNS: Dict[str, List[str]] = {
    "retry": [r"^\s*(again|retry|try again|redo)\b", r"\b(still (not|doesn't|does not) work|didn't work)\b"],
    "question": [r"\?\s*$", r"^\s*(what|why|how|when|where|which|who|can|could|is|are|does|do)\b"],
    "command": [r"^\s*(create|make|build|implement|write|fix|add|remove|delete|update|refactor|generate|run)\b"],
    "context": [r"^\s*(context|background|fyi|note)\s*:", r"^\s*(i am|i'm|we are|we're) (working|using|building)\b"],
    "request": [r"\b(please|could you|can you|would you|i need|i want)\b"],
}

MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.95


class KeywordClassifier(Classifier):
    """
    Rule-based classifier.

    The category with the most matching keywords wins; ties go to the
    earlier entry in CATEGORY_KEYWORDS. Confidence is the winner's share of
    all matches, clamped to [0.3, 0.95].
    """

    def __init__(self):
        self._intents = {
            intent: [re.compile(p, re.IGNORECASE | re.MULTILINE) for p in patterns]
            for intent, patterns in INTENT_PATTERNS.items()
        }

    def classify(self, text: str) -> Classification:
        text = text or ""
        intent = self._intent(text)

        counts = category_matches(text)
        total = sum(counts.values())
        if total == 0:
            return Classification(intent=intent, category="general", confidence=MIN_CONFIDENCE)

        category = detect_category(text)
        confidence = min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, counts[category] / total))
        return Classification(intent=intent, category=category, confidence=round(confidence, 2))

    def _intent(self, text: str) -> str:
        for intent, regexes in self._intents.items():
            if any(regex.search(text) for regex in regexes):
                return intent
        return "request"
