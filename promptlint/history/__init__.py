"""
PromptLint - History
Append-only analysis log, analytics queries and history-based recommendations.
"""

from .store import HistoryStore, InMemoryHistoryStore, JsonlHistoryStore
from .analytics import HistoryAnalytics
from .recommendations import HistoryAdvisor

__all__ = ["HistoryStore", "InMemoryHistoryStore", "JsonlHistoryStore", "HistoryAnalytics", "HistoryAdvisor"]
