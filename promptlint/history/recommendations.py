"""
PromptLint - History Advisor
Project and category recommendations derived from past analyses.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any, List, Optional

import numpy as np

from ..config import HistoryConfig
from ..models.evaluation import GoldenDimension
from ..models.record import AnalysisRecord
from ..rewriter.templates import CATEGORY_LABELS, DIMENSION_TEMPLATES
from .store import HistoryStore


WEAKNESS_THRESHOLD = 60
PATTERN_THRESHOLD = 70
HIGH_SCORE_THRESHOLD = 80
CATEGORY_REFERENCE_THRESHOLD = 75
MAX_EXAMPLES = 5
MAX_RECOMMENDATIONS = 5


class RecommendationType(Enum):
    WEAKNESS = "weakness"
    IMPROVEMENT = "improvement"
    REFERENCE = "reference"
    PATTERN = "pattern"


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass(frozen=True)
class HistoryRecommendation:
    """A suggestion grounded in the user's own history."""
    type: RecommendationType
    priority: Priority
    title: str
    message: str
    dimension: Optional[str] = None
    example_prompt: Optional[str] = None
    improvement: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {**asdict(self), "type": self.type.value, "priority": self.priority.value}


@dataclass(frozen=True)
class HistoryComparison:
    """Current score against the rolling project average."""
    better_than_average: bool
    score_diff: int
    improvement: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _excerpt(text: str, length: int) -> str:
    return text[:length] + ("..." if len(text) > length else "")


def _example(record: AnalysisRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "prompt_text": record.prompt_text,
        "overall_score": record.overall_score,
        "grade": record.grade.value,
        "timestamp": record.timestamp.isoformat(),
    }


class HistoryAdvisor:
    """
    Builds history-based recommendations for the analysis result.

    Read-only over the store, like HistoryAnalytics.
    """

    def __init__(self, store: HistoryStore, config: Optional[HistoryConfig] = None):
        self.store = store
        self.config = config or HistoryConfig()

    def _project_records(self, project_path: str) -> List[AnalysisRecord]:
        return [r for r in self.store.read_all() if r.project_path == project_path]

    def project_patterns(self, project_path: str) -> Dict[str, Any]:
        records = self._project_records(project_path)
        total = len(records)
        average = int(round(float(np.mean([r.overall_score for r in records])))) if records else 0

        golden_averages = {}
        if records:
            golden_averages = {
                dim.value: int(round(float(np.mean([r.golden(dim) for r in records]))))
                for dim in GoldenDimension
            }

        weaknesses = sorted(
            (
                {"dimension": dim, "average_score": score}
                for dim, score in golden_averages.items()
                if score < WEAKNESS_THRESHOLD
            ),
            key=lambda w: w["average_score"]
        )

        high_scoring = sorted(
            (r for r in records if r.overall_score >= HIGH_SCORE_THRESHOLD),
            key=lambda r: r.overall_score,
            reverse=True
        )[:MAX_EXAMPLES]

        return {
            "project_path": project_path,
            "total_analyses": total,
            "average_score": average,
            "golden_averages": golden_averages,
            "weaknesses": weaknesses,
            "recommendations": self._project_recommendations(
                weaknesses, golden_averages, high_scoring, average, total
            ),
            "high_scoring_examples": [_example(r) for r in high_scoring],
        }

    def _project_recommendations(
        self,
        weaknesses: List[Dict[str, Any]],
        golden_averages: Dict[str, int],
        high_scoring: List[AnalysisRecord],
        average: int,
        total: int
    ) -> List[HistoryRecommendation]:
        if total == 0:
            return []

        recommendations = []
        for i, weakness in enumerate(weaknesses[:2]):
            template = DIMENSION_TEMPLATES[GoldenDimension(weakness["dimension"])]
            recommendations.append(HistoryRecommendation(
                type=RecommendationType.WEAKNESS,
                priority=Priority.HIGH if i == 0 else Priority.MEDIUM,
                title=f"Improve {template.title.lower()}" if i == 0 else f"Also check {template.title.lower()}",
                message=template.tip,
                dimension=weakness["dimension"],
                improvement=WEAKNESS_THRESHOLD - weakness["average_score"] if i == 0 else None
            ))

        if high_scoring:
            best = high_scoring[0]
            recommendations.append(HistoryRecommendation(
                type=RecommendationType.REFERENCE,
                priority=Priority.LOW,
                title="A prompt worth reusing",
                message=f"A prompt in this project earned grade {best.grade.value} ({best.overall_score} points).",
                example_prompt=_excerpt(best.prompt_text, 150)
            ))

        if golden_averages:
            lowest_dim, lowest = min(golden_averages.items(), key=lambda item: item[1])
            if lowest < PATTERN_THRESHOLD:
                template = DIMENSION_TEMPLATES[GoldenDimension(lowest_dim)]
                recommendations.append(HistoryRecommendation(
                    type=RecommendationType.PATTERN,
                    priority=Priority.MEDIUM,
                    title=f"{template.title} pattern",
                    message=f"This project averages {lowest} here. {template.tip}",
                    dimension=lowest_dim
                ))

        if average < 60:
            recommendations.append(HistoryRecommendation(
                type=RecommendationType.IMPROVEMENT,
                priority=Priority.HIGH,
                title="Overall prompt quality needs work",
                message="Prompts in this project score low on average. Structure them with the GOLDEN checklist.",
                improvement=60 - average
            ))
        elif average < 75:
            recommendations.append(HistoryRecommendation(
                type=RecommendationType.IMPROVEMENT,
                priority=Priority.MEDIUM,
                title="Room to improve",
                message="Your prompts are good. A few additions would make them better.",
                improvement=75 - average
            ))

        return recommendations

    def context_recommendations(
        self,
        category: Optional[str],
        project_path: Optional[str]
    ) -> Dict[str, Any]:
        based_on_project: List[HistoryRecommendation] = []
        based_on_category: List[HistoryRecommendation] = []
        references: List[Dict[str, Any]] = []

        if project_path:
            patterns = self.project_patterns(project_path)
            based_on_project = patterns["recommendations"][:3]
            references = patterns["high_scoring_examples"]

        if category and category != "unknown":
            similar = sorted(
                (
                    r for r in self.store.read_all()
                    if r.category == category and (project_path is None or r.project_path == project_path)
                ),
                key=lambda r: r.overall_score,
                reverse=True
            )[:MAX_EXAMPLES]

            if similar:
                avg = int(round(float(np.mean([r.overall_score for r in similar]))))
                label = CATEGORY_LABELS.get(category, category)
                based_on_category.append(HistoryRecommendation(
                    type=RecommendationType.PATTERN,
                    priority=Priority.LOW,
                    title=f"Your {label} prompts",
                    message=f"Prompts of this kind averaged {avg} points."
                ))
                best = similar[0]
                if best.overall_score >= CATEGORY_REFERENCE_THRESHOLD:
                    based_on_category.append(HistoryRecommendation(
                        type=RecommendationType.REFERENCE,
                        priority=Priority.LOW,
                        title="A good example of similar work",
                        message=f"See this grade {best.grade.value} prompt.",
                        example_prompt=_excerpt(best.prompt_text, 100)
                    ))

                seen = set()
                merged = []
                for example in [_example(r) for r in similar] + references:
                    if example["id"] not in seen:
                        seen.add(example["id"])
                        merged.append(example)
                references = merged[:MAX_EXAMPLES]

        return {
            "based_on_project": based_on_project,
            "based_on_category": based_on_category,
            "reference_prompts": references,
        }

    def compare(self, overall_score: int, project_path: str) -> Optional[HistoryComparison]:
        """Compare against the mean of the project's most recent records."""
        records = self._project_records(project_path)[-self.config.project_rolling_window:]
        if not records:
            return None

        rolling_avg = int(round(float(np.mean([r.overall_score for r in records]))))
        diff = overall_score - rolling_avg
        better = diff > 0

        message = None
        if better and diff >= 10:
            message = "A big improvement over your usual prompts!"
        elif better and diff >= 5:
            message = "Better than your usual prompts."
        elif not better and diff <= -10:
            message = "Lower than your usual prompts in this project."

        return HistoryComparison(better_than_average=better, score_diff=diff, improvement=message)

    def enrich(
        self,
        overall_score: int,
        project_path: Optional[str],
        category: Optional[str]
    ) -> Dict[str, Any]:
        """
        Recommendations and comparison for one analysis.

        Returns {"recommendations": [...top 5 by priority], "comparison": HistoryComparison | None}.
        """
        context_recs = self.context_recommendations(category, project_path)
        combined = context_recs["based_on_project"] + context_recs["based_on_category"]
        combined.sort(key=lambda rec: rec.priority.rank)

        return {
            "recommendations": combined[:MAX_RECOMMENDATIONS],
            "comparison": self.compare(overall_score, project_path) if project_path else None,
        }
