"""
PromptLint - History Records
The persisted analysis record and the derived (never persisted) analytics types.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, date
from enum import Enum
from typing import Dict, Any, List, Optional

from .evaluation import Grade, Issue, Severity, GoldenDimension


@dataclass(frozen=True)
class AnalysisRecord:
    """
    One analysis in the append-only history log.

    Scores are 0-100 integers. Records are never mutated once written.
    """
    id: int
    prompt_text: str
    timestamp: datetime
    overall_score: int
    grade: Grade
    golden_scores: Dict[str, int]
    issues: List[Issue] = field(default_factory=list)
    improved_prompt: Optional[str] = None
    project_path: Optional[str] = None
    intent: Optional[str] = None
    category: Optional[str] = None

    def golden(self, dimension: GoldenDimension) -> int:
        return int(self.golden_scores.get(dimension.value, 0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "prompt_text": self.prompt_text,
            "timestamp": self.timestamp.isoformat(),
            "overall_score": self.overall_score,
            "grade": self.grade.value,
            "golden_scores": dict(self.golden_scores),
            "issues": [issue.to_dict() for issue in self.issues],
            "improved_prompt": self.improved_prompt,
            "project_path": self.project_path,
            "intent": self.intent,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisRecord":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is not None:
            # The log is compared in naive local time
            timestamp = timestamp.astimezone().replace(tzinfo=None)
        return cls(
            id=int(data["id"]),
            prompt_text=data.get("prompt_text", ""),
            timestamp=timestamp,
            overall_score=int(data["overall_score"]),
            grade=Grade(data.get("grade", "F")),
            golden_scores={k: int(v) for k, v in (data.get("golden_scores") or {}).items()},
            issues=[Issue.from_dict(i) for i in data.get("issues") or []],
            improved_prompt=data.get("improved_prompt"),
            project_path=data.get("project_path"),
            intent=data.get("intent"),
            category=data.get("category"),
        )


class Trend(Enum):
    """Coarse direction of a series of issue counts."""
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


class PerformanceTrend(Enum):
    """Coarse direction of a series of scores."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class PredictionConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class TrendPoint:
    date: date
    avg_score: int
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "avg_score": self.avg_score, "count": self.count}


@dataclass(frozen=True)
class WeaknessStat:
    category: str
    frequency: int
    last_seen: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "frequency": self.frequency, "last_seen": self.last_seen.isoformat()}


@dataclass(frozen=True)
class IssuePattern:
    category: str
    severity: Severity
    count: int
    recent_count: int
    trend: Trend
    last_seen: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "severity": self.severity.value,
            "count": self.count,
            "recent_count": self.recent_count,
            "trend": self.trend.value,
            "last_seen": self.last_seen.isoformat(),
        }


@dataclass(frozen=True)
class ConsecutiveImprovementStreak:
    start_date: datetime
    end_date: datetime
    improvement_count: int  # transitions, not records
    score_increase: int
    average_gain: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "improvement_count": self.improvement_count,
            "score_increase": self.score_increase,
            "average_gain": self.average_gain,
        }


@dataclass(frozen=True)
class CategoryPerformance:
    category: str
    count: int
    average_score: int
    best_score: int
    trend: PerformanceTrend
    common_weakness: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {**asdict(self), "trend": self.trend.value}


@dataclass(frozen=True)
class PredictedScore:
    predicted_score: int
    confidence: PredictionConfidence
    trend: int  # signed per-day delta

    def to_dict(self) -> Dict[str, Any]:
        return {
            "predicted_score": self.predicted_score,
            "confidence": self.confidence.value,
            "trend": self.trend,
        }


@dataclass(frozen=True)
class WeeklyStat:
    week_start: date
    avg_score: int
    count: int
    improvement: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_start": self.week_start.isoformat(),
            "avg_score": self.avg_score,
            "count": self.count,
            "improvement": self.improvement,
        }


@dataclass(frozen=True)
class MonthlyStat:
    month: str  # YYYY-MM
    avg_score: int
    count: int
    grade_distribution: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MilestoneType(Enum):
    FIRST_A_GRADE = "first_a_grade"
    HIGHEST_SCORE = "highest_score"


@dataclass(frozen=True)
class Milestone:
    type: MilestoneType
    date: datetime
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "date": self.date.isoformat(), "value": self.value}


@dataclass(frozen=True)
class ImprovementAnalysis:
    """Whole-history summary: first week to last week, dimensions and milestones."""
    overall_improvement: int
    best_dimension: Optional[str]
    worst_dimension: Optional[str]
    streak: int  # consecutive active days
    milestones: List[Milestone] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_improvement": self.overall_improvement,
            "best_dimension": self.best_dimension,
            "worst_dimension": self.worst_dimension,
            "streak": self.streak,
            "milestones": [m.to_dict() for m in self.milestones],
        }
