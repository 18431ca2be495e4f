"""
PromptLint - Evaluation Models
GOLDEN dimensions, oracle output, issues and the caller-supplied session context.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, List, Optional


class GoldenDimension(Enum):
    """The six GOLDEN scoring axes, in checklist order."""
    GOAL = "goal"
    OUTPUT = "output"
    LIMITS = "limits"
    DATA = "data"
    EVALUATION = "evaluation"
    NEXT = "next"


class Severity(Enum):
    """Issue severity. Ordering follows presentation order (high first)."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


class Grade(Enum):
    """Letter grade assigned by the oracle."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


# Issue category recorded when a dimension scores below the weak threshold
DIMENSION_ISSUE_CATEGORIES: Dict[GoldenDimension, str] = {
    GoldenDimension.GOAL: "vague-goal",
    GoldenDimension.OUTPUT: "no-output-format",
    GoldenDimension.LIMITS: "no-constraints",
    GoldenDimension.DATA: "missing-context",
    GoldenDimension.EVALUATION: "no-success-criteria",
    GoldenDimension.NEXT: "no-next-step",
}


@dataclass(frozen=True)
class GoldenScoreVector:
    """
    Six GOLDEN sub-scores in the oracle's 0.0-1.0 range.

    `overall` is supplied by the oracle; the vector itself never derives it.
    """
    goal: float = 0.0
    output: float = 0.0
    limits: float = 0.0
    data: float = 0.0
    evaluation: float = 0.0
    next: float = 0.0

    def get(self, dimension: GoldenDimension) -> float:
        return getattr(self, dimension.value)

    def items(self) -> List[tuple]:
        return [(dim, self.get(dim)) for dim in GoldenDimension]

    def weakest(self, threshold: float = 0.5) -> List[GoldenDimension]:
        """Dimensions scoring below `threshold`, weakest first (stable on ties)."""
        weak = [(dim, score) for dim, score in self.items() if score < threshold]
        weak.sort(key=lambda pair: pair[1])
        return [dim for dim, _ in weak]

    def to_percent(self) -> Dict[str, int]:
        """0-100 integer form used for presentation and persistence."""
        return {dim.value: int(round(score * 100)) for dim, score in self.items()}

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_percent(cls, data: Dict[str, Any]) -> "GoldenScoreVector":
        return cls(**{dim.value: float(data.get(dim.value, 0)) / 100.0 for dim in GoldenDimension})


@dataclass(frozen=True)
class AntiPattern:
    """An anti-pattern detected by the oracle."""
    pattern: str
    severity: Severity
    description: str
    fix: str
    example: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {**asdict(self), "severity": self.severity.value}


@dataclass(frozen=True)
class GuidelineEvaluation:
    """Output of ScoringOracle.score()."""
    dimension_scores: GoldenScoreVector
    overall_score: float
    grade: Grade
    anti_patterns: List[AntiPattern] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension_scores": self.dimension_scores.to_dict(),
            "overall_score": self.overall_score,
            "grade": self.grade.value,
            "anti_patterns": [p.to_dict() for p in self.anti_patterns],
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class Issue:
    """A presentable problem with the prompt."""
    severity: Severity
    category: str
    message: str
    suggestion: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "category": self.category,
            "message": self.message,
            "suggestion": self.suggestion,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        return cls(
            severity=Severity(data.get("severity", "medium")),
            category=data.get("category", "unknown"),
            message=data.get("message", ""),
            suggestion=data.get("suggestion", ""),
        )


def sort_issues(issues: List[Issue], limit: Optional[int] = None) -> List[Issue]:
    """Sort high -> medium -> low (stable) and optionally truncate."""
    ordered = sorted(issues, key=lambda issue: issue.severity.rank)
    return ordered[:limit] if limit is not None else ordered


def derive_issues(
    evaluation: GuidelineEvaluation,
    weak_threshold: float = 0.5,
    high_threshold: float = 0.3,
    limit: Optional[int] = 5
) -> List[Issue]:
    """
    Build the issue list for an evaluation.

    Anti-patterns come first, then one issue per dimension below
    `weak_threshold` (escalated to high below `high_threshold`).
    """
    from ..rewriter.templates import DIMENSION_TEMPLATES

    issues = [
        Issue(
            severity=pattern.severity,
            category=pattern.pattern,
            message=pattern.description,
            suggestion=pattern.fix
        )
        for pattern in evaluation.anti_patterns
    ]

    for dim, score in evaluation.dimension_scores.items():
        if score >= weak_threshold:
            continue
        template = DIMENSION_TEMPLATES[dim]
        issues.append(Issue(
            severity=Severity.HIGH if score < high_threshold else Severity.MEDIUM,
            category=DIMENSION_ISSUE_CATEGORIES[dim],
            message=f"{template.title}: {template.problem}",
            suggestion=template.tip
        ))

    return sort_issues(issues, limit)


@dataclass(frozen=True)
class Classification:
    """Output of Classifier.classify()."""
    intent: str
    category: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ContextSource(Enum):
    """How the session context was detected."""
    ACTIVE_WINDOW = "active-window"
    APP_PATH = "app-path"


class ContextConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class SessionContext:
    """Read-only description of where the prompt was written."""
    project_path: str
    source: ContextSource = ContextSource.ACTIVE_WINDOW
    confidence: ContextConfidence = ContextConfidence.MEDIUM
    ide_name: Optional[str] = None
    tech_stack: List[str] = field(default_factory=list)
    current_task: Optional[str] = None
    git_branch: Optional[str] = None

    @property
    def project_name(self) -> str:
        name = self.project_path.rstrip("/\\").replace("\\", "/").split("/")[-1]
        return name or "project"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_path": self.project_path,
            "project_name": self.project_name,
            "source": self.source.value,
            "confidence": self.confidence.value,
            "ide_name": self.ide_name,
            "tech_stack": list(self.tech_stack),
            "current_task": self.current_task,
            "git_branch": self.git_branch,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionContext":
        return cls(
            project_path=data["project_path"],
            source=ContextSource(data.get("source", ContextSource.ACTIVE_WINDOW.value)),
            confidence=ContextConfidence(data.get("confidence", ContextConfidence.MEDIUM.value)),
            ide_name=data.get("ide_name"),
            tech_stack=list(data.get("tech_stack") or []),
            current_task=data.get("current_task"),
            git_branch=data.get("git_branch"),
        )
