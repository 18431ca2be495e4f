"""
PromptLint - Scoring Oracle
Rule-based GOLDEN rubric scorer and the heuristic fallback evaluation.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from ..models.evaluation import (
    AntiPattern,
    GoldenDimension,
    GoldenScoreVector,
    Grade,
    GuidelineEvaluation,
    Severity,
)
from ..rewriter.templates import DIMENSION_TEMPLATES


class ScoringOracle(ABC):
    """Maps prompt text to GOLDEN sub-scores, anti-patterns and a grade."""

    @abstractmethod
    def score(self, text: str) -> GuidelineEvaluation:
        """Score `text`. Must not raise for any string, including ""."""
        pass


GRADE_THRESHOLDS: List[Tuple[float, Grade]] = [
    (0.90, Grade.A),
    (0.75, Grade.B),
    (0.60, Grade.C),
    (0.40, Grade.D),
]


def grade_for(score: float) -> Grade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return Grade.F


# Weights sum to 1.0 so `overall` never decreases when a dimension rises.
DIMENSION_WEIGHTS: Dict[GoldenDimension, float] = {
    GoldenDimension.GOAL: 0.20,
    GoldenDimension.OUTPUT: 0.15,
    GoldenDimension.LIMITS: 0.15,
    GoldenDimension.DATA: 0.20,
    GoldenDimension.EVALUATION: 0.15,
    GoldenDimension.NEXT: 0.15,
}

# (pattern, points) per dimension; each dimension is capped at 1.0
DIMENSION_RULES: Dict[GoldenDimension, List[Tuple[str, float]]] = {
    GoldenDimension.GOAL: [
        (r"\b(goal|objective|purpose|so that|in order to|want|need)\b", 0.3),
        (r"\b(create|make|build|implement|generate|develop|write|fix|add|refactor|explain|review)\b", 0.3),
        (r"\b(complete|task|feature|function|component|endpoint|module|page|form|login|api)\b", 0.2),
        (r"^\s*(goal|task)\s*:", 0.2),
    ],
    GoldenDimension.OUTPUT: [
        (r"\b(format|json|yaml|markdown|table|list|bullet|structure|schema|interface|type)\b", 0.4),
        (r"\b(example|sample|template|such as|like this)\b", 0.3),
        (r"(\.(py|ts|tsx|js|jsx|java|go|rs)\b)|\b(code|class|function|component|implementation)\b", 0.3),
    ],
    GoldenDimension.LIMITS: [
        (r"\b(without|except|don't|do not|avoid|never|must not|no external)\b", 0.3),
        (r"\b(only|just|specific(ally)?|limit(ed)? to|keep)\b", 0.2),
        (r"\b(react|typescript|python|node(\.js)?|django|flask|fastapi|java|version|es\d{4})\b", 0.2),
        (r"\b(max(imum)?|min(imum)?|at most|at least|under|within|between|up to)\b|\d+\s*(lines|ms|seconds|words)", 0.3),
    ],
    GoldenDimension.DATA: [
        (r"```[\s\S]*?```|`[^`]+`", 0.25),
        (r"[/\\][\w.-]+\.[a-z]+\b|\bsrc/", 0.25),
        (r"\b(currently|situation|background|context|environment|project|system|architecture)\b", 0.25),
        (r"\b(using|stack|library|framework|database|we use|built with)\b", 0.25),
    ],
    GoldenDimension.EVALUATION: [
        (r"\b(verify|validate|check|ensure|confirm|done when)\b", 0.3),
        (r"\b(tests?|success|quality|requirements?|criteria|pass(es)?)\b", 0.35),
        (r"\b(performance|security|safe|stable|error handling|edge cases?)\b", 0.35),
    ],
    GoldenDimension.NEXT: [
        (r"\b(then|after(wards)?|next|once done|when finished|follow[- ]up)\b", 0.35),
        (r"\b(steps?|order|process|workflow|phase)\b", 0.35),
        (r"\b(also|additionally|later|future|extend)\b", 0.3),
    ],
}

_WORD_RE = re.compile(r"\S+")

ANTI_PATTERN_RULES = [
    {
        "pattern": "retry-without-context",
        "severity": Severity.HIGH,
        "regex": re.compile(r"^\s*(again|retry|try again|redo|one more time)\b.{0,20}$", re.IGNORECASE),
        "description": "Retry request without saying what went wrong",
        "fix": "Explain what was wrong with the previous answer and what should change.",
    },
    {
        "pattern": "vague-reference",
        "severity": Severity.MEDIUM,
        "regex": re.compile(r"\b(this|that|these|those)\b|\bit\b(?!\s+is)", re.IGNORECASE),
        "description": "Ambiguous pronoun used instead of a concrete target",
        "fix": 'Name the target explicitly, e.g. "the UserService class" instead of "this".',
    },
    {
        "pattern": "unstructured-context",
        "severity": Severity.MEDIUM,
        "regex": re.compile(r"[^\n]{200,}"),
        "description": "Long block of unstructured text",
        "fix": "Split the content into sections with Markdown headings or lists.",
    },
    {
        "pattern": "missing-output-format",
        "severity": Severity.LOW,
        "regex": re.compile(
            r"^(?!.*\b(format|json|table|list|markdown|bullet)\b).*\b(explain|tell|show|describe|summarize)\b",
            re.IGNORECASE | re.DOTALL
        ),
        "description": "Expected output format is not stated",
        "fix": "Say which format you want (JSON, table, list, ...).",
    },
]

TOO_SHORT = {
    "pattern": "too-short",
    "severity": Severity.HIGH,
    "description": "Prompt is too short to convey a clear objective",
    "fix": "Describe the concrete goal and the expected result.",
}

MIN_LENGTH = 15
MIN_WORDS = 4
MAX_RECOMMENDATIONS = 5


class RuleBasedOracle(ScoringOracle):
    """
    Deterministic GOLDEN scorer built from keyword and structure rules.

    `overall` is the fixed weighted mean of the six dimensions.
    """

    def __init__(self, weights: Dict[GoldenDimension, float] = None):
        self.weights = weights or DIMENSION_WEIGHTS
        self._rules = {
            dim: [(re.compile(p, re.IGNORECASE | re.MULTILINE), pts) for p, pts in rules]
            for dim, rules in DIMENSION_RULES.items()
        }

    def score(self, text: str) -> GuidelineEvaluation:
        text = text or ""
        if not text.strip():
            return GuidelineEvaluation(
                dimension_scores=GoldenScoreVector(),
                overall_score=0.0,
                grade=Grade.F,
                anti_patterns=[self._too_short(text)],
                recommendations=[TOO_SHORT["fix"]]
            )

        vector = self.score_dimensions(text)
        overall = self.overall(vector)
        anti_patterns = self.detect_anti_patterns(text)

        return GuidelineEvaluation(
            dimension_scores=vector,
            overall_score=overall,
            grade=grade_for(overall),
            anti_patterns=anti_patterns,
            recommendations=self.recommendations(vector, anti_patterns)
        )

    def score_dimensions(self, text: str) -> GoldenScoreVector:
        scores = {}
        for dim, rules in self._rules.items():
            total = sum(points for regex, points in rules if regex.search(text))
            scores[dim.value] = round(min(total, 1.0), 4)
        return GoldenScoreVector(**scores)

    def overall(self, vector: GoldenScoreVector) -> float:
        return round(sum(vector.get(dim) * weight for dim, weight in self.weights.items()), 4)

    def detect_anti_patterns(self, text: str) -> List[AntiPattern]:
        example = text if len(text) <= 50 else text[:50] + "..."
        detected = []
        stripped = text.strip()
        if len(stripped) < MIN_LENGTH or len(_WORD_RE.findall(stripped)) < MIN_WORDS:
            detected.append(self._too_short(example))

        for rule in ANTI_PATTERN_RULES:
            if rule["regex"].search(stripped):
                detected.append(AntiPattern(
                    pattern=rule["pattern"],
                    severity=rule["severity"],
                    description=rule["description"],
                    fix=rule["fix"],
                    example=example
                ))
        return detected

    def recommendations(self, vector: GoldenScoreVector, anti_patterns: List[AntiPattern]) -> List[str]:
        urgent = [f"{p.pattern}: {p.fix}" for p in anti_patterns if p.severity == Severity.HIGH]
        tips = [
            f"[{DIMENSION_TEMPLATES[dim].title}] {DIMENSION_TEMPLATES[dim].tip}"
            for dim in vector.weakest()
        ]
        return (urgent + tips)[:MAX_RECOMMENDATIONS]

    def _too_short(self, example: str) -> AntiPattern:
        return AntiPattern(
            pattern=TOO_SHORT["pattern"],
            severity=TOO_SHORT["severity"],
            description=TOO_SHORT["description"],
            fix=TOO_SHORT["fix"],
            example=example or None
        )


FALLBACK_NOTE = "Deeper analysis was unavailable; this is a heuristic estimate."


def fallback_evaluation(text: str) -> GuidelineEvaluation:
    """
    Heuristic evaluation used when the configured oracle fails.

    Starts at 50 and adds points for length, code blocks and questions.
    """
    text = text or ""
    if not text.strip():
        return GuidelineEvaluation(
            dimension_scores=GoldenScoreVector(),
            overall_score=0.0,
            grade=Grade.F,
            recommendations=[FALLBACK_NOTE]
        )

    word_count = len(_WORD_RE.findall(text))
    score = 50
    if word_count > 20:
        score += 10
    if word_count > 50:
        score += 10
    if "```" in text:
        score += 10
    if "?" in text:
        score += 5

    value = score / 100.0
    vector = GoldenScoreVector(**{dim.value: value for dim in GoldenDimension})
    return GuidelineEvaluation(
        dimension_scores=vector,
        overall_score=value,
        grade=grade_for(value),
        recommendations=[FALLBACK_NOTE]
    )
