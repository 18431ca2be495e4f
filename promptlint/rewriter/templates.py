"""
PromptLint - Rewrite Templates
Per-dimension remediation table, category inference and tech-stack hints.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..models.evaluation import GoldenDimension, SessionContext


# Dict order breaks ties between equally matched categories
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "bug-fix": [r"\berror\b", r"\bbug\b", r"\bfix\b", r"\bcrash", r"\bexception\b", r"\bbroken\b", r"\bfail"],
    "testing": [r"\btests?\b", r"\bunit test", r"\bcoverage\b", r"\bpytest\b", r"\bjest\b", r"\bmock"],
    "code-review": [r"\breview\b", r"\baudit\b", r"\blook over\b", r"\bfeedback on\b"],
    "refactoring": [r"\brefactor", r"\bclean up\b", r"\bsimplif", r"\brestructur", r"\bextract\b"],
    "documentation": [r"\bdocument", r"\bdocstring", r"\breadme\b", r"\bcomments?\b", r"\bchangelog\b"],
    "explanation": [r"\bexplain\b", r"\bhow does\b", r"\bwhy\b", r"\bwhat is\b", r"\bunderstand\b"],
    "code-generation": [
        r"\bcreate\b", r"\bimplement\b", r"\bbuild\b", r"\bgenerate\b", r"\bwrite\b",
        r"\bcomponent\b", r"\bfunction\b", r"\bclass\b", r"\bendpoint\b", r"\bapi\b",
    ],
}

_CATEGORY_REGEXES = {
    category: [re.compile(p, re.IGNORECASE) for p in patterns]
    for category, patterns in CATEGORY_KEYWORDS.items()
}

CATEGORY_LABELS: Dict[str, str] = {
    "code-generation": "code generation",
    "bug-fix": "bug fix",
    "code-review": "code review",
    "refactoring": "refactoring",
    "explanation": "explanation",
    "testing": "testing",
    "documentation": "documentation",
    "general": "general",
}

OUTPUT_FORMATS: Dict[str, List[str]] = {
    "code-generation": ["complete implementation including imports", "short explanation of the main logic"],
    "bug-fix": ["root cause of the error", "the corrected code", "how to prevent it from recurring"],
    "code-review": ["each problem with its severity", "an improved code example"],
    "refactoring": ["the refactored code", "the reason for each change"],
    "explanation": ["a step-by-step explanation", "a short code example"],
    "testing": ["the test code", "which cases are covered"],
    "documentation": ["the documentation text in Markdown"],
    "general": ["a concrete, ready-to-use result"],
}

# `general` has no default constraint, criterion or follow-up.
CATEGORY_CONSTRAINTS: Dict[str, str] = {
    "code-generation": "follow the existing code style and avoid new dependencies",
    "bug-fix": "minimize side effects and keep existing behavior intact",
    "code-review": "focus on correctness and maintainability issues",
    "refactoring": "do not change observable behavior",
    "explanation": "keep it concise and avoid unnecessary jargon",
    "testing": "do not modify the code under test",
    "documentation": "document public behavior only",
}

SUCCESS_CRITERIA: Dict[str, str] = {
    "code-generation": "the code runs and the feature works as described",
    "bug-fix": "the error is gone and a reproduction test passes",
    "code-review": "every finding has been reviewed with a concrete fix",
    "refactoring": "all existing tests still pass and the code is simpler",
    "explanation": "I can apply the concept on my own",
    "testing": "the tests pass and cover the main edge cases",
    "documentation": "a new contributor can follow it without asking questions",
}

NEXT_STEPS: Dict[str, str] = {
    "code-generation": "add unit tests for the new code",
    "bug-fix": "add a regression test for this case",
    "code-review": "list the fixes in priority order",
    "refactoring": "point out any remaining code smells",
    "explanation": "suggest a small exercise to practice it",
    "testing": "report any untested paths",
    "documentation": "suggest where to link it from",
}

TECH_STACK_HINTS: Dict[str, List[str]] = {
    "TypeScript": ["keep type safety (strict mode)"],
    "React": ["use function components and hooks"],
    "Vue": ["use the Composition API"],
    "Next.js": ["stay compatible with the App Router and SSR"],
    "Node.js": ["use async/await"],
    "Python": ["follow PEP 8 with type hints"],
    "Django": ["use the Django ORM rather than raw SQL"],
    "Flask": ["keep routes thin and use blueprints"],
    "FastAPI": ["use Pydantic models for request and response bodies"],
    "Electron": ["keep main and renderer processes separate"],
    "Tailwind CSS": ["reuse the existing theme tokens"],
    "Firebase": ["respect the security rules and keep reads low"],
}

MAX_TECH_HINTS = 3

_GREETING = re.compile(r"^(hi|hello|hey|so|and|well)[\s,!]+", re.IGNORECASE)
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")


def category_matches(text: str) -> Dict[str, int]:
    """Number of matching keywords per category."""
    return {
        category: sum(1 for regex in regexes if regex.search(text or ""))
        for category, regexes in _CATEGORY_REGEXES.items()
    }


def detect_category(text: str) -> str:
    """The category with the most keyword matches, `general` when nothing matches."""
    counts = category_matches(text)
    if not any(counts.values()):
        return "general"
    return max(counts, key=lambda c: counts[c])


def tech_stack_hints(tech_stack: List[str]) -> List[str]:
    hints = []
    for tech in tech_stack:
        hints.extend(TECH_STACK_HINTS.get(tech, []))
    return hints[:MAX_TECH_HINTS]


def extract_core_request(text: str) -> str:
    """Strip greetings and filler from the front of a prompt."""
    return _GREETING.sub("", text.strip()).strip()


def extract_code(text: str) -> Optional[str]:
    match = _CODE_BLOCK.search(text)
    return match.group(0) if match else None


@dataclass(frozen=True)
class FillContext:
    """Everything a template may draw on to fill a section."""
    text: str
    category: str = "general"
    context: Optional[SessionContext] = None

    @property
    def tech_stack(self) -> List[str]:
        return list(self.context.tech_stack) if self.context else []


def _fill_goal(ctx: FillContext) -> Optional[str]:
    core = extract_core_request(ctx.text)
    if not core:
        return None
    first_line = core.splitlines()[0].rstrip(".")
    if len(first_line) > 120:
        first_line = first_line[:117].rstrip() + "..."
    return f"complete this {CATEGORY_LABELS.get(ctx.category, 'general')} task: {first_line}."


def _fill_output(ctx: FillContext) -> Optional[str]:
    formats = OUTPUT_FORMATS.get(ctx.category, OUTPUT_FORMATS["general"])
    return "; ".join(formats) + "."


def _fill_limits(ctx: FillContext) -> Optional[str]:
    hints = tech_stack_hints(ctx.tech_stack)
    base = CATEGORY_CONSTRAINTS.get(ctx.category)
    if base:
        hints = [base] + hints
    if not hints:
        return None
    return "; ".join(hints[:MAX_TECH_HINTS]) + "."


def _fill_data(ctx: FillContext) -> Optional[str]:
    context = ctx.context
    if context is None:
        return None
    parts = [f"project {context.project_name}"]
    if context.tech_stack:
        parts[0] += f" ({', '.join(context.tech_stack[:MAX_TECH_HINTS])})"
    if context.current_task:
        parts.append(f"current task: {context.current_task[:60]}")
    if context.git_branch and context.git_branch not in ("main", "master"):
        parts.append(f"branch: {context.git_branch}")
    return "; ".join(parts) + "."


def _fill_evaluation(ctx: FillContext) -> Optional[str]:
    criterion = SUCCESS_CRITERIA.get(ctx.category)
    return f"done when {criterion}." if criterion else None


def _fill_next(ctx: FillContext) -> Optional[str]:
    step = NEXT_STEPS.get(ctx.category)
    return f"afterwards, {step}." if step else None


@dataclass(frozen=True)
class DimensionTemplate:
    """Remediation template for one GOLDEN dimension."""
    dimension: GoldenDimension
    title: str
    section: str
    label: str
    problem: str
    tip: str
    placeholder: str
    fill: Callable[[FillContext], Optional[str]] = field(compare=False)
    prepend: bool = False

    def clause(self, ctx: FillContext) -> Tuple[str, bool]:
        """Return (clause text, True if a placeholder had to be used)."""
        content = self.fill(ctx)
        if content is None:
            return f"{self.label} {self.placeholder}", True
        return f"{self.label} {content[0].upper()}{content[1:]}", False


DIMENSION_TEMPLATES: Dict[GoldenDimension, DimensionTemplate] = {
    GoldenDimension.GOAL: DimensionTemplate(
        dimension=GoldenDimension.GOAL,
        title="Goal clarity",
        section="Goal",
        label="Goal:",
        problem="the purpose of the request is unclear",
        tip='State the purpose explicitly. Instead of "do X", write "do X so that Y".',
        placeholder="[state what you want to achieve]",
        fill=_fill_goal,
        prepend=True,
    ),
    GoldenDimension.OUTPUT: DimensionTemplate(
        dimension=GoldenDimension.OUTPUT,
        title="Output format",
        section="Output",
        label="Output format:",
        problem="the expected result format is not specified",
        tip='Say what the answer should look like, e.g. "as JSON", "as a Markdown table", "in 3 steps".',
        placeholder="[describe the expected output]",
        fill=_fill_output,
    ),
    GoldenDimension.LIMITS: DimensionTemplate(
        dimension=GoldenDimension.LIMITS,
        title="Constraints",
        section="Limits",
        label="Constraints:",
        problem="no constraints or boundaries are given",
        tip='Name the limits, e.g. "under 100 lines", "ES2020 only", "no external libraries".',
        placeholder="[list constraints, e.g. libraries or style to keep]",
        fill=_fill_limits,
    ),
    GoldenDimension.DATA: DimensionTemplate(
        dimension=GoldenDimension.DATA,
        title="Context",
        section="Data",
        label="Context:",
        problem="background information is missing",
        tip="Provide the background: project structure, framework in use and the relevant code.",
        placeholder="[add project, stack and relevant code]",
        fill=_fill_data,
        prepend=True,
    ),
    GoldenDimension.EVALUATION: DimensionTemplate(
        dimension=GoldenDimension.EVALUATION,
        title="Success criteria",
        section="Evaluation",
        label="Success criteria:",
        problem="there is no way to tell when the task is done",
        tip='State how success is checked, e.g. "all tests pass", "stays compatible with the current API".',
        placeholder="[state how to verify the result]",
        fill=_fill_evaluation,
    ),
    GoldenDimension.NEXT: DimensionTemplate(
        dimension=GoldenDimension.NEXT,
        title="Next step",
        section="Next",
        label="Next step:",
        problem="no follow-up is defined",
        tip='Mention the follow-up, e.g. "then write tests for it", "then update the docs".',
        placeholder="[describe what should happen afterwards]",
        fill=_fill_next,
    ),
}
