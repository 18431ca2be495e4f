"""
PromptLint - Rewrite Agent
Builds rewrite requests for a generative provider and parses its drafts.
"""

import json
import re
import logging
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional

from ..models.evaluation import GoldenDimension, GuidelineEvaluation, Issue, SessionContext
from ..models.runtime import GenerativeProvider, ProviderError


logger = logging.getLogger(__name__)


@dataclass
class AIDraft:
    """One rewrite proposed by a provider, before scoring."""
    text: str
    explanation: str = ""
    improvements: List[str] = field(default_factory=list)
    provider: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RewriteAgent:
    """
    Agent that asks a provider for improved versions of a prompt.
    """

    SYSTEM_PROMPT = """You are a prompt engineering expert. Analyze the user's prompt and produce improved versions that can be used immediately.

## GOLDEN checklist
- Goal: a concrete verb and target, plus what "done" means.
- Output: the shape of the answer (code, explanation, steps) and what it must include.
- Limits: tech stack, style and scope constraints.
- Data: the context needed (project, stack, error messages, relevant code).
- Evaluation: how success is checked (build passes, tests pass, quality bar).
- Next: what happens with the result afterwards.

## Rewriting rules
1. Never use placeholders such as "[insert code]" or "[describe project]". If information is missing, leave that part out.
2. Preserve the original intent completely. Only add what is missing.
3. Answer in the same language as the original prompt. Code and technical terms may stay in English.
4. Use the session context (project name, tech stack, current task) where it fits naturally.
5. Stay concise: at most twice the length of the original.

## Output format
Respond with JSON only:
{{
  "variants": [
    {{
      "rewrittenPrompt": "full improved prompt",
      "explanation": "main improvements in 1-2 sentences",
      "improvements": ["improvement 1", "improvement 2"]
    }}
  ]
}}
Return exactly {count} distinct variants."""

    DIMENSION_LABELS = {
        GoldenDimension.GOAL: "Goal",
        GoldenDimension.OUTPUT: "Output",
        GoldenDimension.LIMITS: "Limits",
        GoldenDimension.DATA: "Data",
        GoldenDimension.EVALUATION: "Evaluation",
        GoldenDimension.NEXT: "Next",
    }

    MAX_ISSUES = 4

    def __init__(self, max_tokens: int = 1500, temperature: float = 0.7, candidate_count: int = 3):
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.candidate_count = candidate_count

    def system_prompt(self) -> str:
        return self.SYSTEM_PROMPT.format(count=self.candidate_count)

    def build_user_message(
        self,
        text: str,
        evaluation: GuidelineEvaluation,
        issues: Optional[List[Issue]] = None,
        context: Optional[SessionContext] = None
    ) -> str:
        parts = [f'Original prompt:\n"""\n{text}\n"""']

        percent = evaluation.dimension_scores.to_percent()
        score_lines = []
        for dim in GoldenDimension:
            score = percent[dim.value]
            status = "✓" if score >= 70 else "△" if score >= 40 else "✗"
            score_lines.append(f"  {status} {self.DIMENSION_LABELS[dim]}: {score}")
        parts.append("GOLDEN scores:\n" + "\n".join(score_lines))

        if issues:
            issue_lines = []
            for i, issue in enumerate(issues[:self.MAX_ISSUES], start=1):
                line = f"{i}. [{issue.severity.value}] {issue.message}"
                if issue.suggestion:
                    line += f"\n   -> {issue.suggestion}"
                issue_lines.append(line)
            parts.append("Issues found:\n" + "\n".join(issue_lines))

        if context is not None:
            context_lines = [f"- Project: {context.project_name}"]
            if context.ide_name:
                context_lines.append(f"- IDE: {context.ide_name}")
            if context.tech_stack:
                context_lines.append(f"- Tech stack: {', '.join(context.tech_stack)}")
            if context.current_task and len(context.current_task) > 5:
                context_lines.append(f"- Current task: {context.current_task[:80]}")
            if context.git_branch and context.git_branch not in ("main", "master"):
                context_lines.append(f"- Branch: {context.git_branch}")
            parts.append("Session context:\n" + "\n".join(context_lines))

        return "\n\n".join(parts)

    def request_drafts(
        self,
        provider: GenerativeProvider,
        text: str,
        evaluation: GuidelineEvaluation,
        issues: Optional[List[Issue]] = None,
        context: Optional[SessionContext] = None
    ) -> List[AIDraft]:
        """
        Ask one provider for rewrites. Blocking.

        Raises:
            ProviderError: on transport failure or when no draft is usable.
        """
        result = provider.generate(
            prompt=self.build_user_message(text, evaluation, issues, context),
            system=self.system_prompt(),
            max_tokens=self.max_tokens,
            temperature=self.temperature
        )
        drafts = self.parse_drafts(result.text, provider.name)
        if not drafts:
            raise ProviderError("Response contained no usable rewrite", provider.name)
        return drafts[:self.candidate_count]

    def parse_drafts(self, raw: str, provider: Optional[str] = None) -> List[AIDraft]:
        """
        Parse a provider response.

        Accepts {"variants": [...]}, a single {"rewrittenPrompt": ...}
        object, JSON wrapped in prose, or plain text (one draft).
        """
        raw = (raw or "").strip()
        if not raw:
            return []

        data = self._load_json(raw)
        if data is None:
            logger.warning("%s returned non-JSON output, using raw text as a single draft", provider)
            return [AIDraft(text=raw, provider=provider)]

        if isinstance(data, dict) and isinstance(data.get("variants"), list):
            entries = data["variants"]
        elif isinstance(data, list):
            entries = data
        else:
            entries = [data]

        drafts = []
        seen = set()
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            text = str(entry.get("rewrittenPrompt") or "").strip()
            if not text or text in seen:
                continue
            seen.add(text)
            improvements = entry.get("improvements") or []
            drafts.append(AIDraft(
                text=text,
                explanation=str(entry.get("explanation") or ""),
                improvements=[str(i) for i in improvements] if isinstance(improvements, list) else [],
                provider=provider
            ))
        return drafts

    @staticmethod
    def _load_json(raw: str) -> Optional[Any]:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            pass
        match = re.search(r"\{[\s\S]*\}", raw)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                return None
        return None
