"""
Content Evaluator - LLM-as-judge scoring.

Sends generated content to a judge model and turns its reply into a
weighted score:

- Logic: 40%
- Syntax/Correctness: 30%
- Output Quality: 30%

When the judge's reply cannot be parsed, a heuristic fallback score is
produced instead and the raw reply is kept for manual review. Transport
errors from the client are not caught here.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from llm_scoring.exceptions import ParseError
from llm_scoring.model_client import ModelClient, extract_message_content
from llm_scoring.utils import timestamp

logger = logging.getLogger(__name__)

CRITERIA_WEIGHTS = {
    "logic": 0.4,
    "syntax": 0.3,
    "output": 0.3,
}

FALLBACK_SCORE = 50
PARSE_FAILED_MARKER = "Evaluation parsing failed"

SYSTEM_PROMPT = """You are an expert content evaluator. You analyze generated content and provide fair, objective assessments of quality. Your evaluations should be constructive and focused on helping improve content quality.

You can evaluate any type of content:
- Code in any programming language
- Text responses and explanations
- Creative writing (poems, stories)
- Mathematical formulas
- Structured data

Always respond in valid JSON format. Be critical but fair in your assessments."""

EVALUATION_PROMPT = """Please evaluate the following content that was generated for this prompt:

**Original Prompt:**
{prompt}

{type_hint}**Generated Content:**
{content}
{hints}
Evaluate the content based on three criteria:

1. **Logic (40%)**: Is the content logically correct and does it answer the prompt appropriately? Is the reasoning sound?
2. **Syntax/Correctness (30%)**: Is the content well-formed and structurally correct? (For code: valid syntax; For text: proper grammar and structure)
3. **Output Quality (30%)**: Is the content high quality, clear, and well-presented?

For each criterion, provide a score from 0-100 and brief feedback.

Respond in JSON format only:
```json
{{
  "logic_score": <0-100>,
  "syntax_score": <0-100>,
  "output_score": <0-100>,
  "logic_feedback": "<brief explanation>",
  "syntax_feedback": "<brief explanation>",
  "output_feedback": "<brief explanation>",
  "overall_score": <0-100>,
  "strengths": ["<strength 1>", "<strength 2>"],
  "weaknesses": ["<weakness 1>", "<weakness 2>"],
  "suggestions": ["<suggestion 1>", "<suggestion 2>"]
}}
```

Provide only the JSON, no additional text."""

FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
SCORE_FRAGMENT = re.compile(r'\{[^{}]*"logic_score"[^{}]*\}', re.DOTALL)


def weighted_score(score: int, weight: float) -> int:
    """`score * weight` rounded half up (75 * 0.3 -> 23)."""
    value = Decimal(score) * Decimal(str(weight))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _coerce_score(value: Any) -> int:
    """Judge scores as ints in 0-100; junk becomes 0."""
    try:
        score = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, score))


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


@dataclass
class CriterionScore:
    """Score for a single criterion."""

    score: int
    weight: float
    weighted_score: int
    feedback: str

    @classmethod
    def from_score(cls, score: int, weight: float, feedback: str) -> "CriterionScore":
        return cls(score, weight, weighted_score(score, weight), feedback)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "score": self.score,
            "weight": self.weight,
            "weighted_score": self.weighted_score,
            "feedback": self.feedback,
        }


@dataclass
class EvaluationResult:
    """Judge verdict for one piece of content."""

    model_id: str
    model_name: str
    evaluator_model: str
    prompt: str
    content: str
    logic: CriterionScore
    syntax: CriterionScore
    output: CriterionScore
    overall_score: int
    content_type: Optional[str] = None
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    raw_response: Optional[str] = None
    timestamp: str = field(default_factory=timestamp)

    @property
    def is_fallback(self) -> bool:
        return self.raw_response is not None

    def evaluation_dict(self) -> dict:
        """The scoring block persisted as the evaluation artifact."""
        return {
            "logic": self.logic.to_dict(),
            "syntax": self.syntax.to_dict(),
            "output": self.output.to_dict(),
            "overall_score": self.overall_score,
            "strengths": self.strengths,
            "weaknesses": self.weaknesses,
            "suggestions": self.suggestions,
        }

    def record_extras(self) -> dict:
        """Judge metadata stored alongside the scoring block."""
        extras = {
            "evaluator_model": self.evaluator_model,
            "content_type": self.content_type,
        }
        if self.raw_response is not None:
            extras["raw_response"] = self.raw_response
        return extras

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = {
            "model_id": self.model_id,
            "model_name": self.model_name,
            "evaluator_model": self.evaluator_model,
            "content_type": self.content_type,
            "timestamp": self.timestamp,
            "prompt": self.prompt,
            "content": self.content,
            "evaluation": self.evaluation_dict(),
        }
        if self.raw_response is not None:
            data["raw_response"] = self.raw_response
        return data


def parse_judge_reply(text: str) -> dict[str, Any]:
    """
    Extract the judge's JSON verdict.

    Tries, in order: the whole text as JSON, the first fenced code block,
    then any flat object containing "logic_score".

    Raises:
        ParseError: If none of these yield a JSON object
    """
    candidates = [text]
    fenced = FENCED_BLOCK.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    fragment = SCORE_FRAGMENT.search(text)
    if fragment:
        candidates.append(fragment.group(0))

    for candidate in candidates:
        try:
            decoded = json.loads(candidate)
        except (TypeError, ValueError):
            continue
        if isinstance(decoded, dict):
            return decoded

    raise ParseError("Judge reply did not contain a JSON object")


def basic_content_check(content: str) -> int:
    """
    Heuristic structural score (0-100) used when the judge reply is unusable.

    Penalizes unbalanced braces, parentheses, brackets and quotes, and very
    short content. Blank content scores 0.
    """
    if not content.strip():
        return 0

    score = 100
    if content.count("{") != content.count("}"):
        score -= 20
    if content.count("(") != content.count(")"):
        score -= 20
    if content.count("[") != content.count("]"):
        score -= 15
    if content.count("'") % 2 != 0 or content.count('"') % 2 != 0:
        score -= 10
    if len(content.strip()) < 10:
        score -= 10

    return max(0, score)


class ContentEvaluator:
    """
    Evaluates generated content using a judge model.

    Works for any kind of content (code, prose, formulas, poems); an
    optional content type and task-specific hints steer the judge.
    """

    def __init__(
        self,
        client: ModelClient,
        evaluator_model_id: str,
        hints: Optional[str] = None,
    ):
        """
        Initialize the evaluator.

        Args:
            client: Client used to reach the judge model
            evaluator_model_id: Judge model id
            hints: Optional task-specific guidance for the judge
        """
        self.client = client
        self.evaluator_model_id = evaluator_model_id
        self.hints = hints

    def build_evaluation_prompt(
        self, content: str, prompt: str, content_type: Optional[str] = None
    ) -> str:
        """Build the user message sent to the judge."""
        type_hint = f"The content should be: {content_type}.\n\n" if content_type else ""
        hints = ""
        if self.hints:
            hints = f"\n**Evaluator Hints (Task-Specific Guidance):**\n{self.hints}\n"
        return EVALUATION_PROMPT.format(
            prompt=prompt, type_hint=type_hint, content=content, hints=hints
        )

    def evaluate(
        self,
        content: str,
        prompt: str,
        model_id: str,
        model_name: str = "Unknown",
        content_type: Optional[str] = None,
    ) -> EvaluationResult:
        """
        Evaluate generated content.

        Args:
            content: The content to evaluate
            prompt: The prompt that produced the content
            model_id: Id of the model that produced the content
            model_name: Name of the model that produced the content
            content_type: Optional hint such as "PHP code" or "poem"

        Returns:
            EvaluationResult, possibly a fallback when the reply is unparsable

        Raises:
            ApiError: If the judge call itself fails
        """
        response = self.client.send_completion(
            self.evaluator_model_id,
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self.build_evaluation_prompt(content, prompt, content_type)},
            ],
        )
        raw = extract_message_content(response) or json.dumps(response)

        try:
            verdict = parse_judge_reply(raw)
        except ParseError:
            logger.warning("Could not parse judge reply for %s; using fallback score", model_id)
            return self._fallback(content, prompt, model_id, model_name, content_type, raw)

        return self._from_verdict(verdict, content, prompt, model_id, model_name, content_type)

    def _from_verdict(
        self,
        verdict: dict[str, Any],
        content: str,
        prompt: str,
        model_id: str,
        model_name: str,
        content_type: Optional[str],
    ) -> EvaluationResult:
        scores = {
            name: CriterionScore.from_score(
                _coerce_score(verdict.get(f"{name}_score")),
                weight,
                str(verdict.get(f"{name}_feedback") or "No feedback provided"),
            )
            for name, weight in CRITERIA_WEIGHTS.items()
        }

        # Sum of per-criterion rounded parts, not the rounded weighted mean
        overall = sum(s.weighted_score for s in scores.values())

        return EvaluationResult(
            model_id=model_id,
            model_name=model_name,
            evaluator_model=self.evaluator_model_id,
            prompt=prompt,
            content=content,
            content_type=content_type,
            logic=scores["logic"],
            syntax=scores["syntax"],
            output=scores["output"],
            overall_score=overall,
            strengths=_as_list(verdict.get("strengths")),
            weaknesses=_as_list(verdict.get("weaknesses")),
            suggestions=_as_list(verdict.get("suggestions")),
        )

    def _fallback(
        self,
        content: str,
        prompt: str,
        model_id: str,
        model_name: str,
        content_type: Optional[str],
        raw: str,
    ) -> EvaluationResult:
        syntax_score = basic_content_check(content)
        looks_valid = syntax_score >= 80
        if content_type:
            syntax_feedback = f"Basic check for {content_type}: " + (
                "appears valid" if looks_valid else "potential issues detected"
            )
        else:
            syntax_feedback = (
                "Content appears well-formed" if looks_valid
                else "Potential structural issues detected"
            )

        return EvaluationResult(
            model_id=model_id,
            model_name=model_name,
            evaluator_model=self.evaluator_model_id,
            prompt=prompt,
            content=content,
            content_type=content_type,
            logic=CriterionScore(
                FALLBACK_SCORE, CRITERIA_WEIGHTS["logic"], 20,
                "Could not parse LLM response for logic evaluation",
            ),
            syntax=CriterionScore.from_score(
                syntax_score, CRITERIA_WEIGHTS["syntax"], syntax_feedback
            ),
            output=CriterionScore(
                FALLBACK_SCORE, CRITERIA_WEIGHTS["output"], 15,
                "Could not parse LLM response for output evaluation",
            ),
            overall_score=FALLBACK_SCORE,
            weaknesses=[PARSE_FAILED_MARKER],
            suggestions=["Review the raw response for manual evaluation"],
            raw_response=raw,
        )
