import asyncio
import json
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

import openai
from openai import AsyncOpenAI

from ..config import Settings

logger = logging.getLogger(__name__)

MAX_WRITEUP_CHARS = 8_000
MAX_SCORE = 100.0

SYSTEM_PROMPT = (
    "You are an expert hackathon judge. You score project submissions fairly and objectively "
    "against a rubric, cross-checking the writeup against the collected evidence. "
    "Return JSON ONLY."
)


@dataclass(frozen=True)
class RubricDimension:
    max_points: float
    description: str = ""


DEFAULT_RUBRIC: dict[str, RubricDimension] = {
    "problem_fit": RubricDimension(
        25,
        "How well the solution addresses the stated challenge; whether the problem is clearly "
        "understood and the solution relevant and appropriate.",
    ),
    "tech_depth": RubricDimension(
        35,
        "Code quality, architecture, appropriate technology choices and implementation quality. "
        "Judge the REAL implementation from the repository evidence, not the claims.",
    ),
    "ux_flow": RubricDimension(
        25,
        "User experience, demo quality, ease of use, presentation and documentation clarity.",
    ),
    "impact": RubricDimension(
        15,
        "Potential real-world impact, scalability and clarity of the value proposition.",
    ),
}


class ScoringErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"


class ScoringError(Exception):
    def __init__(self, kind: ScoringErrorKind, detail: str) -> None:
        super().__init__(f"{kind.value}: {detail}")
        self.kind = kind
        self.detail = detail


@dataclass
class SubmissionContent:
    repo_url: Optional[str] = None
    deck_url: Optional[str] = None
    demo_url: Optional[str] = None
    writeup_md: Optional[str] = None


@dataclass
class ScoreResult:
    score: float
    subscores: dict[str, float]
    rationale: str
    detailed_analysis: Any = None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def resolve_rubric(config: Optional[Mapping[str, Any]]) -> dict[str, RubricDimension]:
    """Accepts ``{name: {"max_points": n, "description": s}}`` or ``{name: n}``.

    Entries without a positive point value are skipped; an empty result falls
    back to the default rubric.
    """
    if not config:
        return dict(DEFAULT_RUBRIC)

    rubric: dict[str, RubricDimension] = {}
    for name, entry in config.items():
        if isinstance(entry, Mapping):
            points = _to_number(entry.get("max_points", entry.get("weight")))
            description = str(entry.get("description") or "")
        else:
            points = _to_number(entry)
            description = ""
        if points is None or points <= 0:
            logger.warning("Ignoring rubric dimension %r with invalid points %r", name, entry)
            continue
        rubric[str(name)] = RubricDimension(points, description)
    return rubric or dict(DEFAULT_RUBRIC)


def _truncate_writeup(writeup: Optional[str]) -> str:
    text = (writeup or "").strip() or "No writeup provided"
    if len(text) > MAX_WRITEUP_CHARS:
        return text[:MAX_WRITEUP_CHARS] + "\n\n[Truncated for length...]"
    return text


def build_prompt(content: SubmissionContent, rubric: Mapping[str, RubricDimension], evidence: str) -> str:
    total_points = sum(dimension.max_points for dimension in rubric.values())
    rubric_lines = [
        f"{index}. {name} (0-{dimension.max_points:g} points): {dimension.description or 'No description'}"
        for index, (name, dimension) in enumerate(rubric.items(), start=1)
    ]
    subscore_schema = ", ".join(f'"{name}": <number 0-{dim.max_points:g}>' for name, dim in rubric.items())

    sections = [
        "Evaluate this hackathon submission using ALL available sources: the project writeup, "
        "the repository evidence, the pitch deck evidence and the demo evidence. "
        "Cross-verify writeup claims against the actual implementation.",
        "",
        f"RUBRIC (Total: {total_points:g} points):",
        *rubric_lines,
        "",
        "SUBMISSION DETAILS:",
        f"Repository: {content.repo_url}" if content.repo_url else "No repository provided",
        f"Pitch Deck: {content.deck_url}" if content.deck_url else "No pitch deck provided",
        f"Demo: {content.demo_url}" if content.demo_url else "No demo provided",
        "",
        "COLLECTED EVIDENCE:",
        evidence.strip() or "No evidence could be collected.",
        "",
        "PROJECT WRITEUP:",
        _truncate_writeup(content.writeup_md),
        "",
        "EVALUATION INSTRUCTIONS:",
        "- Base technical scores on the actual code, dependencies and documentation, not on claims.",
        "- A missing repository is a major penalty; a missing pitch deck or demo is a minor one.",
        "- Flag discrepancies between the writeup and the evidence explicitly.",
        "- Cite specific evidence (README sections, dependencies, demo behaviour).",
        "- Do not penalize small projects that are honest about their scope.",
        "",
        "Return ONLY a JSON object with this exact structure (no markdown, no code fences):",
        "{",
        f'  "score": <number 0-100, overall score = sum of subscores scaled to 100 (rubric total is {total_points:g})>,',
        f"  \"subscores\": {{{subscore_schema}}},",
        '  "rationale": "2-3 paragraph evaluation with specific evidence",',
        '  "detailed_analysis": {',
        '    "strengths": ["..."],',
        '    "weaknesses": ["..."],',
        '    "code_quality_notes": "...",',
        '    "tech_stack_verification": "...",',
        '    "documentation_quality": "...",',
        '    "recommendation": "STRONG_ACCEPT | ACCEPT | BORDERLINE | REJECT with brief justification"',
        "  }",
        "}",
    ]
    return "\n".join(sections)


def _extract_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        pass
    # models sometimes wrap the object in prose or code fences
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        raise ScoringError(ScoringErrorKind.MALFORMED, "No JSON object found in LLM response")
    try:
        return json.loads(match.group(0))
    except ValueError as exc:
        raise ScoringError(ScoringErrorKind.MALFORMED, f"Could not parse JSON from LLM response: {exc}") from exc


def parse_score_response(text: str, rubric: Mapping[str, RubricDimension]) -> ScoreResult:
    data = _extract_json(text)
    if not isinstance(data, dict):
        raise ScoringError(ScoringErrorKind.MALFORMED, f"Expected a JSON object, got {type(data).__name__}")

    raw_subscores = data.get("subscores")
    if raw_subscores is None:
        raw_subscores = data.get("rubric_scores")
    if raw_subscores is None:
        # flat layout: dimensions as top-level keys
        raw_subscores = {name: data[name] for name in rubric if name in data}
    if not isinstance(raw_subscores, dict):
        raise ScoringError(ScoringErrorKind.MALFORMED, "subscores must be a JSON object")

    raw_score = _to_number(data.get("score", data.get("overall_score")))
    parsed_subscores = {name: _to_number(raw_subscores.get(name)) for name in rubric}
    if raw_score is None and all(value is None for value in parsed_subscores.values()):
        raise ScoringError(ScoringErrorKind.MALFORMED, "LLM response contains no numeric scores")

    subscores = {
        name: round(_clamp(value or 0.0, 0.0, rubric[name].max_points), 2)
        for name, value in parsed_subscores.items()
    }
    if raw_score is None:
        total_points = sum(dimension.max_points for dimension in rubric.values())
        raw_score = sum(subscores.values()) / total_points * MAX_SCORE
    score = round(_clamp(raw_score, 0.0, MAX_SCORE), 1)

    rationale = str(data.get("rationale") or "").strip() or "LLM evaluation completed"
    return ScoreResult(
        score=score,
        subscores=subscores,
        rationale=rationale,
        detailed_analysis=data.get("detailed_analysis"),
    )


class ScoringClient:
    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        *,
        model: str,
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
        timeout: float = 60.0,
    ) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringClient":
        client: Optional[AsyncOpenAI] = None
        if settings.llm_api_key:
            client = AsyncOpenAI(
                api_key=settings.llm_api_key,
                base_url=settings.llm_base_url,
                timeout=settings.llm_timeout_seconds,
                max_retries=settings.llm_max_retries,
            )
        else:
            logger.warning("LLM_API_KEY is not configured; AI scoring is unavailable.")
        return cls(
            client,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_output_tokens=settings.llm_max_output_tokens,
            # total budget across the SDK's own retries
            timeout=settings.llm_timeout_seconds * (settings.llm_max_retries + 1),
        )

    async def score(
        self,
        content: SubmissionContent,
        rubric: Optional[Mapping[str, Any]] = None,
        evidence: str = "",
    ) -> ScoreResult:
        if self.client is None:
            raise ScoringError(ScoringErrorKind.UNAVAILABLE, "LLM API key not configured")

        resolved = resolve_rubric(rubric)
        prompt = build_prompt(content, resolved, evidence)
        text = await self._complete(prompt)
        result = parse_score_response(text, resolved)
        logger.info("LLM returned score %s", result.score)
        return result

    async def check_connection(self) -> None:
        """Round-trips a minimal completion; raises ScoringError when the LLM is unusable."""
        if self.client is None:
            raise ScoringError(ScoringErrorKind.UNAVAILABLE, "LLM API key not configured")
        try:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": "Reply with the single word OK."}],
                    max_tokens=5,
                ),
                self.timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise ScoringError(ScoringErrorKind.TIMEOUT, f"LLM request exceeded {self.timeout:g}s") from exc
        except openai.APIError as exc:
            raise ScoringError(ScoringErrorKind.UNAVAILABLE, f"LLM request failed: {exc}") from exc
        if not completion.choices:
            raise ScoringError(ScoringErrorKind.MALFORMED, "LLM returned no choices")

    async def _complete(self, prompt: str) -> str:
        try:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self.temperature,
                    max_tokens=self.max_output_tokens,
                    response_format={"type": "json_object"},
                ),
                self.timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise ScoringError(ScoringErrorKind.TIMEOUT, f"LLM request exceeded {self.timeout:g}s") from exc
        except openai.APIError as exc:
            raise ScoringError(ScoringErrorKind.UNAVAILABLE, f"LLM request failed: {exc}") from exc

        if not completion.choices:
            raise ScoringError(ScoringErrorKind.MALFORMED, "LLM returned no choices")
        choice = completion.choices[0]
        if choice.finish_reason == "length":
            raise ScoringError(ScoringErrorKind.MALFORMED, "LLM response truncated at the token limit")
        text = (choice.message.content or "").strip() if choice.message else ""
        if not text:
            raise ScoringError(ScoringErrorKind.MALFORMED, "LLM returned an empty response")
        return text
