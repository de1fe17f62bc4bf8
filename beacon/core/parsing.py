"""Helpers for pulling structured JSON out of free-form model output."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from beacon.core.models import FollowUpQuestion, Visualization

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the outermost ``{...}`` object embedded in ``text``, if any."""
    if not text:
        return None

    # Extract JSON from markdown code blocks if present
    if "```json" in text:
        text = text.split("```json", 1)[1].split("```", 1)[0]
    elif "```" in text:
        parts = text.split("```")
        if len(parts) >= 3:
            text = parts[1]

    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.debug("Embedded object is not valid JSON: %.200s", match.group(0))
        return None
    return parsed if isinstance(parsed, dict) else None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def _clamp_confidence(value: Any, default: float) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    return min(1.0, max(0.0, confidence))


@dataclass(slots=True)
class AnalysisPlan:
    """Structured plan an agent's completion call is asked to return."""

    explanation: str
    needs_data: bool = False
    sql: Optional[str] = None
    python_code: Optional[str] = None
    analysis_type: Optional[str] = None
    reasoning: Optional[str] = None
    confidence: float = 0.5
    suggestions: List[str] = field(default_factory=list)
    visualization: Optional[Visualization] = None
    parsed: bool = True

    @classmethod
    def fallback(cls, raw: str) -> AnalysisPlan:
        return cls(
            explanation=raw,
            reasoning="Could not parse structured response",
            confidence=0.5,
            parsed=False,
        )

    @classmethod
    def from_text(cls, raw: str) -> AnalysisPlan:
        payload = extract_json_object(raw)
        if payload is None:
            logger.warning("Failed to parse structured analysis response")
            return cls.fallback(raw)

        visualization = None
        vis = payload.get("visualization")
        if isinstance(vis, dict) and vis.get("type"):
            config = vis.get("config")
            visualization = Visualization(
                type=str(vis["type"]),
                config=config if isinstance(config, dict) else {},
            )

        sql = payload.get("sql")
        return cls(
            explanation=str(payload.get("explanation") or raw),
            needs_data=bool(payload.get("needsData", False)),
            sql=str(sql).strip() if sql else None,
            python_code=payload.get("pythonCode") or None,
            analysis_type=payload.get("analysisType"),
            reasoning=payload.get("reasoning"),
            confidence=_clamp_confidence(payload.get("confidence"), 0.8),
            suggestions=_string_list(payload.get("suggestions")),
            visualization=visualization,
        )


@dataclass(slots=True)
class ParsedAgentOutput:
    """A collaboration turn's message, insights and follow-up questions.

    ``parsed`` is False for the fallback variant, where the raw content is
    used as the message and nothing else could be recovered.
    """

    message: str
    insights: List[str] = field(default_factory=list)
    questions_for_others: List[FollowUpQuestion] = field(default_factory=list)
    parsed: bool = True

    @classmethod
    def from_text(cls, raw: str) -> ParsedAgentOutput:
        payload = extract_json_object(raw)
        if payload is None:
            logger.warning("Failed to parse agent response as JSON, using raw content")
            return cls(message=raw, parsed=False)

        requested = payload.get("questionsForOthers")
        if not isinstance(requested, list):
            requested = []

        questions: List[FollowUpQuestion] = []
        for item in requested:
            if not isinstance(item, dict):
                continue
            agent_id = item.get("agentId") or item.get("agent_id")
            question = item.get("question")
            if agent_id and question:
                questions.append(FollowUpQuestion(agent_id=str(agent_id), question=str(question)))

        return cls(
            message=str(payload.get("message") or raw),
            insights=_string_list(payload.get("insights")),
            questions_for_others=questions,
        )
