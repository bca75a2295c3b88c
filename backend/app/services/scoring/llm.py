"""
LLM-backed score oracle.
The model rates hook, alignment and match; fit and clarity stay rule-based.
Any LLM error or unparseable reply falls back to the heuristic scores for that
combination (never random values).
"""
import json
import logging
from typing import Any, Dict, Optional

from app.services.scoring.heuristic import heuristic_scores
from app.services.scoring.oracle import (
    CombinationComponents,
    ScoreOracle,
    ScoringResult,
    compose_result,
    require_components,
)
from app.services.scoring.rules import cta_label

logger = logging.getLogger(__name__)

LLM_SCORED_KEYS = ("hook", "alignment", "match")

SCORING_SYSTEM_PROMPT = """You are a performance-marketing creative reviewer. You rate one Facebook/Instagram ad variant before launch.

Given the creative (asset type and description), the copy (headline, body, description), the call-to-action button and the audience targeting, output a single JSON object with no markdown or explanation outside the JSON:
{
  "hook": 0-100,        // how likely the visual is to stop someone scrolling
  "alignment": 0-100,   // how consistent the copy's theme, sentiment and promise are with the visual
  "match": 0-100,       // how well the message fits the audience's problem-awareness stage
  "rationale": "one short sentence"
}"""

DEFAULT_MODEL = "gpt-4o-mini"


def build_user_message(components: CombinationComponents) -> str:
    asset = components.asset
    meta = asset.metadata or {}
    t = components.targeting
    payload = {
        "asset": {
            "type": asset.type,
            "filename": asset.filename,
            "description": meta.get("description"),
            "tags": meta.get("tags") or [],
            "duration_seconds": meta.get("duration"),
            "width": meta.get("width"),
            "height": meta.get("height"),
        },
        "headline": components.headline,
        "body": (components.body or "")[:3000],
        "description": components.description,
        "cta": cta_label(components.cta_type),
        "targeting": {
            "age_min": t.age_min,
            "age_max": t.age_max,
            "genders": t.genders,
            "locations": t.locations,
            "interests": t.interests,
            "behaviors": t.behaviors,
        },
        "angle": t.angle,
    }
    return json.dumps(payload, ensure_ascii=False)


def parse_llm_response(content: str) -> Optional[Dict[str, Any]]:
    """Parse the model reply into {hook, alignment, match} clamped to 0–100; None when unusable."""
    if not (content or "").strip():
        return None
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    try:
        out = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Score oracle LLM response JSON parse failed: %s", e)
        return None
    if not isinstance(out, dict):
        return None

    parsed = {}
    for key in LLM_SCORED_KEYS:
        value = out.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        parsed[key] = max(0.0, min(100.0, float(value)))
    if not parsed:
        return None
    parsed["rationale"] = out.get("rationale") if isinstance(out.get("rationale"), str) else None
    return parsed


class LLMScoreOracle(ScoreOracle):
    name = "llm"

    def __init__(self, llm_service: Any, model: str = DEFAULT_MODEL):
        self.llm_service = llm_service
        self.model = model

    async def _ask(self, components: CombinationComponents) -> Optional[Dict[str, Any]]:
        try:
            result = await self.llm_service.execute_prompt(
                system_message=SCORING_SYSTEM_PROMPT,
                user_message=build_user_message(components),
                model=self.model,
            )
        except Exception as e:
            logger.warning("Score oracle LLM call failed (%s); using heuristic scores", e)
            return None
        parsed = parse_llm_response((result or {}).get("content") or "")
        if parsed is None:
            logger.warning("Score oracle LLM reply unusable; using heuristic scores")
        return parsed

    async def score(self, components: CombinationComponents) -> ScoringResult:
        require_components(components)
        scores = heuristic_scores(components)
        llm_scores = await self._ask(components)
        if llm_scores:
            for key in LLM_SCORED_KEYS:
                if key in llm_scores:
                    scores[key] = llm_scores[key]
        return compose_result(scores)
