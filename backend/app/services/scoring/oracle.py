"""
Score oracle interface: one combination in, sub-scores + overall score + predicted CTR out.

overall = 0.25*hook + 0.20*alignment + 0.20*fit + 0.15*clarity + 0.20*match, rounded half up.
predicted_ctr = clamp(overall / 10, 0, 10) with two decimals.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.errors import ScoringFailed

logger = logging.getLogger(__name__)

SCORE_WEIGHTS: Dict[str, float] = {
    "hook": 0.25,
    "alignment": 0.20,
    "fit": 0.20,
    "clarity": 0.15,
    "match": 0.20,
}


@dataclass(frozen=True)
class AssetInput:
    id: str
    type: str  # image, video
    filename: str = ""
    url: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TargetingContext:
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    genders: List[int] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)
    behaviors: List[str] = field(default_factory=list)
    angle: Optional[str] = None

    @classmethod
    def from_dict(cls, targeting: Optional[Dict[str, Any]], angle: Optional[str] = None) -> "TargetingContext":
        t = targeting or {}
        return cls(
            age_min=t.get("age_min"),
            age_max=t.get("age_max"),
            genders=list(t.get("genders") or []),
            locations=[str(x) for x in (t.get("locations") or [])],
            interests=[str(x) for x in (t.get("interests") or [])],
            behaviors=[str(x) for x in (t.get("behaviors") or [])],
            angle=angle,
        )


@dataclass(frozen=True)
class CombinationComponents:
    """Resolved components of one combination. None means the reference no longer resolves."""
    asset: Optional[AssetInput]
    headline: Optional[str]
    body: Optional[str]
    description: Optional[str]
    cta_type: str
    targeting: TargetingContext = field(default_factory=TargetingContext)


@dataclass
class ScoringResult:
    scores: Dict[str, int]
    overall_score: int
    predicted_ctr: float


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def round_half_up(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def weighted_sum(scores: Dict[str, float]) -> Decimal:
    """Exact decimal weighted sum, so 47.5 stays 47.5 instead of 47.49999999999999."""
    return sum(
        (Decimal(str(scores[name])) * Decimal(str(weight)) for name, weight in SCORE_WEIGHTS.items()),
        Decimal(0),
    )


def compose_result(scores: Dict[str, float]) -> ScoringResult:
    """Weighted composite of the five sub-scores.

    The overall score is computed from the unrounded sub-scores; the stored
    breakdown is rounded for display only.
    """
    clamped = {name: clamp(float(scores.get(name, 0))) for name in SCORE_WEIGHTS}
    breakdown = {name: round_half_up(value) for name, value in clamped.items()}
    overall = round_half_up(weighted_sum(clamped))
    overall = int(clamp(overall))
    predicted_ctr = round(clamp(overall / 10, 0, 10), 2)
    return ScoringResult(scores=breakdown, overall_score=overall, predicted_ctr=predicted_ctr)


def require_components(components: CombinationComponents) -> None:
    """Raise ScoringFailed when a required reference (asset, headline, body) is missing."""
    missing = [
        name
        for name, value in (
            ("asset", components.asset),
            ("headline", components.headline),
            ("body", components.body),
        )
        if value is None
    ]
    if missing:
        raise ScoringFailed(f"Missing component(s): {', '.join(missing)}")


class ScoreOracle(ABC):
    """Strategy interface. Implementations must raise ScoringFailed rather than crash the caller."""

    name: str = "oracle"

    @abstractmethod
    async def score(self, components: CombinationComponents) -> ScoringResult:
        ...
