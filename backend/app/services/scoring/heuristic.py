"""Deterministic rule-based oracle. Same inputs, same scores."""
from app.services.scoring.oracle import (
    CombinationComponents,
    ScoreOracle,
    ScoringResult,
    compose_result,
    require_components,
)
from app.services.scoring.rules import score_all


def heuristic_scores(components: CombinationComponents) -> dict:
    require_components(components)
    return score_all(
        components.asset,
        components.headline,
        components.body,
        components.description,
        components.cta_type,
        components.targeting,
    )


def score_heuristically(components: CombinationComponents) -> ScoringResult:
    return compose_result(heuristic_scores(components))


class HeuristicScoreOracle(ScoreOracle):
    name = "heuristic"

    async def score(self, components: CombinationComponents) -> ScoringResult:
        return score_heuristically(components)
