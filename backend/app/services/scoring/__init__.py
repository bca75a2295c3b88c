"""
Score oracles for ad combinations: a deterministic heuristic and an LLM-backed variant.
Selected by settings.score_oracle through get_score_oracle().
"""
import logging
from typing import Any, Optional

from app.services.scoring.oracle import (
    SCORE_WEIGHTS,
    AssetInput,
    CombinationComponents,
    ScoreOracle,
    ScoringResult,
    TargetingContext,
    compose_result,
)
from app.services.scoring.heuristic import HeuristicScoreOracle
from app.services.scoring.llm import LLMScoreOracle

logger = logging.getLogger(__name__)


def get_score_oracle(settings: Any, llm_service: Optional[Any] = None) -> ScoreOracle:
    """Build the configured oracle. 'llm' without a configured LLM service degrades to heuristic."""
    if settings.score_oracle == "llm":
        if llm_service is not None and llm_service.is_configured():
            return LLMScoreOracle(llm_service, model=settings.score_oracle_model)
        logger.warning("SCORE_ORACLE=llm but no LLM API key is configured; using heuristic oracle")
    return HeuristicScoreOracle()


__all__ = [
    "SCORE_WEIGHTS",
    "AssetInput",
    "CombinationComponents",
    "ScoreOracle",
    "ScoringResult",
    "TargetingContext",
    "compose_result",
    "HeuristicScoreOracle",
    "LLMScoreOracle",
    "get_score_oracle",
]
