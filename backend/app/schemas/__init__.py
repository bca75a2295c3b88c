from app.schemas.combination import (
    SelectionSet,
    ScoreBreakdown,
    CombinationResponse,
    GenerateCombinationsResponse,
    BulkDeleteRequest,
    BulkDeleteResponse,
    MarkDeployedRequest,
    normalize_selection_payload,
    normalize_cta_type,
)

__all__ = [
    "SelectionSet",
    "ScoreBreakdown",
    "CombinationResponse",
    "GenerateCombinationsResponse",
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "MarkDeployedRequest",
    "normalize_selection_payload",
    "normalize_cta_type",
]
