"""
Schemas for ad combinations: selection input (with alias normalization), responses, bulk delete.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
from datetime import datetime


# Canonical field -> accepted request keys, first match wins.
SELECTION_ALIASES: Dict[str, tuple] = {
    "assets": ("assets", "selectedAssets", "assetIds", "asset_ids", "selected_assets"),
    "headlines": ("headlines", "selectedHeadlines", "headlineIds", "selected_headlines"),
    "bodies": ("bodies", "selectedBodies", "bodyIds", "selected_bodies"),
    "descriptions": ("descriptions", "selectedDescriptions", "descriptionIds", "selected_descriptions"),
    "cta_types": ("cta_types", "ctaTypes", "selectedCTAs", "selectedCtas", "ctas", "selected_ctas"),
}


def normalize_selection_payload(payload: Any) -> Any:
    """Map every accepted alias onto the canonical SelectionSet keys."""
    if not isinstance(payload, dict):
        return payload
    out = {}
    for field, aliases in SELECTION_ALIASES.items():
        for alias in aliases:
            if payload.get(alias) is not None:
                out[field] = payload[alias]
                break
    return out


def _dedupe(values: Iterable) -> list:
    seen = set()
    out = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


def normalize_cta_type(value: str) -> str:
    """'Shop now' -> 'SHOP_NOW'."""
    return "_".join((value or "").strip().upper().split())


class SelectionSet(BaseModel):
    """
    Component pools to expand into combinations. Order-irrelevant; duplicates collapse.
    descriptions and cta_types are optional (an empty cta_types defaults to LEARN_MORE).
    """
    assets: List[UUID] = Field(default_factory=list)
    headlines: List[UUID] = Field(default_factory=list)
    bodies: List[UUID] = Field(default_factory=list)
    descriptions: List[UUID] = Field(default_factory=list)
    cta_types: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _apply_aliases(cls, data: Any) -> Any:
        return normalize_selection_payload(data)

    @field_validator("assets", "headlines", "bodies", "descriptions")
    @classmethod
    def _dedupe_ids(cls, v: List[UUID]) -> List[UUID]:
        return _dedupe(v)

    @field_validator("cta_types")
    @classmethod
    def _normalize_ctas(cls, v: List[str]) -> List[str]:
        return _dedupe(c for c in (normalize_cta_type(x) for x in v) if c)


class ScoreBreakdown(BaseModel):
    """Sub-scores 0–100."""
    hook: float = 0
    alignment: float = 0
    fit: float = 0
    clarity: float = 0
    match: float = 0


class CombinationResponse(BaseModel):
    id: UUID
    adset_id: UUID
    position: int
    asset_ids: List[UUID]
    headline_id: Optional[UUID] = None
    body_id: Optional[UUID] = None
    description_id: Optional[UUID] = None
    cta_type: str
    url: Optional[str] = None
    scores: ScoreBreakdown
    overall_score: int
    predicted_ctr: float
    deployed_to_facebook: bool
    facebook_ad_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GenerateCombinationsResponse(BaseModel):
    success: bool = True
    total_combinations: int
    combinations: List[CombinationResponse]


class BulkDeleteRequest(BaseModel):
    combination_ids: List[UUID] = Field(..., alias="combinationIds")

    class Config:
        populate_by_name = True


class BulkDeleteResponse(BaseModel):
    success: bool = True
    deleted_count: int


class MarkDeployedRequest(BaseModel):
    facebook_ad_id: str = Field(..., alias="facebookAdId", min_length=1, max_length=100)

    class Config:
        populate_by_name = True
