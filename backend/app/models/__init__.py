from app.models.adset import Adset
from app.models.asset import Asset
from app.models.ad_copy import AdCopy, COPY_TYPES
from app.models.ad_combination import AdCombination, SCORE_KEYS, empty_scores

__all__ = [
    "Adset",
    "Asset",
    "AdCopy",
    "COPY_TYPES",
    "AdCombination",
    "SCORE_KEYS",
    "empty_scores",
]
