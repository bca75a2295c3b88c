"""
Audience targeting for scoring. Live Graph targeting when the adset is linked to
Facebook and a Meta client is configured, otherwise the targeting stored on the adset.
"""
import logging
from typing import Any, Dict, List, Optional

from app.models import Adset
from app.services.meta_ads_service import CachedMetaAdsService, MetaApiError
from app.services.scoring import TargetingContext

logger = logging.getLogger(__name__)


def _names(items: Any) -> List[str]:
    out = []
    for item in items or []:
        if isinstance(item, dict):
            name = item.get("name") or item.get("id")
            if name:
                out.append(str(name))
        elif item:
            out.append(str(item))
    return out


def targeting_from_graph(targeting: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Flatten a Graph API targeting spec into the stored targeting shape."""
    t = targeting or {}
    geo = t.get("geo_locations") or {}
    locations = [str(c) for c in geo.get("countries") or []]
    locations += _names(geo.get("regions"))
    locations += _names(geo.get("cities"))

    interests = _names(t.get("interests"))
    behaviors = _names(t.get("behaviors"))
    for spec in t.get("flexible_spec") or []:
        interests += _names(spec.get("interests"))
        behaviors += _names(spec.get("behaviors"))

    return {
        "age_min": t.get("age_min"),
        "age_max": t.get("age_max"),
        "genders": list(t.get("genders") or []),
        "locations": locations,
        "interests": interests,
        "behaviors": behaviors,
    }


class TargetingProvider:
    def __init__(self, meta: Optional[CachedMetaAdsService] = None):
        self.meta = meta

    async def get_targeting(self, adset: Adset) -> TargetingContext:
        stored = adset.targeting or {}
        if self.meta is None or not adset.facebook_adset_id:
            return TargetingContext.from_dict(stored, angle=adset.angle)
        try:
            details = await self.meta.get_adset_details(adset.facebook_adset_id)
        except MetaApiError as e:
            logger.warning(
                "Could not load Facebook targeting for adset %s (%s); using stored targeting",
                adset.id,
                e,
            )
            return TargetingContext.from_dict(stored, angle=adset.angle)
        live = targeting_from_graph(details.get("targeting"))
        return TargetingContext.from_dict(live, angle=adset.angle)
