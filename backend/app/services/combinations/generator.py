"""
Combination generator: expands a selection into the Cartesian product
assets x headlines x bodies x descriptions x CTA types and replaces the adset's
existing (non-deployed) combinations with the new set.
"""
import itertools
import logging
from typing import Iterator, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.errors import EmptySelection, GenerationIncomplete, InvalidSelection, SelectionTooLarge
from app.models import AdCombination, AdCopy, Asset, empty_scores
from app.schemas.combination import SelectionSet
from app.services.combinations.store import CombinationStore

logger = logging.getLogger(__name__)

DEFAULT_CTA_TYPE = "LEARN_MORE"
DEFAULT_MAX_COMBINATIONS = 5000

ComboTuple = Tuple[Asset, AdCopy, AdCopy, Optional[AdCopy], str]


def count_combinations(selection: SelectionSet) -> int:
    """|assets| * |headlines| * |bodies| * max(1, |descriptions|) * max(1, |cta_types|)."""
    return (
        len(selection.assets)
        * len(selection.headlines)
        * len(selection.bodies)
        * max(1, len(selection.descriptions))
        * max(1, len(selection.cta_types))
    )


def expand_selection(
    assets: Sequence[Asset],
    headlines: Sequence[AdCopy],
    bodies: Sequence[AdCopy],
    descriptions: Sequence[AdCopy],
    cta_types: Sequence[str],
    default_cta_type: str = DEFAULT_CTA_TYPE,
) -> Iterator[ComboTuple]:
    """Lazily yield every combination. Asset varies slowest, CTA fastest."""
    return itertools.product(
        assets,
        headlines,
        bodies,
        list(descriptions) or [None],
        list(cta_types) or [default_cta_type],
    )


class ComboGenerator:
    def __init__(self, db: Session, settings=None):
        self.db = db
        self.store = CombinationStore(db)
        self.max_combinations = getattr(settings, "max_combinations_per_adset", DEFAULT_MAX_COMBINATIONS)
        self.default_cta_type = getattr(settings, "default_cta_type", DEFAULT_CTA_TYPE)

    def _validate(self, adset_id: UUID, selection: SelectionSet):
        for field in ("assets", "headlines", "bodies"):
            if not getattr(selection, field):
                raise EmptySelection(field)

        assets = self.store.resolve_assets(adset_id, selection.assets)
        pools = {
            "headlines": self.store.resolve_copies(adset_id, "headline", selection.headlines),
            "bodies": self.store.resolve_copies(adset_id, "body", selection.bodies),
            "descriptions": self.store.resolve_copies(adset_id, "description", selection.descriptions),
        }
        requested = {"assets": (selection.assets, assets)}
        requested.update({k: (getattr(selection, k), v) for k, v in pools.items()})
        for field, (ids, rows) in requested.items():
            if len(rows) != len(ids):
                found = {r.id for r in rows}
                raise InvalidSelection(field, [i for i in ids if i not in found])

        total = count_combinations(selection)
        if total > self.max_combinations:
            raise SelectionTooLarge(total, self.max_combinations)
        return assets, pools["headlines"], pools["bodies"], pools["descriptions"]

    def generate(self, adset_id: UUID, selection: SelectionSet) -> List[AdCombination]:
        """
        Replace the adset's combinations with the full product of the selection.
        Nothing is touched when validation fails. Deployed combinations survive regeneration.
        """
        adset = self.store.get_adset(adset_id)
        assets, headlines, bodies, descriptions = self._validate(adset_id, selection)

        removed = self.store.delete_all_for_adset(adset_id)
        start = self.store.next_position(adset_id)

        try:
            rows = [
                AdCombination(
                    adset_id=adset_id,
                    position=start + i,
                    asset_ids=[str(asset.id)],
                    headline_id=headline.id,
                    body_id=body.id,
                    description_id=description.id if description is not None else None,
                    cta_type=cta_type,
                    url=adset.landing_page_url,
                    scores=empty_scores(),
                    overall_score=0,
                    predicted_ctr=0.0,
                    deployed_to_facebook=False,
                )
                for i, (asset, headline, body, description, cta_type) in enumerate(
                    expand_selection(assets, headlines, bodies, descriptions, selection.cta_types, self.default_cta_type)
                )
            ]
            self.store.insert_all(rows)
        except Exception as e:
            self.db.rollback()
            logger.exception("Inserting combinations for adset %s failed after deleting prior set", adset_id)
            raise GenerationIncomplete(adset_id, e) from e

        logger.info(
            "Generated %d combinations for adset %s (replaced %d)", len(rows), adset_id, removed
        )
        return rows
