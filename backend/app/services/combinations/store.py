"""
Persistence for combinations and lookups of the components they reference.
Deployed combinations are never deleted or edited through this store.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.errors import AdsetNotFound, CombinationNotFound, DeployedImmutable
from app.models import AdCombination, AdCopy, Adset, Asset
from app.services.scoring import AssetInput, CombinationComponents, ScoringResult, TargetingContext

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "overallScore": AdCombination.overall_score,
    "overall_score": AdCombination.overall_score,
    "predictedCTR": AdCombination.predicted_ctr,
    "predicted_ctr": AdCombination.predicted_ctr,
}


def _as_uuid(value) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def asset_input(asset: Asset) -> AssetInput:
    return AssetInput(
        id=str(asset.id),
        type=asset.type,
        filename=asset.filename or "",
        url=asset.url or "",
        metadata=dict(asset.metadata_json or {}),
    )


class CombinationStore:
    def __init__(self, db: Session):
        self.db = db

    # ==================== Components ====================

    def get_adset(self, adset_id: UUID) -> Adset:
        adset = self.db.query(Adset).filter(Adset.id == adset_id).first()
        if not adset:
            raise AdsetNotFound(adset_id)
        return adset

    def resolve_assets(self, adset_id: UUID, ids: Sequence[UUID]) -> List[Asset]:
        """Assets of this adset with the given ids, in the requested order. Unknown ids are dropped."""
        if not ids:
            return []
        rows = self.db.query(Asset).filter(Asset.adset_id == adset_id, Asset.id.in_(list(ids))).all()
        by_id = {r.id: r for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    def resolve_copies(self, adset_id: UUID, copy_type: str, ids: Sequence[UUID]) -> List[AdCopy]:
        """Copy items of this adset and type with the given ids, in the requested order."""
        if not ids:
            return []
        rows = (
            self.db.query(AdCopy)
            .filter(AdCopy.adset_id == adset_id, AdCopy.type == copy_type, AdCopy.id.in_(list(ids)))
            .all()
        )
        by_id = {r.id: r for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    # ==================== Combinations ====================

    def get(self, combination_id: UUID, adset_id: Optional[UUID] = None) -> AdCombination:
        query = self.db.query(AdCombination).filter(AdCombination.id == combination_id)
        if adset_id is not None:
            query = query.filter(AdCombination.adset_id == adset_id)
        combination = query.first()
        if not combination:
            raise CombinationNotFound(combination_id)
        return combination

    def list_for_adset(
        self,
        adset_id: UUID,
        sort_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[AdCombination]:
        """Generation order by default; sort_by overallScore / predictedCTR sorts descending."""
        query = self.db.query(AdCombination).filter(AdCombination.adset_id == adset_id)
        column = SORT_COLUMNS.get(sort_by or "")
        if column is not None:
            query = query.order_by(column.desc(), AdCombination.position)
        else:
            query = query.order_by(AdCombination.position, AdCombination.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    def load_with_components(
        self, adset_id: UUID, targeting: TargetingContext
    ) -> List[Tuple[AdCombination, CombinationComponents]]:
        """All combinations for the adset in generation order, each with its components resolved."""
        combinations = self.list_for_adset(adset_id)
        if not combinations:
            return []

        asset_ids = {_as_uuid(a) for c in combinations for a in (c.asset_ids or [])}
        copy_ids = {
            cid
            for c in combinations
            for cid in (c.headline_id, c.body_id, c.description_id)
            if cid is not None
        }
        assets: Dict[UUID, Asset] = {}
        if asset_ids - {None}:
            assets = {
                a.id: a
                for a in self.db.query(Asset).filter(Asset.id.in_([i for i in asset_ids if i is not None])).all()
            }
        copies: Dict[UUID, AdCopy] = {}
        if copy_ids:
            copies = {c.id: c for c in self.db.query(AdCopy).filter(AdCopy.id.in_(list(copy_ids))).all()}

        def content(copy_id) -> Optional[str]:
            copy = copies.get(copy_id) if copy_id is not None else None
            return copy.content if copy else None

        out = []
        for c in combinations:
            first_asset = assets.get(_as_uuid((c.asset_ids or [None])[0]))
            components = CombinationComponents(
                asset=asset_input(first_asset) if first_asset else None,
                headline=content(c.headline_id),
                body=content(c.body_id),
                description=content(c.description_id),
                cta_type=c.cta_type,
                targeting=targeting,
            )
            out.append((c, components))
        return out

    def delete_all_for_adset(self, adset_id: UUID) -> int:
        """Delete every non-deployed combination of the adset. Returns the number deleted."""
        deleted = (
            self.db.query(AdCombination)
            .filter(AdCombination.adset_id == adset_id, AdCombination.deployed_to_facebook.is_(False))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def next_position(self, adset_id: UUID) -> int:
        last = (
            self.db.query(AdCombination.position)
            .filter(AdCombination.adset_id == adset_id)
            .order_by(AdCombination.position.desc())
            .first()
        )
        return (last[0] + 1) if last else 0

    def insert_all(self, combinations: Iterable[AdCombination]) -> List[AdCombination]:
        rows = list(combinations)
        self.db.add_all(rows)
        self.db.commit()
        return rows

    def update_scores(self, combination: AdCombination, result: ScoringResult) -> AdCombination:
        if combination.deployed_to_facebook:
            raise DeployedImmutable(combination.id)
        combination.scores = dict(result.scores)
        combination.overall_score = result.overall_score
        combination.predicted_ctr = result.predicted_ctr
        self.db.commit()
        return combination

    def delete(self, combination_id: UUID, adset_id: Optional[UUID] = None) -> None:
        """Delete one combination; DeployedImmutable if deployed, CombinationNotFound if missing."""
        combination = self.get(combination_id, adset_id)
        self.remove(combination)

    def remove(self, combination: AdCombination) -> None:
        if combination.deployed_to_facebook:
            raise DeployedImmutable(combination.id)
        self.db.delete(combination)
        self.db.commit()

    def bulk_delete(self, combination_ids: Iterable[UUID], adset_id: Optional[UUID] = None) -> int:
        """Delete the given combinations, silently skipping deployed ones. Returns the count deleted."""
        ids = list({_as_uuid(i) for i in combination_ids} - {None})
        if not ids:
            return 0
        query = self.db.query(AdCombination).filter(
            AdCombination.id.in_(ids),
            AdCombination.deployed_to_facebook.is_(False),
        )
        if adset_id is not None:
            query = query.filter(AdCombination.adset_id == adset_id)
        deleted = query.delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def mark_deployed(self, combination_id: UUID, facebook_ad_id: str, adset_id: Optional[UUID] = None) -> AdCombination:
        combination = self.get(combination_id, adset_id)
        if combination.deployed_to_facebook:
            raise DeployedImmutable(combination.id)
        combination.deployed_to_facebook = True
        combination.facebook_ad_id = facebook_ad_id
        self.db.commit()
        logger.info("Combination %s marked deployed as Facebook ad %s", combination.id, facebook_ad_id)
        return combination
