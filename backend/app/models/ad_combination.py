from sqlalchemy import (
    Column, String, DateTime, Text, Integer, Float, Boolean, ForeignKey, JSON, Uuid, Index, event, inspect,
)
from sqlalchemy.sql import func
import uuid
from app.database import Base
from app.errors import DeployedImmutable


SCORE_KEYS = ("hook", "alignment", "fit", "clarity", "match")


def empty_scores() -> dict:
    return {key: 0 for key in SCORE_KEYS}


class AdCombination(Base):
    """
    One assembled ad variant: asset + headline + body + optional description + CTA type.
    Immutable once deployed_to_facebook is true (enforced by the mapper events below).
    """
    __tablename__ = "ad_combinations"
    __table_args__ = (
        Index("ix_ad_combinations_adset_position", "adset_id", "position"),
        Index("ix_ad_combinations_overall_score", "overall_score"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    adset_id = Column(Uuid, ForeignKey('adsets.id', ondelete='CASCADE'), nullable=False)
    position = Column(Integer, nullable=False, default=0)  # generation order within the adset
    asset_ids = Column(JSON, nullable=False)  # list of asset UUID strings, non-empty
    headline_id = Column(Uuid, ForeignKey('ad_copies.id', ondelete='SET NULL'), nullable=True)
    body_id = Column(Uuid, ForeignKey('ad_copies.id', ondelete='SET NULL'), nullable=True)
    description_id = Column(Uuid, ForeignKey('ad_copies.id', ondelete='SET NULL'), nullable=True)
    cta_type = Column(String(50), nullable=False)
    url = Column(Text, nullable=True)
    scores = Column(JSON, nullable=False, default=empty_scores)
    overall_score = Column(Integer, nullable=False, default=0)
    predicted_ctr = Column(Float, nullable=False, default=0.0)
    deployed_to_facebook = Column(Boolean, nullable=False, default=False)
    facebook_ad_id = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return (
            f"<AdCombination(id={self.id}, adset_id={self.adset_id}, "
            f"overall_score={self.overall_score}, deployed={self.deployed_to_facebook})>"
        )


@event.listens_for(AdCombination, "before_update")
def _reject_update_of_deployed(mapper, connection, target):
    # Flipping deployed_to_facebook False -> True is the one allowed write.
    history = inspect(target).attrs.deployed_to_facebook.history
    was_deployed = history.deleted[0] if history.deleted else bool(target.deployed_to_facebook)
    if was_deployed:
        raise DeployedImmutable(target.id)


@event.listens_for(AdCombination, "before_delete")
def _reject_delete_of_deployed(mapper, connection, target):
    if target.deployed_to_facebook:
        raise DeployedImmutable(target.id)
