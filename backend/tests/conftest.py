"""
Shared fixtures: an in-memory SQLite database per test and small row factories.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCORE_ORACLE", "heuristic")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import Adset, Asset, AdCopy, AdCombination, empty_scores


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class Factory:
    """Creates and commits rows for tests."""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def adset(self, **kwargs) -> Adset:
        kwargs.setdefault("name", "Spring launch")
        kwargs.setdefault("landing_page_url", "https://example.com/spring")
        kwargs.setdefault("targeting", {})
        return self._save(Adset(**kwargs))

    def asset(self, adset: Adset, type: str = "image", filename: str = "creative.jpg", metadata=None) -> Asset:
        return self._save(
            Asset(
                adset_id=adset.id,
                type=type,
                filename=filename,
                url=f"https://cdn.example.com/{filename}",
                metadata_json=metadata or {},
            )
        )

    def copy(self, adset: Adset, type: str, content: str, variant_index: int = 0) -> AdCopy:
        return self._save(AdCopy(adset_id=adset.id, type=type, content=content, variant_index=variant_index))

    def combination(
        self,
        adset: Adset,
        asset: Asset,
        headline: AdCopy,
        body: AdCopy,
        description: AdCopy = None,
        cta_type: str = "LEARN_MORE",
        position: int = 0,
        deployed: bool = False,
        overall_score: int = 0,
        facebook_ad_id: str = None,
    ) -> AdCombination:
        return self._save(
            AdCombination(
                adset_id=adset.id,
                position=position,
                asset_ids=[str(asset.id)],
                headline_id=headline.id,
                body_id=body.id,
                description_id=description.id if description else None,
                cta_type=cta_type,
                url=adset.landing_page_url,
                scores=empty_scores(),
                overall_score=overall_score,
                predicted_ctr=round(overall_score / 10, 2),
                deployed_to_facebook=deployed,
                facebook_ad_id=facebook_ad_id,
            )
        )


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def components_adset(factory):
    """Adset with 2 assets, 2 headlines, 1 body, 2 descriptions."""
    adset = factory.adset(
        targeting={"age_min": 25, "age_max": 40, "interests": ["Yoga"], "locations": ["US"]},
        angle="better sleep",
    )
    return {
        "adset": adset,
        "assets": [
            factory.asset(adset, "image", "sleep-mask-closeup.jpg", {"width": 1080, "height": 1080}),
            factory.asset(adset, "video", "ugc-review.mp4", {"duration": 12, "width": 1080, "height": 1920}),
        ],
        "headlines": [
            factory.copy(adset, "headline", "Sleep better tonight"),
            factory.copy(adset, "headline", "Why you wake up tired", variant_index=1),
        ],
        "bodies": [factory.copy(adset, "body", "Our sleep mask blocks 100% of light.")],
        "descriptions": [
            factory.copy(adset, "description", "Free shipping"),
            factory.copy(adset, "description", "30-night trial", variant_index=1),
        ],
    }