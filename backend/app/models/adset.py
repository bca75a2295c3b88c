from sqlalchemy import Column, String, DateTime, Text, JSON, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.database import Base


class Adset(Base):
    """
    Adset the creative components belong to. Read-only for the combination workflow:
    it supplies the landing page URL and the targeting context used for scoring.
    targeting: {age_min, age_max, genders, locations, interests, behaviors}
    """
    __tablename__ = "adsets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    facebook_adset_id = Column(String(100), nullable=True)
    landing_page_url = Column(Text, nullable=True)
    angle = Column(Text, nullable=True)  # messaging angle from the content brief
    targeting = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    assets = relationship("Asset", back_populates="adset", cascade="all, delete-orphan")
    copies = relationship("AdCopy", back_populates="adset", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Adset(id={self.id}, name={self.name})>"
