from sqlalchemy import Column, String, DateTime, Text, Integer, Boolean, ForeignKey, Uuid, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.database import Base


COPY_TYPES = ("headline", "body", "description", "cta", "hook")


class AdCopy(Base):
    """One piece of ad copy. Type: headline, body, description, cta, hook."""
    __tablename__ = "ad_copies"
    __table_args__ = (
        Index("ix_ad_copies_adset_type_variant", "adset_id", "type", "variant_index"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    adset_id = Column(Uuid, ForeignKey('adsets.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    variant_index = Column(Integer, nullable=False, default=0)
    generated_by_ai = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    adset = relationship("Adset", back_populates="copies")

    def __repr__(self):
        return f"<AdCopy(id={self.id}, type={self.type}, variant_index={self.variant_index})>"
