from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from app.database import Base


class Asset(Base):
    __tablename__ = "assets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    adset_id = Column(Uuid, ForeignKey('adsets.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # image, video
    filename = Column(String(255), nullable=False)
    url = Column(Text, nullable=False)
    # width, height, duration, mime_type, description, tags, facebook_image_hash
    metadata_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    adset = relationship("Adset", back_populates="assets")

    def __repr__(self):
        return f"<Asset(id={self.id}, type={self.type}, filename={self.filename})>"
