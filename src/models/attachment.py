"""
Attachment Model
Receipt metadata for claims (file bytes live in external storage)
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base


class Attachment(Base):
    """Attachment model"""
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)

    filename = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    storage_url = Column(String, nullable=False)
    storage_provider = Column(String, default="local", nullable=False)

    # OCR
    ocr_extracted_data = Column(JSON, nullable=True)
    ocr_confidence = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    claim = relationship("Claim", back_populates="attachments")

    def __repr__(self):
        return f"<Attachment {self.original_name} ({self.mime_type})>"
