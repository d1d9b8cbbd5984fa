"""
Attachment Schemas
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime


class AttachmentCreate(BaseModel):
    """Metadata for a file already uploaded to storage"""
    claim_id: int
    original_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str
    file_size: int = Field(..., description="Size in bytes")
    filename: Optional[str] = None
    storage_url: Optional[str] = None
    storage_provider: Optional[str] = None


class AttachmentOCRUpdate(BaseModel):
    ocr_extracted_data: Optional[Dict[str, Any]] = None
    ocr_confidence: Optional[float] = Field(None, ge=0, le=1)


class AttachmentResponse(BaseModel):
    id: int
    claim_id: int
    filename: str
    original_name: str
    mime_type: str
    file_size: int
    storage_url: str
    storage_provider: str
    ocr_extracted_data: Optional[Dict[str, Any]] = None
    ocr_confidence: Optional[float] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DownloadUrlResponse(BaseModel):
    id: int
    url: str
    filename: str
    mime_type: str
    file_size: int
