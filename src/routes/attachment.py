"""
Attachment Routes
Receipt metadata for claims
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from src.config.database import get_db
from src.services.auth_service import auth_service
from src.services.attachment_service import attachment_service
from src.models.user import User
from src.schemas.attachment import (
    AttachmentCreate, AttachmentOCRUpdate, AttachmentResponse, DownloadUrlResponse
)

router = APIRouter()


@router.get("/claim/{claim_id}", response_model=List[AttachmentResponse])
async def get_claim_attachments(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await attachment_service.get_by_claim(db, current_user, claim_id)


@router.post("", response_model=AttachmentResponse, status_code=201)
async def create_attachment(
    data: AttachmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Register an uploaded receipt

    Allowed: JPEG, PNG, GIF, WebP and PDF up to 10MB. The claim must
    be in DRAFT or REVISION.
    """
    return await attachment_service.create(db, current_user, data.model_dump())


@router.get("/{attachment_id}", response_model=AttachmentResponse)
async def get_attachment(
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await attachment_service.get_by_id(db, current_user, attachment_id)


@router.get("/{attachment_id}/download-url", response_model=DownloadUrlResponse)
async def get_download_url(
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await attachment_service.get_download_url(db, current_user, attachment_id)


@router.put("/{attachment_id}", response_model=AttachmentResponse)
async def update_attachment(
    attachment_id: int,
    data: AttachmentOCRUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Store OCR results"""
    return await attachment_service.update(db, current_user, attachment_id, data.model_dump(exclude_unset=True))


@router.delete("/{attachment_id}", response_model=AttachmentResponse)
async def delete_attachment(
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await attachment_service.delete(db, current_user, attachment_id)
