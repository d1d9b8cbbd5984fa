"""
Bailout Routes
Sales cash advances: chief approval, director approval, disbursement
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from src.config.database import get_db
from src.services.auth_service import auth_service
from src.services.bailout_service import bailout_service
from src.models.bailout import BailoutStatus
from src.models.user import User
from src.schemas.common import Page
from src.schemas.bailout import (
    BailoutCreate, BailoutUpdate, BailoutNotes, BailoutReject, BailoutDisburse, BailoutResponse
)

router = APIRouter()


@router.get("", response_model=Page[BailoutResponse])
async def list_bailouts(
    status: Optional[BailoutStatus] = None,
    travel_request_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.get_all(
        db, current_user, status=status, travel_request_id=travel_request_id, limit=limit, cursor=cursor
    )


@router.get("/pending-approvals", response_model=List[BailoutResponse])
async def get_pending_bailouts(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Bailouts at a stage the caller can act on"""
    return await bailout_service.get_pending_approvals(db, current_user)


@router.post("", response_model=BailoutResponse, status_code=201)
async def create_bailout(
    data: BailoutCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.create(db, current_user, data.model_dump(exclude_none=True))


@router.get("/{bailout_id}", response_model=BailoutResponse)
async def get_bailout(
    bailout_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.get_by_id(db, current_user, bailout_id)


@router.put("/{bailout_id}", response_model=BailoutResponse)
async def update_bailout(
    bailout_id: int,
    data: BailoutUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.update(db, current_user, bailout_id, data.model_dump(exclude_unset=True))


@router.post("/{bailout_id}/submit", response_model=BailoutResponse)
async def submit_bailout(
    bailout_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.submit(db, current_user, bailout_id)


@router.post("/{bailout_id}/approve-chief", response_model=BailoutResponse)
async def approve_by_chief(
    bailout_id: int,
    data: BailoutNotes,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """First approval by a sales chief (or manager and above)"""
    return await bailout_service.approve_by_chief(db, current_user, bailout_id, data.notes)


@router.post("/{bailout_id}/approve-director", response_model=BailoutResponse)
async def approve_by_director(
    bailout_id: int,
    data: BailoutNotes,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.approve_by_director(db, current_user, bailout_id, data.notes)


@router.post("/{bailout_id}/reject", response_model=BailoutResponse)
async def reject_bailout(
    bailout_id: int,
    data: BailoutReject,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.reject(db, current_user, bailout_id, data.rejection_reason)


@router.post("/{bailout_id}/disburse", response_model=BailoutResponse)
async def disburse_bailout(
    bailout_id: int,
    data: BailoutDisburse,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Pay out a director-approved bailout"""
    return await bailout_service.disburse(db, current_user, bailout_id, data.disbursement_ref)


@router.delete("/{bailout_id}", response_model=BailoutResponse)
async def delete_bailout(
    bailout_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await bailout_service.delete(db, current_user, bailout_id)
