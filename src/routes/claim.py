"""
Claim Routes
Expense claims against approved trips
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from src.config.database import get_db
from src.config.permissions import Permission
from src.services.auth_service import auth_service
from src.services.claim_service import claim_service
from src.models.claim import ClaimStatus, ClaimType
from src.models.user import User
from src.schemas.common import Page
from src.schemas.claim import (
    EntertainmentClaimCreate, NonEntertainmentClaimCreate, ClaimUpdate,
    MarkPaidRequest, ClaimResponse, ClaimDetail
)

router = APIRouter()


@router.get("", response_model=Page[ClaimResponse])
async def list_claims(
    status: Optional[ClaimStatus] = None,
    claim_type: Optional[ClaimType] = None,
    travel_request_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """List claims (own claims only below manager tier)"""
    return await claim_service.get_all(
        db, current_user, status=status, claim_type=claim_type,
        travel_request_id=travel_request_id, limit=limit, cursor=cursor
    )


@router.get("/statistics")
async def get_claim_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await claim_service.get_statistics(db, current_user)


@router.get("/travel-request/{travel_request_id}", response_model=List[ClaimResponse])
async def get_claims_by_travel_request(
    travel_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await claim_service.get_by_travel_request(db, current_user, travel_request_id)


@router.post("/entertainment", response_model=ClaimResponse, status_code=201)
async def create_entertainment_claim(
    data: EntertainmentClaimCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Create an entertainment claim against an approved or locked trip"""
    return await claim_service.create_entertainment(db, current_user, data.model_dump())


@router.post("/non-entertainment", response_model=ClaimResponse, status_code=201)
async def create_non_entertainment_claim(
    data: NonEntertainmentClaimCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Create a non-entertainment claim against an approved or locked trip"""
    return await claim_service.create_non_entertainment(db, current_user, data.model_dump())


@router.get("/{claim_id}", response_model=ClaimDetail)
async def get_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await claim_service.get_by_id(db, current_user, claim_id)


@router.put("/{claim_id}", response_model=ClaimResponse)
async def update_claim(
    claim_id: int,
    data: ClaimUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await claim_service.update(db, current_user, claim_id, data.model_dump(exclude_unset=True))


@router.post("/{claim_id}/submit", response_model=ClaimDetail)
async def submit_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Submit for approval

    Requires at least one attachment. Large claims get a second
    approval level from finance.
    """
    return await claim_service.submit(db, current_user, claim_id)


@router.post("/{claim_id}/mark-paid", response_model=ClaimResponse)
async def mark_claim_paid(
    claim_id: int,
    data: MarkPaidRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission(Permission.PAY_CLAIM))
):
    return await claim_service.mark_as_paid(db, current_user, claim_id, data.payment_reference)


@router.delete("/{claim_id}", response_model=ClaimResponse)
async def delete_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await claim_service.delete(db, current_user, claim_id)
