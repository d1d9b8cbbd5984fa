"""
Travel Request Routes
Trip drafting, submission, lock and close
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from src.config.database import get_db
from src.config.permissions import Permission
from src.services.auth_service import auth_service, manager_user
from src.services.travel_request_service import travel_request_service
from src.models.travel_request import TravelStatus, TravelType
from src.models.user import User
from src.schemas.common import Page
from src.schemas.travel_request import (
    TravelRequestCreate, TravelRequestUpdate, TravelRequestResponse, TravelRequestDetail
)

router = APIRouter()


@router.get("", response_model=Page[TravelRequestResponse])
async def list_travel_requests(
    status: Optional[TravelStatus] = None,
    travel_type: Optional[TravelType] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    List travel requests

    Employees see requests they own or take part in; manager tier
    and above see everything.
    """
    return await travel_request_service.get_all(
        db, current_user, status=status, travel_type=travel_type,
        start_date=start_date, end_date=end_date, limit=limit, cursor=cursor
    )


@router.get("/pending-approvals", response_model=List[TravelRequestResponse])
async def get_pending_approvals(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Requests waiting on the caller's approval"""
    return await travel_request_service.get_pending_approvals(db, current_user)


@router.get("/statistics")
async def get_statistics(
    department_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await travel_request_service.get_statistics(db, department_id=department_id)


@router.get("/approved", response_model=List[TravelRequestResponse])
async def get_approved(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Approved or locked trips the caller can claim against"""
    return await travel_request_service.get_approved(db, current_user)


@router.post("", response_model=TravelRequestDetail, status_code=201)
async def create_travel_request(
    data: TravelRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await travel_request_service.create(db, current_user, data.model_dump(exclude_none=True))


@router.get("/{request_id}", response_model=TravelRequestDetail)
async def get_travel_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await travel_request_service.get_by_id(db, current_user, request_id)


@router.put("/{request_id}", response_model=TravelRequestDetail)
async def update_travel_request(
    request_id: int,
    data: TravelRequestUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Update a DRAFT or REVISION request; participant_ids replaces the list"""
    return await travel_request_service.update(db, current_user, request_id, data.model_dump(exclude_unset=True))


@router.post("/{request_id}/submit", response_model=TravelRequestDetail)
async def submit_travel_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Submit for approval

    Builds the chain on first submission: supervisor, department
    manager, then department director (or the earliest director/admin).
    """
    return await travel_request_service.submit(db, current_user, request_id)


@router.post("/{request_id}/lock", response_model=TravelRequestDetail)
async def lock_travel_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission(Permission.LOCK_TRAVEL_REQUEST))
):
    return await travel_request_service.lock(db, current_user, request_id)


@router.post("/{request_id}/close", response_model=TravelRequestDetail)
async def close_travel_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission(Permission.CLOSE_TRAVEL_REQUEST))
):
    return await travel_request_service.close(db, current_user, request_id)


@router.delete("/{request_id}", response_model=TravelRequestResponse)
async def delete_travel_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await travel_request_service.delete(db, current_user, request_id)
