"""
Approval Routes
Multi-level approval workflow for travel requests and claims
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Literal, Optional

from src.config.database import get_db
from src.config.permissions import Permission
from src.services.auth_service import auth_service
from src.services.approval_service import approval_service
from src.models.approval import ApprovalStatus
from src.models.user import User
from src.schemas.common import CountResponse, Page
from src.schemas.approval import (
    ApproveRequest, RejectRequest, RevisionRequest, AdminActionRequest, ApprovalResponse
)

router = APIRouter()

EntityType = Literal["TravelRequest", "Claim"]

leadership_user = auth_service.require_permission(Permission.ADMIN_OVERRIDE_APPROVAL)


@router.get("", response_model=Page[ApprovalResponse])
async def get_my_approvals(
    status: Optional[ApprovalStatus] = None,
    entity_type: Optional[EntityType] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Approvals assigned to the caller"""
    return await approval_service.get_my_approvals(
        db, current_user, status=status, entity_type=entity_type, limit=limit, cursor=cursor
    )


@router.get("/pending-count", response_model=CountResponse)
async def get_pending_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return {"count": approval_service.pending_count(db, current_user.id)}


@router.get("/admin/all", response_model=Page[ApprovalResponse])
async def get_all_approvals(
    status: Optional[ApprovalStatus] = None,
    entity_type: Optional[EntityType] = None,
    approver_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(leadership_user)
):
    return await approval_service.get_all_admin(
        db, status=status, entity_type=entity_type, approver_id=approver_id, limit=limit, cursor=cursor
    )


# ============================================
# BY APPROVAL NUMBER (external channels)
# ============================================

@router.get("/number/{approval_number}", response_model=ApprovalResponse)
async def get_by_approval_number(
    approval_number: str,
    caller_phone: str = Query(..., description="Phone number of the caller; must match the approver"),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await approval_service.get_by_approval_number(db, approval_number, caller_phone)


@router.post("/number/{approval_number}/approve", response_model=ApprovalResponse)
async def approve_by_number(
    approval_number: str,
    data: ApproveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await approval_service.approve(
        db, current_user, approval_number=approval_number,
        comments=data.comments, caller_phone=data.caller_phone
    )


@router.post("/number/{approval_number}/reject", response_model=ApprovalResponse)
async def reject_by_number(
    approval_number: str,
    data: RejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await approval_service.reject(
        db, current_user, data.rejection_reason,
        approval_number=approval_number, caller_phone=data.caller_phone
    )


@router.post("/number/{approval_number}/revision", response_model=ApprovalResponse)
async def request_revision_by_number(
    approval_number: str,
    data: RevisionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await approval_service.request_revision(
        db, current_user, data.comments,
        approval_number=approval_number, caller_phone=data.caller_phone
    )


# ============================================
# BY ID
# ============================================

@router.get("/{approval_id}", response_model=ApprovalResponse)
async def get_approval(
    approval_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await approval_service.get_by_id(db, current_user, approval_id)


@router.post("/{approval_id}/approve", response_model=ApprovalResponse)
async def approve(
    approval_id: int,
    data: ApproveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Approve one level

    Every lower level must already be approved. The travel request
    moves to APPROVED_Lx, or APPROVED once no level is pending.
    """
    return await approval_service.approve(
        db, current_user, approval_id=approval_id,
        comments=data.comments, caller_phone=data.caller_phone
    )


@router.post("/{approval_id}/reject", response_model=ApprovalResponse)
async def reject(
    approval_id: int,
    data: RejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Reject; the travel request or claim becomes REJECTED"""
    return await approval_service.reject(
        db, current_user, data.rejection_reason,
        approval_id=approval_id, caller_phone=data.caller_phone
    )


@router.post("/{approval_id}/revision", response_model=ApprovalResponse)
async def request_revision(
    approval_id: int,
    data: RevisionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Send back for revision; the whole chain returns to PENDING"""
    return await approval_service.request_revision(
        db, current_user, data.comments,
        approval_id=approval_id, caller_phone=data.caller_phone
    )


@router.post("/{approval_id}/admin-action", response_model=ApprovalResponse)
async def admin_action(
    approval_id: int,
    data: AdminActionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(leadership_user)
):
    """Act on behalf of the assigned approver (recorded as an override)"""
    return await approval_service.admin_act(
        db, current_user, approval_id, data.action,
        comments=data.comments, rejection_reason=data.rejection_reason
    )
