"""
Audit Log Routes
Read access to the append-only audit trail
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import datetime

from src.config.database import get_db
from src.config.permissions import Permission
from src.services.auth_service import auth_service, manager_user, admin_user
from src.services.audit_service import audit_service
from src.models.audit_log import AuditAction
from src.models.user import User
from src.schemas.approval import ApprovalResponse
from src.schemas.audit_log import AuditLogResponse
from src.schemas.claim import ClaimResponse
from src.schemas.common import Page
from src.schemas.travel_request import TravelRequestResponse

router = APIRouter()


@router.get("", response_model=Page[AuditLogResponse])
async def list_audit_logs(
    user_id: Optional[int] = None,
    action: Optional[AuditAction] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await audit_service.get_all(
        db, limit=limit, cursor=cursor, user_id=user_id, action=action,
        entity_type=entity_type, entity_id=entity_id, start_date=start_date, end_date=end_date
    )


@router.get("/me", response_model=Page[AuditLogResponse])
async def get_my_actions(
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await audit_service.get_my_actions(db, current_user, limit=limit, cursor=cursor)


@router.get("/recent", response_model=List[AuditLogResponse])
async def get_recent_activity(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await audit_service.get_recent_activity(db, limit=limit)


@router.get("/statistics")
async def get_audit_statistics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    """Counts by action and entity type, plus the ten most active users"""
    return await audit_service.get_statistics(db, start_date=start_date, end_date=end_date)


@router.get("/search", response_model=List[AuditLogResponse])
async def search_audit_logs(
    q: str = Query(..., min_length=1, description="Matches entity type, entity id or action"),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_user)
):
    return await audit_service.search(db, q, limit=limit)


@router.get("/export", response_model=List[Dict[str, Any]])
async def export_audit_logs(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    entity_type: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_user)
):
    return await audit_service.export(db, start_date=start_date, end_date=end_date, entity_type=entity_type)


@router.get("/entity/{entity_type}/{entity_id}", response_model=List[AuditLogResponse])
async def get_entity_history(
    entity_type: str,
    entity_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission(Permission.VIEW_ENTITY_AUDIT))
):
    return await audit_service.get_by_entity(db, entity_type, entity_id)


@router.get("/travel-request/{travel_request_id}")
async def get_travel_request_trail(
    travel_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Audit trail of a trip with its approvals, claims and bailouts"""
    trail = await audit_service.get_travel_request_trail(db, current_user, travel_request_id)
    return {
        "travel_request": TravelRequestResponse.model_validate(trail["travel_request"]),
        "approvals": [ApprovalResponse.model_validate(a) for a in trail["approvals"]],
        "logs": [AuditLogResponse.model_validate(log) for log in trail["logs"]]
    }


@router.get("/claim/{claim_id}")
async def get_claim_trail(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    trail = await audit_service.get_claim_trail(db, current_user, claim_id)
    return {
        "claim": ClaimResponse.model_validate(trail["claim"]),
        "approvals": [ApprovalResponse.model_validate(a) for a in trail["approvals"]],
        "logs": [AuditLogResponse.model_validate(log) for log in trail["logs"]]
    }


@router.get("/{log_id}", response_model=AuditLogResponse)
async def get_audit_log(
    log_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await audit_service.get_by_id(db, current_user, log_id)
