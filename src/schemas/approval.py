"""
Approval Schemas
Pydantic models for approval workflow
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime

from src.models.approval import ApprovalLevel, ApprovalStatus


class ApproveRequest(BaseModel):
    """Approve one level"""
    comments: Optional[str] = None
    caller_phone: Optional[str] = Field(None, description="Phone number of an external caller acting as the approver")


class RejectRequest(BaseModel):
    """Reject one level"""
    rejection_reason: str
    caller_phone: Optional[str] = None


class RevisionRequest(BaseModel):
    """Send back for revision"""
    comments: str
    caller_phone: Optional[str] = None


class AdminActionRequest(BaseModel):
    """Act on behalf of the assigned approver"""
    action: Literal["approve", "reject", "revision"]
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None


class ApprovalResponse(BaseModel):
    """Schema for approval response"""
    id: int
    approval_number: str
    entity_type: str
    travel_request_id: Optional[int] = None
    claim_id: Optional[int] = None
    approver_id: int
    level: ApprovalLevel
    status: ApprovalStatus
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    class Config:
        from_attributes = True
