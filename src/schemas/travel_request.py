"""
Travel Request Schemas
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from src.models.travel_request import TravelStatus, TravelType
from src.schemas.approval import ApprovalResponse
from src.schemas.bailout import BailoutItem


class TravelRequestCreate(BaseModel):
    """Schema for a new travel request"""
    purpose: str
    destination: str = Field(..., min_length=1, max_length=200)
    travel_type: TravelType
    start_date: datetime
    end_date: datetime
    project_id: Optional[int] = None
    participant_ids: Optional[List[int]] = None
    bailouts: Optional[List[BailoutItem]] = None


class TravelRequestUpdate(BaseModel):
    purpose: Optional[str] = None
    destination: Optional[str] = Field(None, min_length=1, max_length=200)
    travel_type: Optional[TravelType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    project_id: Optional[int] = None
    participant_ids: Optional[List[int]] = None


class ParticipantResponse(BaseModel):
    id: int
    user_id: int
    role: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class TravelRequestResponse(BaseModel):
    """Schema for travel request response"""
    id: int
    request_number: str
    requester_id: int
    purpose: str
    destination: str
    travel_type: TravelType
    start_date: datetime
    end_date: datetime
    project_id: Optional[int] = None
    status: TravelStatus
    total_reimbursed: float
    created_at: datetime
    submitted_at: Optional[datetime] = None
    locked_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    participants: List[ParticipantResponse] = []

    class Config:
        from_attributes = True


class TravelRequestDetail(TravelRequestResponse):
    """Travel request with its approval chain"""
    approvals: List[ApprovalResponse] = []
