"""
Claim Schemas
Entertainment and non-entertainment expense claims
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from src.models.claim import ClaimStatus, ClaimType, EntertainmentType, NonEntertainmentCategory
from src.schemas.approval import ApprovalResponse


class ClaimBase(BaseModel):
    travel_request_id: int
    amount: float
    description: str
    notes: Optional[str] = None
    coa_id: Optional[int] = None


class EntertainmentClaimCreate(ClaimBase):
    """Entertainment claim (meals, gifts, hospitality)"""
    entertainment_type: EntertainmentType
    entertainment_date: datetime
    entertainment_location: Optional[str] = None
    entertainment_address: Optional[str] = None
    guest_name: str = Field(..., min_length=1)
    guest_company: Optional[str] = None
    guest_position: Optional[str] = None
    is_government_official: bool = False


class NonEntertainmentClaimCreate(ClaimBase):
    """Operational claim (transport, phone, accommodation, ...)"""
    expense_category: NonEntertainmentCategory
    expense_date: datetime
    expense_destination: Optional[str] = None
    customer_name: Optional[str] = None


class ClaimUpdate(BaseModel):
    amount: Optional[float] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    coa_id: Optional[int] = None

    entertainment_type: Optional[EntertainmentType] = None
    entertainment_date: Optional[datetime] = None
    entertainment_location: Optional[str] = None
    entertainment_address: Optional[str] = None
    guest_name: Optional[str] = None
    guest_company: Optional[str] = None
    guest_position: Optional[str] = None
    is_government_official: Optional[bool] = None

    expense_category: Optional[NonEntertainmentCategory] = None
    expense_date: Optional[datetime] = None
    expense_destination: Optional[str] = None
    customer_name: Optional[str] = None


class MarkPaidRequest(BaseModel):
    payment_reference: Optional[str] = None


class ClaimResponse(BaseModel):
    """Schema for claim response"""
    id: int
    claim_number: str
    travel_request_id: int
    submitter_id: int
    claim_type: ClaimType
    status: ClaimStatus
    amount: float
    description: str
    notes: Optional[str] = None
    coa_id: Optional[int] = None

    entertainment_type: Optional[EntertainmentType] = None
    entertainment_date: Optional[datetime] = None
    entertainment_location: Optional[str] = None
    entertainment_address: Optional[str] = None
    guest_name: Optional[str] = None
    guest_company: Optional[str] = None
    guest_position: Optional[str] = None
    is_government_official: bool = False

    expense_category: Optional[NonEntertainmentCategory] = None
    expense_date: Optional[datetime] = None
    expense_destination: Optional[str] = None
    customer_name: Optional[str] = None

    is_paid: bool
    paid_at: Optional[datetime] = None
    paid_by_id: Optional[int] = None
    payment_reference: Optional[str] = None

    created_at: datetime
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClaimDetail(ClaimResponse):
    approvals: List[ApprovalResponse] = []
