"""
Bailout Schemas
Cash advances for sales trips
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from src.models.bailout import BailoutCategory, BailoutStatus, TransportMode


class BailoutFields(BaseModel):
    """Category-specific details shared by create and update"""
    # Transport
    transport_mode: Optional[TransportMode] = None
    carrier: Optional[str] = None
    departure_from: Optional[str] = None
    arrival_to: Optional[str] = None
    departure_at: Optional[datetime] = None
    arrival_at: Optional[datetime] = None
    flight_number: Optional[str] = None
    seat_class: Optional[str] = None
    booking_ref: Optional[str] = None

    # Hotel
    hotel_name: Optional[str] = None
    hotel_address: Optional[str] = None
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    room_type: Optional[str] = None

    # Meal
    meal_date: Optional[datetime] = None
    meal_location: Optional[str] = None


class BailoutItem(BailoutFields):
    """Bailout nested inside a new travel request"""
    category: BailoutCategory = BailoutCategory.OTHER
    description: str
    amount: float


class BailoutCreate(BailoutItem):
    travel_request_id: int


class BailoutUpdate(BailoutFields):
    category: Optional[BailoutCategory] = None
    description: Optional[str] = None
    amount: Optional[float] = None


class BailoutNotes(BaseModel):
    notes: Optional[str] = None


class BailoutReject(BaseModel):
    rejection_reason: str


class BailoutDisburse(BaseModel):
    disbursement_ref: Optional[str] = None


class BailoutResponse(BailoutFields):
    id: int
    bailout_number: str
    travel_request_id: int
    requester_id: int
    category: BailoutCategory
    description: str
    amount: float
    status: BailoutStatus

    approved_by_chief_id: Optional[int] = None
    chief_approved_at: Optional[datetime] = None
    chief_notes: Optional[str] = None
    approved_by_director_id: Optional[int] = None
    director_approved_at: Optional[datetime] = None
    director_notes: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    disbursed_at: Optional[datetime] = None
    disbursement_ref: Optional[str] = None

    created_at: datetime
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
