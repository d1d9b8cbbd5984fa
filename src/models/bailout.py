"""
Bailout Model
Cash advances requested for a trip, approved by sales chief then director
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Text, Float
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class BailoutStatus(str, enum.Enum):
    """Bailout lifecycle"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED_CHIEF = "APPROVED_CHIEF"
    APPROVED_DIRECTOR = "APPROVED_DIRECTOR"
    REJECTED = "REJECTED"
    DISBURSED = "DISBURSED"


class BailoutCategory(str, enum.Enum):
    """What the advance pays for"""
    TRANSPORT = "TRANSPORT"
    HOTEL = "HOTEL"
    MEAL = "MEAL"
    OTHER = "OTHER"


class TransportMode(str, enum.Enum):
    FLIGHT = "FLIGHT"
    TRAIN = "TRAIN"
    BUS = "BUS"
    FERRY = "FERRY"
    CAR_RENTAL = "CAR_RENTAL"
    OTHER = "OTHER"


class Bailout(Base):
    """Bailout model"""
    __tablename__ = "bailouts"

    id = Column(Integer, primary_key=True, index=True)
    bailout_number = Column(String, unique=True, index=True, nullable=False)

    travel_request_id = Column(Integer, ForeignKey("travel_requests.id"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    category = Column(Enum(BailoutCategory), default=BailoutCategory.OTHER, nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(Enum(BailoutStatus), default=BailoutStatus.DRAFT, nullable=False, index=True)

    # Transport
    transport_mode = Column(Enum(TransportMode), nullable=True)
    carrier = Column(String, nullable=True)
    departure_from = Column(String, nullable=True)
    arrival_to = Column(String, nullable=True)
    departure_at = Column(DateTime, nullable=True)
    arrival_at = Column(DateTime, nullable=True)
    flight_number = Column(String, nullable=True)
    seat_class = Column(String, nullable=True)
    booking_ref = Column(String, nullable=True)

    # Hotel
    hotel_name = Column(String, nullable=True)
    hotel_address = Column(String, nullable=True)
    check_in = Column(DateTime, nullable=True)
    check_out = Column(DateTime, nullable=True)
    room_type = Column(String, nullable=True)

    # Meal
    meal_date = Column(DateTime, nullable=True)
    meal_location = Column(String, nullable=True)

    # Chief approval
    approved_by_chief_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    chief_approved_at = Column(DateTime, nullable=True)
    chief_notes = Column(Text, nullable=True)

    # Director approval
    approved_by_director_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    director_approved_at = Column(DateTime, nullable=True)
    director_notes = Column(Text, nullable=True)

    # Rejection
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Disbursement
    disbursed_at = Column(DateTime, nullable=True)
    disbursement_ref = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    travel_request = relationship("TravelRequest", back_populates="bailouts")
    requester = relationship("User", foreign_keys=[requester_id])
    approved_by_chief = relationship("User", foreign_keys=[approved_by_chief_id])
    approved_by_director = relationship("User", foreign_keys=[approved_by_director_id])

    def __repr__(self):
        return f"<Bailout {self.bailout_number} - {self.status.value}>"
