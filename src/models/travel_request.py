"""
Travel Request Model
Business trips and their participants
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Text, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class TravelType(str, enum.Enum):
    """Trip purpose category"""
    SALES = "SALES"
    OPERATIONAL = "OPERATIONAL"
    MEETING = "MEETING"
    TRAINING = "TRAINING"


class TravelStatus(str, enum.Enum):
    """Travel request lifecycle"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED_L1 = "APPROVED_L1"
    APPROVED_L2 = "APPROVED_L2"
    APPROVED_L3 = "APPROVED_L3"
    APPROVED_L4 = "APPROVED_L4"
    APPROVED_L5 = "APPROVED_L5"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVISION = "REVISION"
    LOCKED = "LOCKED"
    CLOSED = "CLOSED"


EDITABLE_TRAVEL_STATUSES = (TravelStatus.DRAFT, TravelStatus.REVISION)

REVIEWABLE_TRAVEL_STATUSES = (
    TravelStatus.SUBMITTED,
    TravelStatus.APPROVED_L1,
    TravelStatus.APPROVED_L2,
    TravelStatus.APPROVED_L3,
    TravelStatus.APPROVED_L4,
    TravelStatus.APPROVED_L5,
)


class TravelRequest(Base):
    """Travel request model"""
    __tablename__ = "travel_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_number = Column(String, unique=True, index=True, nullable=False)

    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)

    # Trip details
    purpose = Column(Text, nullable=False)
    destination = Column(String, nullable=False)
    travel_type = Column(Enum(TravelType), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    status = Column(Enum(TravelStatus), default=TravelStatus.DRAFT, nullable=False, index=True)
    total_reimbursed = Column(Float, default=0, nullable=False)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    locked_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    requester = relationship("User", foreign_keys=[requester_id])
    project = relationship("Project", back_populates="travel_requests")
    participants = relationship(
        "TravelParticipant", back_populates="travel_request", cascade="all, delete-orphan"
    )
    approvals = relationship(
        "Approval", back_populates="travel_request", order_by="Approval.level"
    )
    claims = relationship("Claim", back_populates="travel_request")
    bailouts = relationship("Bailout", back_populates="travel_request")

    def __repr__(self):
        return f"<TravelRequest {self.request_number} - {self.status.value}>"

    def is_participant(self, user_id: int) -> bool:
        return any(p.user_id == user_id for p in self.participants)


class TravelParticipant(Base):
    """People travelling with the requester"""
    __tablename__ = "travel_participants"
    __table_args__ = (
        UniqueConstraint("travel_request_id", "user_id", name="uq_travel_participant"),
    )

    id = Column(Integer, primary_key=True, index=True)
    travel_request_id = Column(Integer, ForeignKey("travel_requests.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    travel_request = relationship("TravelRequest", back_populates="participants")
    user = relationship("User")
