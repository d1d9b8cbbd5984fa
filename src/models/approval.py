"""
Approval Model
One row per required approval level for a travel request or claim
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import NamedTuple
import enum

from src.config.database import Base


class ApprovalStatus(str, enum.Enum):
    """Approval row status"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"


class ApprovalLevel(str, enum.Enum):
    """Organisational approval levels, lowest first"""
    L1_SUPERVISOR = "L1_SUPERVISOR"
    L2_MANAGER = "L2_MANAGER"
    L3_DIRECTOR = "L3_DIRECTOR"
    L4_SENIOR_DIRECTOR = "L4_SENIOR_DIRECTOR"
    L5_EXECUTIVE = "L5_EXECUTIVE"

    @property
    def rank(self) -> int:
        return int(self.value[1])


class ApprovalTarget(NamedTuple):
    """The entity an approval belongs to"""
    entity_type: str  # "TravelRequest" or "Claim"
    entity_id: int


class Approval(Base):
    """Approval model"""
    __tablename__ = "approvals"
    __table_args__ = (
        CheckConstraint(
            "(travel_request_id IS NOT NULL AND claim_id IS NULL) OR "
            "(travel_request_id IS NULL AND claim_id IS NOT NULL)",
            name="ck_approval_single_target"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    approval_number = Column(String, unique=True, index=True, nullable=False)

    # Target: exactly one of these is set
    travel_request_id = Column(Integer, ForeignKey("travel_requests.id"), nullable=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=True, index=True)

    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    level = Column(Enum(ApprovalLevel), nullable=False)
    status = Column(Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False)

    comments = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    travel_request = relationship("TravelRequest", back_populates="approvals")
    claim = relationship("Claim", back_populates="approvals")
    approver = relationship("User", foreign_keys=[approver_id])

    def __repr__(self):
        return f"<Approval {self.approval_number} {self.level.value} - {self.status.value}>"

    @property
    def target(self) -> ApprovalTarget:
        if self.travel_request_id is not None:
            return ApprovalTarget("TravelRequest", self.travel_request_id)
        return ApprovalTarget("Claim", self.claim_id)

    @property
    def entity_type(self) -> str:
        return self.target.entity_type
