"""
Claim Model
Expense claims raised against an approved travel request
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Text, Float, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class ClaimType(str, enum.Enum):
    """Claim variant"""
    ENTERTAINMENT = "ENTERTAINMENT"
    NON_ENTERTAINMENT = "NON_ENTERTAINMENT"


class ClaimStatus(str, enum.Enum):
    """Claim lifecycle"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVISION = "REVISION"
    PAID = "PAID"


class EntertainmentType(str, enum.Enum):
    """Entertainment expense kinds"""
    MEAL = "MEAL"
    GIFT = "GIFT"
    EVENT = "EVENT"
    HOSPITALITY = "HOSPITALITY"
    OTHER = "OTHER"


class NonEntertainmentCategory(str, enum.Enum):
    """Non-entertainment expense categories"""
    TRANSPORT = "TRANSPORT"
    PHONE_BILLING = "PHONE_BILLING"
    TRAVEL_EXPENSES = "TRAVEL_EXPENSES"
    OVERTIME_MEALS = "OVERTIME_MEALS"
    BPJS_HEALTH = "BPJS_HEALTH"
    EQUIPMENT_STATIONERY = "EQUIPMENT_STATIONERY"
    MOTORCYCLE_SERVICE = "MOTORCYCLE_SERVICE"
    ACCOMMODATION = "ACCOMMODATION"
    OTHER = "OTHER"


EDITABLE_CLAIM_STATUSES = (ClaimStatus.DRAFT, ClaimStatus.REVISION)
SETTLED_CLAIM_STATUSES = (ClaimStatus.PAID, ClaimStatus.REJECTED)


class Claim(Base):
    """Claim model"""
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    claim_number = Column(String, unique=True, index=True, nullable=False)

    travel_request_id = Column(Integer, ForeignKey("travel_requests.id"), nullable=False, index=True)
    submitter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    coa_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=True)

    claim_type = Column(Enum(ClaimType), nullable=False)
    status = Column(Enum(ClaimStatus), default=ClaimStatus.DRAFT, nullable=False, index=True)

    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)

    # Entertainment fields
    entertainment_type = Column(Enum(EntertainmentType), nullable=True)
    entertainment_date = Column(DateTime, nullable=True)
    entertainment_location = Column(String, nullable=True)
    entertainment_address = Column(String, nullable=True)
    guest_name = Column(String, nullable=True)
    guest_company = Column(String, nullable=True)
    guest_position = Column(String, nullable=True)
    is_government_official = Column(Boolean, default=False, nullable=False)

    # Non-entertainment fields
    expense_category = Column(Enum(NonEntertainmentCategory), nullable=True)
    expense_date = Column(DateTime, nullable=True)
    expense_destination = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)

    # Payment
    is_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    paid_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    payment_reference = Column(String, nullable=True)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    travel_request = relationship("TravelRequest", back_populates="claims")
    submitter = relationship("User", foreign_keys=[submitter_id])
    paid_by = relationship("User", foreign_keys=[paid_by_id])
    chart_of_account = relationship("ChartOfAccount", back_populates="claims")
    approvals = relationship("Approval", back_populates="claim", order_by="Approval.level")
    attachments = relationship("Attachment", back_populates="claim")

    def __repr__(self):
        return f"<Claim {self.claim_number} - {self.status.value}>"

    @property
    def active_attachments(self):
        return [a for a in self.attachments if a.deleted_at is None]
