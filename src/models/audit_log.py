"""
Audit Log Model
Append-only record of every state-changing action
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class AuditAction(str, enum.Enum):
    """Audited actions"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    SUBMIT = "SUBMIT"
    LOCK = "LOCK"
    CLOSE = "CLOSE"
    REOPEN = "REOPEN"


class AuditLog(Base):
    """Audit log model"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # User who performed the action
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Action details
    action = Column(Enum(AuditAction), nullable=False)
    entity_type = Column(String, nullable=False, index=True)  # e.g. "TravelRequest", "Claim"
    entity_id = Column(Integer, nullable=True, index=True)

    # Details
    changes = Column(JSON, nullable=True)  # Before/after values
    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=True)

    # Request information
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    chart_of_account_id = Column(Integer, ForeignKey("chart_of_accounts.id", ondelete="SET NULL"), nullable=True)

    # Timestamp
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="audit_logs")
    chart_of_account = relationship("ChartOfAccount", back_populates="audit_logs")

    def __repr__(self):
        return f"<AuditLog {self.action.value} {self.entity_type} by User {self.user_id}>"
