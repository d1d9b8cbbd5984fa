"""
Chart of Account Model
Hierarchical ledger accounts used to categorise claims
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class COAType(str, enum.Enum):
    """Account classes"""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class ChartOfAccount(Base):
    """Chart of account model"""
    __tablename__ = "chart_of_accounts"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    account_type = Column(Enum(COAType), nullable=False)
    category = Column(String, nullable=False)
    subcategory = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    parent_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    parent = relationship("ChartOfAccount", remote_side=[id], back_populates="children")
    children = relationship("ChartOfAccount", back_populates="parent")
    claims = relationship("Claim", back_populates="chart_of_account")
    audit_logs = relationship("AuditLog", back_populates="chart_of_account", passive_deletes=True)
    created_by = relationship("User", foreign_keys=[created_by_id])
    updated_by = relationship("User", foreign_keys=[updated_by_id])

    def __repr__(self):
        return f"<ChartOfAccount {self.code} {self.name}>"
