"""
User Model
Represents system users with role-based access control
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class UserRole(str, enum.Enum):
    """User roles"""
    EMPLOYEE = "EMPLOYEE"
    SUPERVISOR = "SUPERVISOR"
    MANAGER = "MANAGER"
    DIRECTOR = "DIRECTOR"
    FINANCE = "FINANCE"
    ADMIN = "ADMIN"
    SALES_EMPLOYEE = "SALES_EMPLOYEE"
    SALES_CHIEF = "SALES_CHIEF"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    employee_id = Column(String, unique=True, index=True, nullable=True)
    hashed_password = Column(String, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)

    # Organisation
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    phone_number = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    department = relationship("Department", back_populates="users", foreign_keys=[department_id])
    supervisor = relationship("User", remote_side=[id], back_populates="direct_reports")
    direct_reports = relationship("User", back_populates="supervisor")
    notifications = relationship("Notification", back_populates="user")
    audit_logs = relationship("AuditLog", back_populates="user")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    def has_permission(self, permission) -> bool:
        """Check the role policy table for a permission"""
        from src.config.permissions import roles_for
        return self.role in roles_for(permission)
