"""
Department Model
Organisational units arranged as a tree
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base


class Department(Base):
    """Department model"""
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    parent_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    # users <-> departments is a reference cycle
    manager_id = Column(Integer, ForeignKey("users.id", use_alter=True, name="fk_departments_manager_id"), nullable=True)
    director_id = Column(Integer, ForeignKey("users.id", use_alter=True, name="fk_departments_director_id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    parent = relationship("Department", remote_side=[id], back_populates="children")
    children = relationship("Department", back_populates="parent")
    users = relationship("User", back_populates="department", foreign_keys="User.department_id")
    manager = relationship("User", foreign_keys=[manager_id])
    director = relationship("User", foreign_keys=[director_id])

    def __repr__(self):
        return f"<Department {self.code}>"
