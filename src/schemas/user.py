"""
User Schemas
Pydantic models for user-related requests and responses
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from src.models.user import UserRole


class UserBase(BaseModel):
    """Base user schema with common fields"""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    employee_id: Optional[str] = Field(None, max_length=50)
    phone_number: Optional[str] = None


class UserCreate(UserBase):
    """Schema for creating a new user"""
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.EMPLOYEE
    department_id: Optional[int] = None
    supervisor_id: Optional[int] = None


class UserUpdate(BaseModel):
    """Schema for updating user information (admin)"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    employee_id: Optional[str] = Field(None, max_length=50)
    phone_number: Optional[str] = None
    role: Optional[UserRole] = None
    department_id: Optional[int] = None
    supervisor_id: Optional[int] = None
    password: Optional[str] = Field(None, min_length=8)


class UserSelfUpdate(BaseModel):
    """Fields a user may change on their own profile"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone_number: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class UserResponse(UserBase):
    """Schema for user response"""
    id: int
    role: UserRole
    department_id: Optional[int] = None
    supervisor_id: Optional[int] = None
    created_at: datetime
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True